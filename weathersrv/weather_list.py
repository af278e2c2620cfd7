"""The "weather_list" transaction: current weather and dust for several positions."""

import logging
from collections.abc import Mapping

from sqlalchemy import text

from .common import get_grid_info
from .messages import (
    CODE_REQUEST_DATA_ERROR,
    CODE_REQUEST_TYPE_ERROR,
    CODE_SYSTEM_ERROR,
    RequestError,
)

logger = logging.getLogger(__name__)

_PTY_QUERY = text(
    "SELECT BASE_DATE, BASE_TIME, GRID_VAL FROM DFS_ODAM_CURR "
    "WHERE GRID_X = :x and GRID_Y = :y and DATA_TYPE = 'PTY'"
)

_SKY_QUERY = text(
    "SELECT GRID_VAL FROM DFS_VSRT_CURR "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and DATA_TYPE = 'SKY' "
    "  and FCST_DATE * 10000 + FCST_TIME >= :since "
    "ORDER BY FCST_DATE, FCST_TIME"
)

_DUST_QUERY = text(
    "SELECT PM25, GRADE FROM OBSERVER_CURR_DUST WHERE GRID_X = :x and GRID_Y = :y"
)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first_row(conn, query, params):
    row = conn.execute(query, params).first()
    if row is None:
        raise LookupError("no rows in result set")
    if any(value is None for value in row):
        raise ValueError("unexpected NULL column in result row")
    return row


def check_input(req_body):
    """Require a "list" of objects, each with a string "key" and numeric "lat" and "lng"."""
    items = req_body.get("list")
    if items is None:
        raise RequestError(CODE_REQUEST_DATA_ERROR)
    if not isinstance(items, list):
        raise RequestError(CODE_REQUEST_TYPE_ERROR)
    for item in items:
        if not isinstance(item, Mapping):
            raise RequestError(CODE_REQUEST_TYPE_ERROR)
        if any(item.get(name) is None for name in ("key", "lat", "lng")):
            raise RequestError(CODE_REQUEST_DATA_ERROR)
        if not isinstance(item["key"], str):
            raise RequestError(CODE_REQUEST_TYPE_ERROR)
        if not _is_number(item["lat"]) or not _is_number(item["lng"]):
            raise RequestError(CODE_REQUEST_TYPE_ERROR)


def tr_weather_list(db, rds, lang, req_data):
    """Handle a "weather_list" request and return the response body.

    A weather state that cannot be decided for an entry keeps the state of
    the entry before it.
    """
    body = req_data.get("body")
    if not isinstance(body, Mapping):
        raise RequestError(CODE_REQUEST_TYPE_ERROR)
    check_input(body)

    state = "?"
    results = []
    try:
        for item in body["list"]:
            grid = get_grid_info(db, float(item["lng"]), float(item["lat"]))
            params = {"x": grid.x, "y": grid.y}
            with db.connect() as conn:
                bdate, btime, pty = _first_row(conn, _PTY_QUERY, params)
                pty = float(pty)
                if pty > 0:
                    if pty in (1, 2, 4):
                        state = "R"
                    elif pty == 3:
                        state = "N"
                else:
                    since = int(f"{int(bdate):08d}{int(btime):04d}")
                    (sky,) = _first_row(conn, _SKY_QUERY, {**params, "since": since})
                    state = {1: "S", 3: "P", 4: "C"}.get(float(sky), state)
                pm25, grade = _first_row(conn, _DUST_QUERY, params)
            results.append(
                {"key": item["key"], "WS": state, "DG": str(grade), "PM25": float(pm25)}
            )
    except Exception as exc:
        logger.error("%s", exc)
        raise RequestError(CODE_SYSTEM_ERROR) from exc

    return {"list": results}