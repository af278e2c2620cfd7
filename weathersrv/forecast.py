"""The "forecast" transaction: current conditions and forecasts for a position."""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from itertools import islice

from sqlalchemy import text

from .common import get_address_from_sapi, get_dust_grade_from_pm25, get_grid_info
from .messages import (
    CODE_REQUEST_DATA_ERROR,
    CODE_REQUEST_TYPE_ERROR,
    CODE_SYSTEM_ERROR,
    RequestError,
)

logger = logging.getLogger(__name__)

FCST_TIME_LIMIT = 24

_DATE_RE = re.compile(r"[0-9]{8}")
_ZERO_DATE = date(1, 1, 1)

_ODAM_QUERY = text(
    "SELECT DATA_TYPE, GRID_VAL, BASE_DATE, BASE_TIME FROM DFS_ODAM_CURR "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and DATA_TYPE in ('PTY', 'T1H', 'WSD') "
)

_VSRT_QUERY = text(
    "SELECT GRID_VAL FROM DFS_VSRT_CURR "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and DATA_TYPE = :data_type "
    "  and FCST_DATE * 10000 + FCST_TIME >= :since "
    "ORDER BY FCST_DATE, FCST_TIME"
)

_SHRT_QUERY = text(
    "SELECT GRID_VAL FROM DFS_SHRT_CURR "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and DATA_TYPE = :data_type "
    "  and FCST_DATE = :bdate "
    "ORDER BY FCST_DATE"
)

_DUST_CURR_QUERY = text(
    "SELECT PM25 FROM OBSERVER_CURR_DUST WHERE GRID_X = :x and GRID_Y = :y"
)

_FCST_TIME_QUERY = text(
    "SELECT A.FCST_DATE, A.FCST_TIME, A.WS, A.TMP, COALESCE(B.GRADE, '?') "
    "FROM OBSERVER_FCST_TIME A, OBSERVER_FCST_DUST B "
    "WHERE A.GRID_X = B.GRID_X "
    "  and A.GRID_Y = B.GRID_Y "
    "  and A.FCST_DATE = B.FCST_DATE "
    "  and A.FCST_TIME = B.FCST_TIME "
    "  and A.GRID_X = :x "
    "  and A.GRID_Y = :y "
    "  and A.FCST_DATE * 10000 + A.FCST_TIME >= :since "
    "ORDER BY A.FCST_DATE, A.FCST_TIME"
)

_THREE_HOURLY = "(0, 300, 600, 900, 1200, 1500, 1800, 2100)"

_FCST_DUST_QUERY = text(
    "SELECT FCST_DATE, FCST_TIME, GRADE "
    "FROM OBSERVER_FCST_DUST "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and FCST_DATE in (:t1, :t2) "
    f"  and FCST_TIME in {_THREE_HOURLY} "
    "ORDER BY FCST_DATE, FCST_TIME"
)

_FCST_TIME2_QUERY = text(
    "SELECT FCST_DATE, FCST_TIME, WS, TMP "
    "FROM OBSERVER_FCST_TIME "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and FCST_DATE in (:t1, :t2) "
    f"  and FCST_TIME in {_THREE_HOURLY} "
    "ORDER BY FCST_DATE, FCST_TIME"
)

_FCST_DAY_QUERY = text(
    "SELECT FCST_DATE, WS_AM, WS_PM, TMN, TMX "
    "FROM OBSERVER_FCST_DAY "
    "WHERE GRID_X = :x "
    "  and GRID_Y = :y "
    "  and FCST_DATE > :bdate "
    "ORDER BY FCST_DATE"
)


@dataclass(frozen=True)
class DustData:
    """Forecast dust grade at one date and time."""

    date: int
    time: int
    dg: str


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_row(row):
    if any(value is None for value in row):
        raise ValueError("unexpected NULL column in result row")
    return row


def _scalar(conn, query, params, *, required=True):
    row = conn.execute(query, params).first()
    if row is None:
        if required:
            raise LookupError("no rows in result set")
        return None
    return _check_row(row)[0]


def _since(bdate, btime):
    return int(f"{bdate:08d}{btime:04d}")


def _parse_date(value):
    """Parse a YYYYMMDD integer; an unparsable value gives 0001-01-01."""
    digits = str(value)
    if not _DATE_RE.fullmatch(digits):
        return _ZERO_DATE
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:]))
    except ValueError:
        return _ZERO_DATE


def _date_int(day):
    return int(f"{day.year:04d}{day.month:02d}{day.day:02d}")


def get_curr(db, x, y):
    """Current conditions at a grid point from observations and short forecasts."""
    odam = {"PTY": -1.0, "T1H": -50.0, "WSD": -1.0}
    vsrt = {"SKY": -1.0, "T1H": -50.0, "WSD": -1.0}
    base_date = base_time = 0

    with db.connect() as conn:
        for row in conn.execute(_ODAM_QUERY, {"x": x, "y": y}):
            data_type, value, bdate, btime = _check_row(row)
            if data_type in odam:
                odam[data_type] = float(value)
            base_date, base_time = int(bdate), int(btime)

        since = _since(base_date, base_time)
        for data_type in vsrt:
            value = _scalar(
                conn,
                _VSRT_QUERY,
                {"x": x, "y": y, "data_type": data_type, "since": since},
                required=False,
            )
            if value is not None:
                vsrt[data_type] = float(value)

        shrt = {
            data_type: float(
                _scalar(
                    conn,
                    _SHRT_QUERY,
                    {"x": x, "y": y, "data_type": data_type, "bdate": base_date},
                )
            )
            for data_type in ("TMX", "TMN")
        }

        pm25 = float(_scalar(conn, _DUST_CURR_QUERY, {"x": x, "y": y}))

    state = "?"
    pty, sky = odam["PTY"], vsrt["SKY"]
    if pty > 0:
        if pty in (1, 2, 4):
            state = "R"
        elif pty == 3:
            state = "N"
    elif sky > 0:
        state = {1: "S", 3: "P", 4: "C"}.get(sky, state)

    if odam["T1H"] > -50:
        temperature = odam["T1H"]
    elif vsrt["T1H"] > -50:
        temperature = vsrt["T1H"]
    else:
        temperature = -50.0

    wind = odam["WSD"] if odam["WSD"] > -1 else vsrt["WSD"]

    return {
        "date": base_date,
        "time": base_time,
        "WS": state,
        "TMP": temperature,
        "TMX": shrt["TMX"],
        "TMN": shrt["TMN"],
        "WSD": wind,
        "PM25": pm25,
        "DG": get_dust_grade_from_pm25(pm25),
    }


def get_fcst_time(db, x, y, bdate, btime):
    """Up to 24 hourly forecasts from the base date and time onwards."""
    params = {"x": x, "y": y, "since": _since(bdate, btime)}
    with db.connect() as conn:
        rows = conn.execute(_FCST_TIME_QUERY, params)
        results = []
        for row in islice(rows, FCST_TIME_LIMIT):
            fcst_date, fcst_time, state, temperature, grade = _check_row(row)
            results.append(
                {
                    "date": int(fcst_date),
                    "time": int(fcst_time),
                    "WS": str(state),
                    "TMP": float(temperature),
                    "DG": str(grade),
                }
            )
    return results


def get_fcst_time2(db, x, y, bdate):
    """Three-hourly forecasts for the two days after the base date, as T1 and T2."""
    base = _parse_date(bdate)
    t1_date = _date_int(base + timedelta(days=1))
    t2_date = _date_int(base + timedelta(days=2))
    params = {"x": x, "y": y, "t1": t1_date, "t2": t2_date}

    with db.connect() as conn:
        dust = [
            DustData(int(d), int(t), str(g))
            for d, t, g in map(_check_row, conn.execute(_FCST_DUST_QUERY, params))
        ]

        first, second = [], []
        for row in conn.execute(_FCST_TIME2_QUERY, params):
            fcst_date, fcst_time, state, temperature = _check_row(row)
            fcst_date, fcst_time = int(fcst_date), int(fcst_time)
            grade = next(
                (d.dg for d in dust if d.date == fcst_date and d.time == fcst_time),
                "N",
            )
            entry = {
                "date": fcst_date,
                "time": fcst_time,
                "WS": str(state),
                "TMP": float(temperature),
                "DG": grade,
            }
            if fcst_date == t1_date:
                first.append(entry)
            elif fcst_date == t2_date:
                second.append(entry)
            else:
                break

    return {"T1": first, "T2": second}


def get_fcst_day(db, x, y, bdate):
    """Daily forecasts after the base date; week is 0 for Sunday to 6 for Saturday."""
    with db.connect() as conn:
        results = []
        for row in conn.execute(_FCST_DAY_QUERY, {"x": x, "y": y, "bdate": bdate}):
            fcst_date, ws_am, ws_pm, tmn, tmx = _check_row(row)
            fcst_date = int(fcst_date)
            results.append(
                {
                    "date": fcst_date,
                    "week": (_parse_date(fcst_date).weekday() + 1) % 7,
                    "WS_AM": str(ws_am),
                    "WS_PM": str(ws_pm),
                    "TMN": float(tmn),
                    "TMX": float(tmx),
                }
            )
    return results


def check_input(req_body):
    """Require numeric "lat" and "lng" in the request body."""
    if req_body.get("lat") is None or req_body.get("lng") is None:
        raise RequestError(CODE_REQUEST_DATA_ERROR)
    if not _is_number(req_body["lat"]) or not _is_number(req_body["lng"]):
        raise RequestError(CODE_REQUEST_TYPE_ERROR)


def tr_forecast(db, rds, lang, req_data):
    """Handle a "forecast" request and return the response body."""
    body = req_data.get("body")
    if not isinstance(body, Mapping):
        raise RequestError(CODE_REQUEST_TYPE_ERROR)
    check_input(body)
    lng, lat = float(body["lng"]), float(body["lat"])

    try:
        addr = get_address_from_sapi(lng, lat)
        grid = get_grid_info(db, lng, lat)
        curr = get_curr(db, grid.x, grid.y)
        fcst_time = get_fcst_time(db, grid.x, grid.y, curr["date"], curr["time"])
        fcst_time_2 = get_fcst_time2(db, grid.x, grid.y, curr["date"])
        fcst_day = get_fcst_day(db, grid.x, grid.y, curr["date"])
    except Exception as exc:
        logger.error("%s", exc)
        raise RequestError(CODE_SYSTEM_ERROR) from exc

    return {
        "addr": addr,
        "curr": curr,
        "fcst_time": fcst_time,
        "fcst_time_2": fcst_time_2,
        "fcst_day": fcst_day,
    }