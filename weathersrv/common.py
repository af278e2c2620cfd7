"""Shared helpers: parsing, clock values, row mapping, grid and address lookups."""

import math
import os
import random
import re
from datetime import datetime
from urllib.error import HTTPError
from urllib.parse import quote
from urllib.request import Request, urlopen

from sqlalchemy import text

from .config import GridInfo

CODE_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"

ADDRESS_URL_ENV = "WEATHERSRV_ADDRESS_URL"
ADDRESS_KEY_ENV = "WEATHERSRV_ADDRESS_KEY"
DEFAULT_ADDRESS_URL = "http://localhost:7885/get_address.php"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")
_HEX_FLOAT_RE = re.compile(r"[+-]?0[xX][0-9a-fA-F]*\.?[0-9a-fA-F]*[pP][+-]?[0-9]+")
_INF_RE = re.compile(r"[+-]?(inf|infinity)", re.IGNORECASE)

_GRID_QUERY = text(
    "SELECT LONGITUDE, LATITUDE, KMA_X, KMA_Y, KMA_LAND, KMA_TEMP, "
    "       DISTANCE_WGS84(LATITUDE, LONGITUDE, :lat, :lng) D "
    "FROM WRT_GRID_INFO "
    "ORDER BY D "
)


def get_code_key(length):
    """Random alphanumeric string of the given length."""
    return "".join(random.choice(CODE_ALPHABET) for _ in range(max(length, 0)))


def get_int64_from_string(val):
    """Parse a signed 64-bit decimal integer, or 0 when it does not parse."""
    if not _INT_RE.fullmatch(val):
        return 0
    number = int(val)
    return number if _INT64_MIN <= number <= _INT64_MAX else 0


def get_float64_from_string(val):
    """Parse a float, or 0.0 when it does not parse or overflows."""
    if not val or val != val.strip() or "_" in val:
        return 0.0
    try:
        number = float(val)
    except ValueError:
        if not _HEX_FLOAT_RE.fullmatch(val):
            return 0.0
        try:
            number = float.fromhex(val)
        except (ValueError, OverflowError):
            return 0.0
    if math.isinf(number) and not _INF_RE.fullmatch(val):
        return 0.0
    return number


def get_int_date():
    """Current local date as YYYYMMDD."""
    return get_int64_from_string(datetime.now().strftime("%Y%m%d"))


def get_int_time():
    """Current local time as HHMMSS."""
    return get_int64_from_string(datetime.now().strftime("%H%M%S"))


def get_rows_result(cursor, limit):
    """Map the rows of a cursor to dicts keyed by column name; limit <= 0 means all."""
    if cursor is None:
        raise ValueError("Rows is null")
    description = getattr(cursor, "description", None)
    if description is not None:
        columns = [column[0] for column in description]
    else:
        columns = list(cursor.keys())
    results = []
    for row in cursor:
        results.append(dict(zip(columns, row)))
        if limit > 0 and len(results) >= limit:
            break
    return results


def get_dust_grade_from_pm25(pm25):
    """Dust grade "1" to "4" for a PM2.5 concentration."""
    if pm25 < 15:
        return "1"
    if pm25 < 35:
        return "2"
    if pm25 < 75:
        return "3"
    return "4"


def get_grid_info(db, lng, lat):
    """Nearest forecast grid point to a position, from an SQLAlchemy engine."""
    with db.connect() as conn:
        row = conn.execute(_GRID_QUERY, {"lat": lat, "lng": lng}).first()
    if row is None:
        raise LookupError("no grid point found")
    if any(value is None for value in row):
        raise ValueError("grid row has NULL columns")
    g_lng, g_lat, x, y, land, temp, distance = row
    return GridInfo(
        x=int(x),
        y=int(y),
        lng=float(g_lng),
        lat=float(g_lat),
        land=str(land),
        temp=str(temp),
        distance=float(distance),
    )


def get_address_from_sapi(lng, lat):
    """Ask the address service for a position; returns the ';'-separated parts."""
    base = os.environ.get(ADDRESS_URL_ENV, DEFAULT_ADDRESS_URL)
    key = os.environ.get(ADDRESS_KEY_ENV, "")
    url = f"{base}?key={quote(key)}&lng={lng:f}&lat={lat:f}"
    try:
        with urlopen(Request(url, method="GET")) as response:
            body = response.read()
    except HTTPError as exc:
        with exc:
            body = exc.read()
    return body.decode("utf-8", errors="replace").split(";")