"""Lambert conformal conic projection for the forecast grid."""

import math

NX = 149.0
NY = 253.0

_RE = 6371.00877  # map radius (km)
_GRID = 5.0  # grid spacing (km)
_SLAT1 = 30.0
_SLAT2 = 60.0
_OLNG = 126.0
_OLAT = 38.0
_XO = 210 / _GRID
_YO = 675 / _GRID

_PI = math.asin(1.0) * 2.0
_DEGRAD = _PI / 180.0
_RADDEG = 180.0 / _PI


def _projection_constants():
    re = _RE / _GRID
    slat1 = _SLAT1 * _DEGRAD
    slat2 = _SLAT2 * _DEGRAD
    olat = _OLAT * _DEGRAD
    sn = math.tan(_PI * 0.25 + slat2 * 0.5) / math.tan(_PI * 0.25 + slat1 * 0.5)
    sn = math.log(math.cos(slat1) / math.cos(slat2)) / math.log(sn)
    sf = math.tan(_PI * 0.25 + slat1 * 0.5)
    sf = math.pow(sf, sn) * math.cos(slat1) / sn
    ro = math.tan(_PI * 0.25 + olat * 0.5)
    ro = re * sf / math.pow(ro, sn)
    return re, sn, sf, ro


_RE_GRID, _SN, _SF, _RO = _projection_constants()
_OLNG_RAD = _OLNG * _DEGRAD


def lamcproj(mode, var1, var2):
    """Mode 0 maps (lng, lat) to grid (x, y); any other mode maps back."""
    if mode == 0:
        ra = math.tan(_PI * 0.25 + var2 * _DEGRAD * 0.5)
        ra = _RE_GRID * _SF / math.pow(ra, _SN)
        theta = var1 * _DEGRAD - _OLNG_RAD
        if theta > _PI:
            theta -= 2.0 * _PI
        if theta < -_PI:
            theta += 2.0 * _PI
        theta *= _SN
        return ra * math.sin(theta) + _XO, _RO - ra * math.cos(theta) + _YO

    xn = var1 - _XO
    yn = _RO - var2 + _YO
    ra = math.sqrt(xn * xn + yn * yn)
    if _SN < 0.0:
        ra = -ra
    ratio = _RE_GRID * _SF / ra if ra else math.inf
    alat = math.pow(ratio, 1.0 / _SN)
    alat = 2.0 * math.atan(alat) - _PI * 0.5
    if abs(xn) <= 0.0:
        theta = 0.0
    elif abs(yn) <= 0.0:
        theta = _PI * 0.5
        if xn < 0.0:
            theta = -theta
    else:
        theta = math.atan2(xn, yn)
    alng = theta / _SN + _OLNG_RAD
    return alng * _RADDEG, alat * _RADDEG


def convert_xy_latlng(mode, var1, var2):
    """Mode 0: (lng, lat) to grid (x, y). Mode 1: grid (x, y) to (lng, lat)."""
    if mode == 0:
        x, y = lamcproj(mode, var1, var2)
        return float(math.floor(x + 1.5)), float(math.floor(y + 1.5))
    if mode == 1:
        if var1 < 1 or var1 > NX or var2 < 1 or var2 > NY:
            raise ValueError(f"X-grid range [1,{NX:f}] / Y-grid range [1,{NY:f}]")
        return lamcproj(mode, var1 - 1, var2 - 1)
    raise ValueError("Not allow mode value")