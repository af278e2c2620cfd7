"""Signed request handling for the weather endpoint."""

import base64
import binascii
import hmac
import json
import logging
import time
from collections.abc import Mapping

from .config import parse_header
from .forecast import tr_forecast
from .messages import (
    CODE_EXPIRED,
    CODE_REQUEST_DATA_ERROR,
    CODE_UNDEFINED_REQUEST,
    CODE_VALIDATION_ERROR,
    RequestError,
    get_error_message,
)
from .signing import encrypt_data
from .weather_list import tr_weather_list

logger = logging.getLogger(__name__)

NONCE_WINDOW_MS = 5000
REQUIRED_FIELDS = ("trid", "key", "lang", "body")

_TRANSACTIONS = {
    "forecast": tr_forecast,
    "weather_list": tr_weather_list,
}


def _to_bytes(value):
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _dumps(payload):
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def _abort(code):
    payload = {"code": code, "lang": "E", "message": get_error_message("E", code)}
    return 400, _dumps(payload)


def check_header(header, reqdata, config):
    """Check the access key, the nonce age and the signature of a request.

    Raises RequestError with the result code when the request is rejected.
    """
    if header.x_access != config.service.api_key:
        raise RequestError(CODE_VALIDATION_ERROR)

    timestamp = int(time.time()) * 1000
    if timestamp - header.x_nonce > NONCE_WINDOW_MS:
        logger.info("Header Time Error %s", header)
        raise RequestError(CODE_EXPIRED)

    signed = str(header.x_nonce).encode("ascii") + header.x_access.encode("utf-8")
    sign = encrypt_data(signed + _to_bytes(reqdata), config.service.api_secret)
    if not hmac.compare_digest(sign.encode("ascii"), header.x_signature.encode("utf-8")):
        logger.info("Header Sign Error %s %s", header, sign)
        raise RequestError(CODE_VALIDATION_ERROR)


def _decode_body(raw):
    compact = raw.replace(b"\r", b"").replace(b"\n", b"")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return b""


def _normalise_lang(lang):
    if lang.casefold() == "kr":
        return "K"
    if lang.casefold() == "en":
        return "E"
    return lang


def handle_weather_request(headers, body, db, rds, config):
    """Process one signed request and return (HTTP status, JSON text)."""
    raw = _to_bytes(body)

    try:
        header = parse_header(headers)
    except ValueError:
        logger.info("Header JSON Parse Error")
        return _abort(CODE_VALIDATION_ERROR)

    try:
        check_header(header, raw, config)
    except RequestError as exc:
        return _abort(exc.code)

    decoded = _decode_body(raw)
    logger.info("Request: %s", decoded.decode("utf-8", errors="replace"))

    try:
        req_data = json.loads(decoded)
    except ValueError:
        logger.info("Body JSON Parse Error")
        return _abort(CODE_REQUEST_DATA_ERROR)
    if not isinstance(req_data, Mapping):
        logger.info("Body JSON Parse Error")
        return _abort(CODE_REQUEST_DATA_ERROR)

    if any(req_data.get(name) is None for name in REQUIRED_FIELDS) or not isinstance(
        req_data["lang"], str
    ):
        logger.info("Body Struct Error")
        return _abort(CODE_REQUEST_DATA_ERROR)

    lang = _normalise_lang(req_data["lang"])
    trid = req_data["trid"]
    transaction = _TRANSACTIONS.get(trid) if isinstance(trid, str) else None

    res_body = {}
    if transaction is None:
        logger.info("Undefined TR: %s", trid)
        code = CODE_UNDEFINED_REQUEST
    else:
        try:
            res_body = transaction(db, rds, lang, req_data)
            code = 0
        except RequestError as exc:
            code = exc.code

    response = {"code": code, "lang": lang, "trid": trid}
    if code > 0:
        response["message"] = get_error_message(lang, code)
    if res_body:
        response["body"] = res_body

    text = _dumps(response)
    logger.info("Response: %s", text)
    return 200, text