"""Server configuration, request header parameters and grid records."""

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields

CONFIG_FILE = "config/server.json"
DB_CONTEXT_TIMEOUT = 5.0

NONCE_HEADER = "X-OBSWRT-NONCE"
ACCESS_HEADER = "X-OBSWRT-ACCESS"
SIGNATURE_HEADER = "X-OBSWRT-SIGNATURE"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _json_key(name):
    return field(default="", metadata={"json": name})


@dataclass
class ServiceConfig:
    name: str = ""
    mode: str = ""
    api_key: str = ""
    api_secret: str = ""
    timezone: str = ""


@dataclass
class WWWConfig:
    http_host: str = ""
    http_ssl_chain: str = ""
    http_ssl_privkey: str = ""


@dataclass
class DatabaseConfig:
    driver: str = ""
    user: str = ""
    password: str = ""
    connect_string: str = _json_key("connectString")
    max_open_conns: int = 0
    max_idle_conns: int = 0


@dataclass
class RedisConfig:
    host: str = ""
    password: str = ""
    max_idle_conns: int = 0
    max_active_conns: int = 0


@dataclass
class ServerConfig:
    service: ServiceConfig = field(default_factory=ServiceConfig)
    www: WWWConfig = field(default_factory=WWWConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)


@dataclass(frozen=True)
class HeaderParameter:
    x_nonce: int
    x_access: str
    x_signature: str


@dataclass
class GridInfo:
    x: int = 0
    y: int = 0
    lng: float = 0.0
    lat: float = 0.0
    land: str = ""
    temp: str = ""
    distance: float = 0.0


def _lookup(raw, key):
    """Find a key exactly, then case-insensitively."""
    if key in raw:
        return True, raw[key]
    folded = key.casefold()
    for name, value in raw.items():
        if isinstance(name, str) and name.casefold() == folded:
            return True, value
    return False, None


def _decode_section(cls, raw, section):
    if raw is None:
        return cls()
    if not isinstance(raw, Mapping):
        raise ValueError(f"config section {section!r} must be an object")
    values = {}
    for f in fields(cls):
        key = f.metadata.get("json", f.name)
        found, value = _lookup(raw, key)
        if not found or value is None:
            continue
        if f.type is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{section}.{key} must be an integer")
        elif not isinstance(value, str):
            raise ValueError(f"{section}.{key} must be a string")
        values[f.name] = value
    return cls(**values)


def parse_config(data):
    """Build a ServerConfig from decoded JSON data."""
    if not isinstance(data, Mapping):
        raise ValueError("configuration must be a JSON object")
    sections = {}
    for f in fields(ServerConfig):
        _, raw = _lookup(data, f.name)
        sections[f.name] = _decode_section(f.default_factory, raw, f.name)
    return ServerConfig(**sections)


def load_config(path):
    """Read and parse a JSON configuration file."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    return parse_config(data)


def _header(headers, name):
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def parse_header(headers):
    """Extract and validate the signed-request headers."""
    raw_nonce = _header(headers, NONCE_HEADER)
    nonce = 0
    if raw_nonce:
        if not _INT_RE.fullmatch(raw_nonce):
            raise ValueError(f"invalid {NONCE_HEADER} header: {raw_nonce!r}")
        nonce = int(raw_nonce)
        if not _INT64_MIN <= nonce <= _INT64_MAX:
            raise ValueError(f"{NONCE_HEADER} header out of range")
    if nonce == 0:
        raise ValueError(f"missing header {NONCE_HEADER}")

    access = _header(headers, ACCESS_HEADER) or ""
    if not access:
        raise ValueError(f"missing header {ACCESS_HEADER}")

    signature = _header(headers, SIGNATURE_HEADER) or ""
    if not signature:
        raise ValueError(f"missing header {SIGNATURE_HEADER}")

    return HeaderParameter(x_nonce=nonce, x_access=access, x_signature=signature)