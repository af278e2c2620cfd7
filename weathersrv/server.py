"""HTTP server setup: logging, database and cache connections, the web app."""

import argparse
import logging
import os
import sys
import time
from datetime import datetime, timedelta

import redis
from flask import Flask, Response, g, request
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url

from .config import CONFIG_FILE, load_config
from .rest import handle_weather_request

LOG_DIR = "log"
ALLOW_HEADERS = (
    "Content-Type, Authorization, Origin, X-OBSWRT-NONCE, X-OBSWRT-ACCESS, X-OBSWRT-SIGNATURE"
)
CORS_HEADERS = {
    "Access-Control-Allow-Headers": ALLOW_HEADERS,
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST",
    "Content-Type": "application/json",
}
DEFAULT_REDIS_PORT = 6379
DEFAULT_HTTPS_PORT = 443
DB_POOL_TIMEOUT = 5
DB_POOL_RECYCLE = 300

_DRIVER_ALIASES = {"godror": "oracle+oracledb", "oracle": "oracle+oracledb"}
_LOG_DATEFMT = "%Y/%m/%d %H:%M:%S"
_LOG_FORMAT = "%(asctime)s %(filename)s:%(lineno)d: %(message)s"


def _is_release(config):
    return config.service.mode == "release"


def _today():
    return datetime.now().strftime("%Y%m%d")


def _duration_ns(latency):
    if isinstance(latency, timedelta):
        return (latency.days * 86400 + latency.seconds) * 10**9 + latency.microseconds * 1000
    return int(latency)


def _fraction(value, digits):
    text = f"{value:0{digits}d}".rstrip("0")
    return f".{text}" if text else ""


def _format_duration(latency):
    """Render a duration the way the access log shows it, e.g. 1.5ms or 2m3.5s."""
    ns = _duration_ns(latency)
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1000:
        return f"{sign}{ns}ns"
    if ns < 10**6:
        return f"{sign}{ns // 1000}{_fraction(ns % 1000, 3)}µs"
    if ns < 10**9:
        return f"{sign}{ns // 10**6}{_fraction(ns % 10**6, 6)}ms"
    seconds, rest = divmod(ns, 10**9)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    tail = f"{seconds}{_fraction(rest, 9)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{tail}"
    if minutes:
        return f"{sign}{minutes}m{tail}"
    return f"{sign}{tail}"


def format_access_log(
    timestamp, client_ip, method, path, proto, status, latency, user_agent, error_message
):
    """One access log line, newline terminated."""
    return "[%s] %s | %s | %s | %s | %d | %s | %s | %s\n" % (
        timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        client_ip,
        method,
        path,
        proto,
        status,
        _format_duration(latency),
        user_agent,
        error_message,
    )


def _reset_handlers(log):
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()


def setting_logger(config):
    """Configure the application log; returns the file handler in release mode, else None."""
    log = logging.getLogger("weathersrv")
    _reset_handlers(log)
    log.setLevel(logging.INFO)
    log.propagate = False

    if _is_release(config):
        os.makedirs(LOG_DIR, exist_ok=True)
        path = os.path.join(LOG_DIR, f"{config.service.name}.{_today()}.log")
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, _LOG_DATEFMT))
        log.addHandler(handler)
        return handler

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("[DEBUG] " + _LOG_FORMAT, _LOG_DATEFMT))
    log.addHandler(handler)
    return None


def connect_database(config):
    """Create the SQLAlchemy engine described by the database section."""
    db = config.database
    target = db.connect_string
    if "://" in target:
        url = make_url(target)
    else:
        driver = _DRIVER_ALIASES.get(db.driver, db.driver or "oracle+oracledb")
        url = make_url(f"{driver}://{target}")
    if db.user:
        url = url.set(username=db.user, password=db.password or None)

    options = {}
    if db.max_open_conns > 0:
        pool_size = max(1, min(db.max_idle_conns, db.max_open_conns))
        options.update(
            pool_size=pool_size,
            max_overflow=db.max_open_conns - pool_size,
            pool_timeout=DB_POOL_TIMEOUT,
            pool_recycle=DB_POOL_RECYCLE,
        )
    return create_engine(url, **options)


def _split_host(address, default_host, default_port):
    if address.startswith("["):
        host, _, rest = address[1:].partition("]")
        port = rest.lstrip(":")
    else:
        host, sep, port = address.rpartition(":")
        if not sep:
            host, port = address, ""
    return host or default_host, int(port) if port else default_port


def connect_redis(config):
    """Create a Redis client backed by a pool sized from the redis section."""
    cfg = config.redis
    host, port = _split_host(cfg.host, "localhost", DEFAULT_REDIS_PORT)
    pool = redis.ConnectionPool(
        host=host,
        port=port,
        password=cfg.password or None,
        max_connections=cfg.max_active_conns or None,
    )
    return redis.Redis(connection_pool=pool)


def _access_logger(config):
    log = logging.getLogger("weathersrv.access")
    _reset_handlers(log)
    log.setLevel(logging.INFO)
    log.propagate = False
    if _is_release(config):
        os.makedirs(LOG_DIR, exist_ok=True)
        path = os.path.join(LOG_DIR, f"{config.service.name}-gin.{_today()}.log")
        handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.terminator = ""
    log.addHandler(handler)
    return log


def create_app(config, db, rdp):
    """Build the web application serving POST /Weather."""
    app = Flask(__name__)
    access = _access_logger(config)

    @app.before_request
    def _start():
        g.started = time.perf_counter_ns()
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @app.after_request
    def _finish(response):
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        elapsed = time.perf_counter_ns() - g.get("started", time.perf_counter_ns())
        access.info(
            format_access_log(
                datetime.now(),
                request.remote_addr or "",
                request.method,
                request.path,
                request.environ.get("SERVER_PROTOCOL", ""),
                response.status_code,
                timedelta(microseconds=elapsed // 1000),
                request.user_agent.string,
                "",
            )
        )
        return response

    @app.post("/Weather")
    def weather():
        status, text = handle_weather_request(
            request.headers, request.get_data(), db, rdp, config
        )
        return Response(text, status=status, content_type="application/json")

    return app


def main(argv=None):
    """Load the configuration and serve HTTPS until stopped."""
    parser = argparse.ArgumentParser(prog="weathersrv", description="Weather API server")
    parser.add_argument("-c", "--config", default=CONFIG_FILE, help="configuration file")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    handler = setting_logger(config)
    if handler is not None:
        os.dup2(handler.stream.fileno(), 2)

    db = connect_database(config)
    rdp = connect_redis(config)
    try:
        app = create_app(config, db, rdp)
        host, port = _split_host(config.www.http_host, "0.0.0.0", DEFAULT_HTTPS_PORT)
        app.run(
            host=host,
            port=port,
            ssl_context=(config.www.http_ssl_chain, config.www.http_ssl_privkey),
            threaded=True,
        )
    finally:
        rdp.close()
        db.dispose()
        if handler is not None:
            handler.close()
    return 0