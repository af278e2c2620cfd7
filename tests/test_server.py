import base64
import json
import logging
import os
import time
from datetime import datetime, timedelta

import pytest
from sqlalchemy import text

from weathersrv.config import DatabaseConfig, RedisConfig, ServerConfig, ServiceConfig
from weathersrv.server import (
    connect_database,
    connect_redis,
    create_app,
    format_access_log,
    main,
    setting_logger,
)
from weathersrv.signing import encrypt_data

API_KEY = "placeholder"
API_SECRET = "secret"


@pytest.fixture
def config():
    return ServerConfig(
        service=ServiceConfig(
            name="weather", mode="debug", api_key="placeholder", api_secret="secret"
        )
    )


def _signed(payload):
    body = base64.b64encode(json.dumps(payload).encode("utf-8"))
    nonce = int(time.time()) * 1000
    signature = encrypt_data(str(nonce).encode() + API_KEY.encode() + body, API_SECRET)
    headers = {
        "X-OBSWRT-NONCE": str(nonce),
        "X-OBSWRT-ACCESS": API_KEY,
        "X-OBSWRT-SIGNATURE": signature,
    }
    return headers, body


def test_format_access_log_line():
    line = format_access_log(
        datetime(2023, 1, 2, 3, 4, 5),
        "127.0.0.1",
        "POST",
        "/Weather",
        "HTTP/1.1",
        200,
        timedelta(microseconds=1500),
        "agent",
        "",
    )
    assert line == "[2023-01-02 03:04:05] 127.0.0.1 | POST | /Weather | HTTP/1.1 | 200 | 1.5ms | agent | \n"


def test_format_access_log_minutes_latency():
    line = format_access_log(
        datetime(2023, 1, 2, 3, 4, 5),
        "10.0.0.1",
        "GET",
        "/",
        "HTTP/1.0",
        404,
        timedelta(minutes=2, seconds=3, milliseconds=500),
        "ua",
        "oops",
    )
    assert line.endswith("| 404 | 2m3.5s | ua | oops\n")
    assert line.startswith("[2023-01-02 03:04:05] 10.0.0.1 | GET | / | HTTP/1.0 |")


def test_connect_redis_pool_settings():
    password = "password"
    cfg = ServerConfig(
        redis=RedisConfig(host="cache.example.com:6380", password=password, max_active_conns=10)
    )
    client = connect_redis(cfg)
    kwargs = client.connection_pool.connection_kwargs
    assert kwargs["host"] == "cache.example.com"
    assert kwargs["port"] == 6380
    assert kwargs["password"] == password
    assert client.connection_pool.max_connections == 10


def test_connect_redis_default_port():
    client = connect_redis(ServerConfig(redis=RedisConfig(host="cache.example.com")))
    assert client.connection_pool.connection_kwargs["port"] == 6379


def test_connect_database_sqlite(tmp_path):
    url = f"sqlite:///{tmp_path / 'weather.db'}"
    engine = connect_database(
        ServerConfig(database=DatabaseConfig(driver="sqlite", connect_string=url))
    )
    try:
        with engine.connect() as conn:
            assert conn.execute(text("SELECT 7")).scalar() == 7
    finally:
        engine.dispose()


def test_options_request_returns_no_content(config):
    client = create_app(config, None, None).test_client()
    response = client.open("/Weather", method="OPTIONS")
    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "POST"


def test_post_without_headers_is_rejected(config):
    client = create_app(config, None, None).test_client()
    response = client.post("/Weather", data=b"")
    assert response.status_code == 400
    assert json.loads(response.data) == {
        "code": 9001,
        "lang": "E",
        "message": "Validation Error",
    }
    assert response.headers["Content-Type"] == "application/json"


def test_post_signed_request(config):
    client = create_app(config, None, None).test_client()
    headers, body = _signed(
        {"trid": "weather_list", "key": "k", "lang": "en", "body": {"list": []}}
    )
    response = client.post("/Weather", data=body, headers=headers)
    assert response.status_code == 200
    assert json.loads(response.data) == {
        "code": 0,
        "lang": "E",
        "trid": "weather_list",
        "body": {"list": []},
    }


def test_get_is_not_allowed(config):
    client = create_app(config, None, None).test_client()
    assert client.get("/Weather").status_code == 405


def test_setting_logger_debug_writes_to_stdout(config, capsys):
    assert setting_logger(config) is None
    logging.getLogger("weathersrv.rest").info("hello debug")
    out = capsys.readouterr().out
    assert "[DEBUG]" in out
    assert "hello debug" in out


def test_setting_logger_release_writes_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = ServerConfig(service=ServiceConfig(name="weather", mode="release"))
    handler = setting_logger(cfg)
    try:
        assert handler in logging.getLogger("weathersrv").handlers
        logging.getLogger("weathersrv.rest").info("hello release")
        handler.flush()
        path = os.path.join("log", f"weather.{datetime.now():%Y%m%d}.log")
        with open(path, encoding="utf-8") as fh:
            assert "hello release" in fh.read()
    finally:
        logging.getLogger("weathersrv").removeHandler(handler)
        handler.close()


def test_main_with_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        main(["--config", str(tmp_path / "missing.json")])