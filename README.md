# weathersrv

An HTTPS service that answers signed weather requests. A client posts a
base64-encoded JSON document to `/Weather`, and the service returns current
conditions, hourly and daily forecasts, and fine-dust grades for the nearest
point of a 5 km forecast grid, read from an SQL database.

## Installing

```
pip install .
```

The database is reached through SQLAlchemy. The default dialect is
`oracle+oracledb`, so its driver has to be installed alongside the package
unless the configuration names another database URL.

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

The server reads `config/server.json` from the working directory, or the file
given with `-c`/`--config`:

```json
{
  "service": {
    "name": "weather",
    "mode": "release",
    "api_key": "placeholder",
    "api_secret": "secret",
    "timezone": "Asia/Seoul"
  },
  "www": {
    "http_host": "0.0.0.0:8443",
    "http_ssl_chain": "cert/chain.pem",
    "http_ssl_privkey": "cert/privkey.pem"
  },
  "database": {
    "driver": "oracle",
    "user": "weather",
    "password": "password",
    "connectString": "localhost:1521/WEATHER",
    "max_open_conns": 10,
    "max_idle_conns": 2
  },
  "redis": {
    "host": "localhost:6379",
    "password": "password",
    "max_idle_conns": 2,
    "max_active_conns": 10
  }
}
```

Keys are matched exactly first and then without regard to case; missing
keys keep empty defaults, and values of the wrong type raise `ValueError`
(`weathersrv.config.load_config` and `parse_config`).

- `database.connectString` is either a full SQLAlchemy URL or a target that
  is joined to `database.driver` (`oracle` and `godror` both mean
  `oracle+oracledb`). `user` and `password` are set on the URL. With
  `max_open_conns` above 0 the pool holds `max_idle_conns` connections (at
  least 1) and may grow to `max_open_conns`.
- `redis.host` is `host:port` (port 6379 when left out); the pool is capped
  at `max_active_conns`.
- `www.http_host` is the listen address (port 443 when left out).

In `release` mode the application log goes to `log/<name>.<YYYYMMDD>.log`,
standard error is redirected into the same file, and the access log goes to
`log/<name>-gin.<YYYYMMDD>.log`. In any other mode both logs go to standard
output, the application log with a `[DEBUG]` prefix.

Addresses come from an HTTP service queried as
`<url>?key=<key>&lng=<lng>&lat=<lat>`, whose answer is split on `;`. The URL
and key are taken from the environment variables `WEATHERSRV_ADDRESS_URL`
(default `http://localhost:7885/get_address.php`) and
`WEATHERSRV_ADDRESS_KEY`.

## Running

```
weathersrv
weathersrv --config path/to/server.json
```

The command serves HTTPS with Flask's built-in server, using the certificate
chain and private key from the `www` section. Every response carries
permissive CORS headers, and an `OPTIONS` preflight is answered with 204.

## Requests

Every request carries three headers:

- `X-OBSWRT-ACCESS`: the configured API key.
- `X-OBSWRT-NONCE`: the current time in milliseconds; a nonce more than five
  seconds older than the server's clock is refused.
- `X-OBSWRT-SIGNATURE`: base64 HMAC-SHA256, keyed with the API secret, of
  the nonce, the access key and the raw (still base64) request body,
  concatenated.

The body is base64 of a JSON object with `trid`, `key`, `lang` and `body`.
`lang` `kr` is answered in Korean and `en` in English; other values are
kept as given and answered in English. Two transactions are supported:

- `forecast`, with `{"lat": ..., "lng": ...}`: `addr`, `curr` (current
  conditions), `fcst_time` (up to 24 hourly forecasts), `fcst_time_2`
  (three-hourly forecasts for the next two days, as `T1` and `T2`) and
  `fcst_day` (daily forecasts, with `week` 0 for Sunday to 6 for Saturday).
- `weather_list`, with `{"list": [{"key": ..., "lat": ..., "lng": ...}]}`:
  `key`, sky state `WS`, dust grade `DG` and `PM25` for each point.

Header, signature and body-format errors are answered with HTTP 400 and
`{"code", "lang": "E", "message"}`. Otherwise the answer is HTTP 200 with
`code` (0 on success), `lang`, `trid`, the `body` when there is one, and a
`message` when `code` is not 0.

| code | meaning                  |
|------|--------------------------|
| 9001 | Validation Error         |
| 9002 | Your request has expired |
| 9003 | Request data error       |
| 9004 | undefined request        |
| 9005 | Request data type error  |
| 9901 | System Error             |
| 9902 | Incorrect Access         |

## Library use

- `weathersrv.rest.handle_weather_request(headers, body, db, rds, config)`
  handles one request without a web server and returns `(status, json_text)`;
  `check_header` raises `weathersrv.messages.RequestError` for a rejected
  request.
- `weathersrv.server.create_app(config, db, rdp)` returns the Flask
  application, for use under any WSGI server.
- `weathersrv.geo.convert_xy_latlng(mode, var1, var2)` converts
  longitude/latitude to grid coordinates (mode 0) and back (mode 1).
- `weathersrv.signing.encrypt_data` computes request signatures;
  `compress_key_data` encrypts with AES-CBC and PKCS#5 padding.
- `weathersrv.messages.get_error_message(lang, code)` gives the message for
  a result code.

## What it does not do

- It does not create or fill the forecast tables; it only reads them.
- The Redis pool is opened and passed to the transactions, but nothing is
  read from or written to it.
- The built-in server sets no read, write or idle timeouts.