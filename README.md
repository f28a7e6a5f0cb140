# owaf

`owaf` is a small reverse proxy. It picks an upstream by the `Host` header of each
incoming request, can limit how many requests one client address makes to a host in
a fixed time window, and writes a line for every request to a SQLite `logs` table.

A second command, `owaf-server`, serves a read-only JSON API over that log table and
over the proxy rules file.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

### Server settings

`owaf` reads a TOML file, `config.toml` by default or the file named by
`APP_CONFIG`. Environment variables starting with `APP_` set top-level keys
(for example `APP_LISTEN_ADDR` sets `listen_addr`); values `true`/`false` and
numbers are converted, everything else is kept as text.

```toml
listen_addr = "127.0.0.1:8008"   # the default

[db]
url = "sqlite:data/sqlx.sqlite"  # "database_url" is accepted as well

[log]
filter_level = "info"
stdout = true
format = "full"        # pretty | compact | json | full
rolling = "daily"      # minutely | hourly | daily | never
directory = "./logs"
file_name = "app.log"

# Optional: serve over TLS
# [tls]
# cert = "certs/cert.pem"
# key = "certs/key.pem"
```

The `[db]` and `[log]` tables must be present. Inside `[log]`, every key may be left
out; the on/off switches (`stdout`, `with_ansi`, `with_level`, `with_target`,
`with_thread_ids`, `with_thread_names`, `with_source_location`) default to `true`.
When `stdout` is false, logs go to `directory/file_name`, rotated as `rolling` says.
An unknown `format` or `rolling` value is a configuration error.

Only `sqlite:` database URLs are supported (`sqlite::memory:` gives an in-memory
database). The `logs` table is created if it does not exist. If `db.url` is empty,
`DATABASE_URL` is used instead; startup fails if neither is set.

The TLS `cert` and `key` may be file paths or the PEM text itself.

### Proxy rules

Proxy rules live in an HCL file, `proxy.hcl` by default or the file named by
`PROXY_CONFIG`:

```hcl
proxy "api" {
  host   = "api.example.com"
  target = "http://localhost:8080"

  rate_limit {
    requests   = 100
    window_sec = 60
  }
}

proxy "storage" {
  host   = "storage.example.com"
  target = "${STORAGE_URL}"
}
```

A missing or unreadable rules file gives no rules; a file that does not parse is
reported on standard error and also gives no rules.

## Running

```
owaf
```

prints the listening address and serves on `listen_addr` until stopped with Ctrl+C
or SIGTERM. For every request it:

- records `"<Host header> <<path>>"` in the `logs` table;
- looks up the first rule whose `host` equals the request host without its port, and
  answers with a 404 HTML page when there is none;
- replaces a `target` of the form `${NAME}` by the environment variable `NAME` when
  it is set;
- applies the rule's rate limit per client address, answering
  `403 Rate limit exceeded` once the limit for the current window is used up
  (`requests = 0` blocks every request, `window_sec = 0` turns the limit off);
- forwards the method, headers and body to `<target>/<path>?<query>`, with the
  `Host` header set to the target without its scheme, and returns the upstream
  response. If the upstream cannot be reached the answer is a 500 JSON error.

Every response carries `Access-Control-Allow-Origin: *`, and CORS preflight requests
are answered directly. Two paths are served by `owaf` itself rather than proxied:
`/api-doc/openapi.json` (a minimal OpenAPI document) and `/scalar` (a page linking
to it).

```
owaf-server
```

starts the API on `127.0.0.1:8009` with these endpoints:

- `GET /api/log` returns the 100 most recent log entries, newest first, as
  `[{"id": ..., "message": ...}]`.
- `GET /api/proxy-config` returns the proxy rules as
  `[{"host": ..., "target": ...}]`, read on each request from the file named by
  `PROXY_CONFIG`, or `owaf-core/proxy.hcl` by default.

It uses `DATABASE_URL` when set, and otherwise `owaf-core/data/sqlx.sqlite` in the
working directory or one level up.

## Using it as a library

```python
from owaf import hcl
from owaf.config import ProxyConfig
from owaf.proxy import build_upstream, expand_target
from owaf.rate_limit import RateLimiter

limiter = RateLimiter()
allowed = limiter.check("example.com", "192.0.2.1", 2, 10)

config = ProxyConfig.parse('proxy "a" { host = "example.com" target = "http://localhost:8080" }')
document = hcl.loads('proxy "a" { host = "example.com" }')

upstream = build_upstream("http://localhost:8080", "some/path", "q=1")
```

`RateLimiter` takes an optional `clock` callable returning seconds, which makes it
easy to test. `owaf.app.create_app` and `owaf.server_api.create_app` build the two
aiohttp applications without starting a server.

## What it does not do

- There are no user accounts or login. `owaf.db` defines `User` and `SafeUser`
  records, but nothing stores or checks them, and the login address printed at
  startup is not served by `owaf` itself: like any other path, it is proxied.
- There is no web dashboard; `owaf-server` offers only the two JSON endpoints above.
- Certificates are not obtained automatically; TLS needs a certificate and key you
  provide.
- Only SQLite is supported for the request log.