"""Read-only API over the request log and the proxy configuration."""

from __future__ import annotations

import argparse
import logging
import os
import sqlite3
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from aiohttp import web

from owaf.config import ConfigError, ProxyConfig
from owaf.db import Database
from owaf.errors import HttpStatusError

logger = logging.getLogger(__name__)

DATABASE_KEY = web.AppKey("database", Database)
PROXY_PATH_KEY = web.AppKey("proxy_path", str)

_ALLOWED_METHODS = "GET, POST, DELETE, PUT"
_DEFAULT_DB = "owaf-core/data/sqlx.sqlite"


@web.middleware
async def _cors(
    request: web.Request, handler: Callable[[web.Request], Awaitable[web.StreamResponse]]
) -> web.StreamResponse:
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        return web.Response(
            status=200,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": _ALLOWED_METHODS,
            },
        )
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers["Access-Control-Allow-Origin"] = "*"
        raise
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


async def get_logs(request: web.Request) -> web.Response:
    """Return the newest hundred log entries."""
    try:
        logs = await request.app[DATABASE_KEY].recent_logs(100)
    except sqlite3.Error as exc:
        logger.error("Database error: %r", exc)
        status, body = HttpStatusError(500, str(exc)).render()
        return web.json_response(body, status=status)
    return web.json_response(logs)


async def get_proxy_config(request: web.Request) -> web.Response:
    """Return the proxy entries read from the proxy file."""
    path = request.app[PROXY_PATH_KEY] or os.environ.get("PROXY_CONFIG", "owaf-core/proxy.hcl")
    proxy_config = ProxyConfig()
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        logger.warning("Could not find proxy config at %s", path)
    else:
        try:
            proxy_config = ProxyConfig.parse(text)
        except ConfigError as exc:
            logger.error("Failed to parse proxy config %s: %s", path, exc)
    entries = [{"host": e.host, "target": e.target} for e in proxy_config.proxy.values()]
    return web.json_response(entries)


def default_database_url(cwd: str | os.PathLike | None = None) -> str:
    """Pick the database next to the working directory or one level up."""
    base = Path.cwd() if cwd is None else Path(cwd)
    if (base / _DEFAULT_DB).exists():
        return f"sqlite:{_DEFAULT_DB}"
    if (base / ".." / _DEFAULT_DB).exists():
        return f"sqlite:../{_DEFAULT_DB}"
    return f"sqlite:{_DEFAULT_DB}"


def create_app(database: Database, proxy_path: str | os.PathLike | None = None) -> web.Application:
    """Build the API application around an open database."""
    app = web.Application(middlewares=[_cors])
    app[DATABASE_KEY] = database
    app[PROXY_PATH_KEY] = str(proxy_path) if proxy_path is not None else ""
    app.router.add_get("/api/log", get_logs)
    app.router.add_get("/api/proxy-config", get_proxy_config)
    return app


async def _build_app(db_url: str) -> web.Application:
    database = await Database.connect(db_url)
    app = create_app(database)

    async def close_database(_app: web.Application) -> None:
        await database.close()

    app.on_cleanup.append(close_database)
    return app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="owaf-server", description="Serve the request log and proxy configuration as JSON."
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    db_url = os.environ.get("DATABASE_URL", default_database_url())
    logger.info("Connecting to database at %s", db_url)
    listen_addr = "127.0.0.1:8009"
    logger.info("owaf-server listening on http://%s", listen_addr)
    web.run_app(_build_app(db_url), host="127.0.0.1", port=8009, print=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())