"""The proxy web application, its middleware and the command that serves it."""

from __future__ import annotations

import argparse
import html
import logging
import ssl
import sys
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path

from aiohttp import web

from owaf import config, db
from owaf.config import ConfigError, ProxyConfig, ServerConfig, TlsConfig
from owaf.errors import AppError
from owaf.proxy import ProxyHandler
from owaf.rate_limit import get_limiter

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

_OPENAPI_PATH = "/api-doc/openapi.json"


@web.middleware
async def cors_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Allow any origin, method and header."""
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        return web.Response(
            status=200,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "*",
                "Access-Control-Allow-Headers": "*",
            },
        )
    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers["Access-Control-Allow-Origin"] = "*"
        raise
    response.headers["Access-Control-Allow-Origin"] = "*"
    return response


def render_404(brief: str) -> str:
    """Render the HTML page shown for requests that found nothing."""
    text = html.escape(brief)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n<meta charset=\"utf-8\">\n<title>404 Not Found</title>\n</head>\n"
        f"<body>\n<h1>404 Not Found</h1>\n<p>{text}</p>\n</body>\n</html>\n"
    )


def _not_found(brief: str) -> web.Response:
    return web.Response(status=404, text=render_404(brief), content_type="text/html")


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Render application errors, showing an HTML page for 404."""
    try:
        response = await handler(request)
    except AppError as exc:
        status, body = exc.render()
        if status == 404:
            return _not_found(body["error"]["brief"])
        return web.json_response(body, status=status)
    except web.HTTPException as exc:
        if exc.status == 404:
            return _not_found(exc.reason)
        raise
    if response.status == 404 and isinstance(response, web.Response) and not response.body:
        return _not_found("Page not found")
    return response


def _openapi_document() -> dict:
    return {
        "openapi": "3.1.0",
        "info": {"title": "owaf web api", "version": "0.0.1"},
        "paths": {},
        "components": {},
    }


async def _openapi(request: web.Request) -> web.Response:
    return web.json_response(_openapi_document())


async def _api_page(request: web.Request) -> web.Response:
    page = (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n<title>API</title>\n</head>\n"
        f"<body>\n<h1>owaf web api</h1>\n<p><a href=\"{_OPENAPI_PATH}\">OpenAPI document</a></p>\n"
        "</body>\n</html>\n"
    )
    return web.Response(text=page, content_type="text/html")


def create_app(proxy_handler: Handler) -> web.Application:
    """Build the application: API documentation routes, then everything else proxied."""
    app = web.Application(middlewares=[cors_middleware, error_middleware])
    app.router.add_get(_OPENAPI_PATH, _openapi)
    app.router.add_get("/scalar", _api_page)
    app.router.add_route("*", "/{rest:.*}", proxy_handler)
    return app


def banner_lines(config: ServerConfig) -> list[str]:
    """Return the lines printed when the server starts."""
    scheme = "https" if config.tls is not None else "http"
    shown = config.listen_addr.replace("0.0.0.0", "127.0.0.1")
    return [
        f"🔄 Listening on {config.listen_addr}",
        f"📖 Open API page: {scheme}://{shown}/scalar",
        f"🔑 Login page: {scheme}://{shown}/login",
    ]


def _split_addr(addr: str) -> tuple[str, int]:
    host, _, port = addr.rpartition(":")
    return host.strip("[]"), int(port)


def _pem_file(value: str, directory: str, name: str) -> str:
    if "-----BEGIN" not in value:
        return value
    path = Path(directory) / name
    path.write_text(value, encoding="utf-8")
    return str(path)


def _ssl_context(tls: TlsConfig) -> ssl.SSLContext:
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    with tempfile.TemporaryDirectory() as directory:
        context.load_cert_chain(
            _pem_file(tls.cert, directory, "cert.pem"),
            _pem_file(tls.key, directory, "key.pem"),
        )
    return context


async def _build_app(server_config: ServerConfig, proxy_config: ProxyConfig) -> web.Application:
    database = await db.init(server_config.db)
    app = create_app(ProxyHandler(proxy_config, database, get_limiter()))

    async def close_database(_app: web.Application) -> None:
        await database.close()

    app.on_cleanup.append(close_database)
    return app


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="owaf", description="Reverse proxy routing requests by host name."
    )
    parser.parse_args(argv)
    try:
        server_config = config.init()
    except ConfigError as exc:
        print(
            f"It looks like your config is invalid. The following error occurred: {exc}",
            file=sys.stderr,
        )
        return 1

    log_handler = server_config.log.setup()
    try:
        logger.info("log level: %s", server_config.log.filter_level)
        for line in banner_lines(server_config):
            print(line)
        host, port = _split_addr(server_config.listen_addr)
        ssl_context = _ssl_context(server_config.tls) if server_config.tls else None
        web.run_app(
            _build_app(server_config, config.get_proxy()),
            host=host,
            port=port,
            ssl_context=ssl_context,
            print=None,
        )
    finally:
        logging.getLogger().removeHandler(log_handler)
        log_handler.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())