"""Host-based reverse proxying with request logging and rate limiting."""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from collections.abc import Mapping

import aiohttp
from aiohttp import web

from owaf.config import ProxyConfig, ProxyEntry
from owaf.db import Database
from owaf.errors import HttpStatusError, InternalError
from owaf.rate_limit import RateLimiter, get_limiter

logger = logging.getLogger(__name__)

_HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


def expand_target(target: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace a target of the form ``${NAME}`` by that variable, if it is set."""
    env = os.environ if environ is None else environ
    if target.startswith("${") and target.endswith("}"):
        return env.get(target[2:-1], target)
    return target


def strip_scheme(target: str) -> str:
    """Drop a leading ``http://`` and then ``https://`` from a target."""
    return target.removeprefix("http://").removeprefix("https://")


def find_entry(config: ProxyConfig, host: str) -> ProxyEntry | None:
    """Return the first proxy entry whose host equals ``host``."""
    return next((entry for entry in config.proxy.values() if entry.host == host), None)


def build_upstream(target: str, rest: str, query: str) -> str:
    """Join a target, the remaining path and the query into an upstream URL."""
    return f"{target}/{rest}?{query}"


class ProxyHandler:
    """Request handler forwarding requests to the upstream configured for their host."""

    def __init__(
        self,
        proxy_config: ProxyConfig,
        database: Database | None,
        limiter: RateLimiter | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.proxy_config = proxy_config
        self.database = database
        self.limiter = limiter if limiter is not None else get_limiter()
        self.environ = os.environ if environ is None else environ

    async def __call__(self, request: web.Request) -> web.StreamResponse:
        host = request.headers.get("Host")
        if host is None:
            raise HttpStatusError(404)
        host_without_port = host.split(":", 1)[0]
        rest = request.match_info.get("rest", "")
        query = request.query_string
        logger.info("host: %s rest: %s query: %s", host_without_port, rest, query)
        await self._record(f"{host} <{rest}>")

        entry = find_entry(self.proxy_config, host_without_port)
        if entry is None:
            raise HttpStatusError(404)
        target = expand_target(entry.target, self.environ)
        if entry.rate_limit is not None:
            allowed = self.limiter.check(
                entry.host,
                request.remote or "",
                entry.rate_limit.requests,
                entry.rate_limit.window_sec,
            )
            if not allowed:
                return web.Response(status=403, text="Rate limit exceeded")

        upstream = build_upstream(target, rest, query)
        logger.info("upstream: %s", upstream)
        return await self._forward(request, upstream, strip_scheme(target))

    async def _record(self, message: str) -> None:
        if self.database is None:
            return
        try:
            await self.database.insert_log(message)
        except (sqlite3.Error, ValueError) as exc:
            logger.debug("could not record request log: %s", exc)

    async def _forward(self, request: web.Request, upstream: str, host: str) -> web.Response:
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in _HOP_BY_HOP and name.lower() not in ("host", "content-length")
        ]
        headers.append(("Host", host))
        body = await request.read() if request.body_exists else None
        try:
            async with aiohttp.ClientSession(auto_decompress=False) as session:
                async with session.request(
                    request.method, upstream, headers=headers, data=body, allow_redirects=False
                ) as response:
                    payload = await response.read()
                    reply_headers = [
                        (name, value)
                        for name, value in response.headers.items()
                        if name.lower() not in _HOP_BY_HOP and name.lower() != "content-length"
                    ]
                    return web.Response(status=response.status, headers=reply_headers, body=payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise InternalError(f"upstream request to {upstream} failed: {exc}") from exc