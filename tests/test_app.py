import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from owaf.app import banner_lines, create_app, render_404
from owaf.config import DbConfig, LogConfig, ProxyConfig, ProxyEntry, ServerConfig, TlsConfig
from owaf.db import Database
from owaf.errors import PublicError
from owaf.proxy import ProxyHandler
from owaf.rate_limit import RateLimiter


@pytest_asyncio.fixture
async def database():
    database = await Database.connect("sqlite::memory:")
    yield database
    await database.close()


@pytest_asyncio.fixture
async def serve():
    clients = []

    async def start(handler):
        client = TestClient(TestServer(create_app(handler)))
        await client.start_server()
        clients.append(client)
        return client

    yield start
    for client in clients:
        await client.close()


@pytest_asyncio.fixture
async def forbidden_upstream():
    async def deny(request):
        return web.Response(status=403, text="AccessDenied")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", deny)
    server = TestServer(app)
    await server.start_server()
    yield f"http://{server.host}:{server.port}"
    await server.close()


@pytest_asyncio.fixture
async def non_http_upstream():
    async def greet(reader, writer):
        writer.write(b"\x4a\x00\x00\x00\x0a8.0.0 not http\x00")
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(greet, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}"
    server.close()
    await server.wait_closed()


@pytest.mark.asyncio
async def test_hello_world(database, serve):
    client = await serve(ProxyHandler(ProxyConfig(), database, RateLimiter(), {}))
    resp = await client.get("/")
    assert resp.status == 404
    assert resp.content_type == "text/html"
    assert "Not Found" in await resp.text()


@pytest.mark.asyncio
async def test_minio_proxy(database, serve, forbidden_upstream):
    config = ProxyConfig({"minio": ProxyEntry(host="minio.example.com", target="${MINIO_URL}")})
    handler = ProxyHandler(config, database, RateLimiter(), {"MINIO_URL": forbidden_upstream})
    client = await serve(handler)
    resp = await client.get("/some/path", headers={"Host": "minio.example.com"})
    assert resp.status == 403


@pytest.mark.asyncio
async def test_mysql_proxy(database, serve, non_http_upstream):
    config = ProxyConfig({"mysql": ProxyEntry(host="mysql.example.com", target="${MYSQL_URL}")})
    handler = ProxyHandler(config, database, RateLimiter(), {"MYSQL_URL": non_http_upstream})
    client = await serve(handler)
    resp = await client.get("/", headers={"Host": "mysql.example.com"})
    assert resp.status == 500


@pytest.mark.asyncio
async def test_public_error_renders_json(serve):
    async def failing(request):
        raise PublicError("boom")

    client = await serve(failing)
    resp = await client.get("/anything")
    assert resp.status == 500
    body = await resp.json()
    assert body["error"]["brief"] == "boom"


@pytest.mark.asyncio
async def test_empty_404_response_gets_page(serve):
    async def missing(request):
        return web.Response(status=404)

    client = await serve(missing)
    resp = await client.get("/gone")
    assert resp.status == 404
    assert "Page not found" in await resp.text()


@pytest.mark.asyncio
async def test_cors_headers(serve):
    async def ok(request):
        return web.Response(text="ok")

    client = await serve(ok)
    resp = await client.get("/", headers={"Origin": "http://example.com"})
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    preflight = await client.options(
        "/", headers={"Origin": "http://example.com", "Access-Control-Request-Method": "PATCH"}
    )
    assert preflight.status == 200
    assert preflight.headers["Access-Control-Allow-Methods"] == "*"
    assert preflight.headers["Access-Control-Allow-Headers"] == "*"


@pytest.mark.asyncio
async def test_openapi_document(database, serve):
    client = await serve(ProxyHandler(ProxyConfig(), database, RateLimiter(), {}))
    resp = await client.get("/api-doc/openapi.json")
    assert resp.status == 200
    doc = await resp.json()
    assert doc["info"]["version"] == "0.0.1"
    assert doc["paths"] == {}
    page = await client.get("/scalar")
    assert "/api-doc/openapi.json" in await page.text()


def test_render_404_escapes_brief():
    page = render_404("<script>")
    assert "&lt;script&gt;" in page
    assert "<script>" not in page


def test_banner_lines_plain_and_tls():
    server = ServerConfig(db=DbConfig(url="sqlite::memory:"), log=LogConfig(), listen_addr="0.0.0.0:8008")
    lines = banner_lines(server)
    assert any(line.endswith("http://127.0.0.1:8008/scalar") for line in lines)
    assert any(line.endswith("http://127.0.0.1:8008/login") for line in lines)
    server.tls = TlsConfig(cert="cert.pem", key="key.pem")
    assert any(line.endswith("https://127.0.0.1:8008/scalar") for line in banner_lines(server))