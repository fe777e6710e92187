from __future__ import annotations

import asyncio

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from watchfiles import Change

from notesbridge.devserver.proxy import (
    CLIENT_PATH,
    SOCKET_PATH,
    create_dev_server,
    forward_headers,
    is_reserved,
    render_client,
)
from notesbridge.devserver.reload import FULL_RELOAD, ReloadHub, changed_sources, watch_sources

BRIDGE_URL = "http://127.0.0.1:3000"


def stub_bridge() -> tuple[FastAPI, list[dict]]:
    seen: list[dict] = []
    app = FastAPI()

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def echo(request: Request):
        seen.append({
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
            "host": request.headers.get("host"),
            "body": await request.body(),
        })
        if request.url.path == "/add":
            response = Response(status_code=302, headers={"location": "/"})
            response.raw_headers.append((b"set-cookie", b"a=1; Path=/"))
            response.raw_headers.append((b"set-cookie", b"b=2; Path=/"))
            return response
        return JSONResponse({"path": request.url.path})

    return app, seen


@pytest.fixture
def bridge():
    return stub_bridge()


@pytest.fixture
def client(bridge):
    app, _ = bridge
    proxy = create_dev_server(BRIDGE_URL, transport=httpx.ASGITransport(app=app), client_port=None)
    with TestClient(proxy, follow_redirects=False) as test_client:
        yield test_client


def test_reserved_prefix_matching() -> None:
    prefixes = ["/@devserver", "/assets/"]
    assert is_reserved("/@devserver", prefixes)
    assert is_reserved("/@devserver/client.js", prefixes)
    assert is_reserved("/assets/app.css", prefixes)
    assert not is_reserved("/@devserverx", prefixes)
    assert not is_reserved("/add", prefixes)


def test_forward_headers_rewrite_host() -> None:
    headers = forward_headers([("Host", "localhost:5173"), ("Connection", "keep-alive"), ("Cookie", "a=1")], "127.0.0.1:3000")
    assert headers == [("Cookie", "a=1"), ("host", "127.0.0.1:3000")]


def test_requests_are_forwarded_to_the_bridge(client: TestClient, bridge) -> None:
    _, seen = bridge
    response = client.post("/add?from=proxy", content=b"content=hi", headers={"content-type": "application/x-www-form-urlencoded"})

    assert response.status_code == 302
    assert response.headers["location"] == "/"
    assert response.headers.get_list("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]
    assert seen == [{
        "method": "POST",
        "path": "/add",
        "query": "from=proxy",
        "host": "127.0.0.1:3000",
        "body": b"content=hi",
    }]


def test_forwarded_body_is_relayed(client: TestClient) -> None:
    response = client.get("/delete/3")
    assert response.status_code == 200
    assert response.json() == {"path": "/delete/3"}


def test_reserved_paths_are_never_forwarded(client: TestClient, bridge) -> None:
    _, seen = bridge
    assert client.get("/@devserver/unknown").status_code == 404
    assert seen == []


def test_reload_client_is_served_locally(client: TestClient, bridge) -> None:
    _, seen = bridge
    response = client.get(CLIENT_PATH)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/javascript")
    assert SOCKET_PATH in response.text
    assert "full-reload" in response.text
    assert seen == []


def test_reload_client_announces_configured_port() -> None:
    assert "const RELOAD_PORT = 24678;" in render_client(24678)
    assert "const RELOAD_PORT = null;" in render_client(None)


def test_unreachable_bridge_is_a_502() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    proxy = create_dev_server(BRIDGE_URL, transport=httpx.MockTransport(refuse))
    with TestClient(proxy) as test_client:
        response = test_client.get("/")
    assert response.status_code == 502
    assert "bridge is not reachable" in response.text


class FakeSocket:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.sent: list[dict] = []

    async def send_json(self, message: dict) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(message)


def test_broadcast_reaches_live_clients_and_drops_gone_ones() -> None:
    hub = ReloadHub()
    live, gone, closed = FakeSocket(), FakeSocket(WebSocketDisconnect()), FakeSocket(RuntimeError("closed"))
    hub.clients.update({live, gone, closed})

    delivered = asyncio.run(hub.broadcast(FULL_RELOAD))

    assert delivered == 1
    assert live.sent == [{"type": "full-reload"}]
    assert hub.clients == {live}


def test_changed_sources_filters_by_extension() -> None:
    changes = {
        (Change.modified, "/site/index.py"),
        (Change.added, "/site/views/home.html"),
        (Change.modified, "/site/database.sqlite"),
        (Change.modified, "/site/index.py"),
    }
    assert changed_sources(changes, [".py", ".html"]) == ["/site/index.py", "/site/views/home.html"]
    assert changed_sources(changes, [".css"]) == []


def test_source_change_broadcasts_full_reload(tmp_path) -> None:
    hub = ReloadHub()
    browser = FakeSocket()
    hub.clients.add(browser)

    async def scenario():
        stop_event = asyncio.Event()
        watcher = asyncio.create_task(watch_sources([str(tmp_path)], [".py"], hub, stop_event))
        await asyncio.sleep(0.5)
        (tmp_path / "notes.txt").write_text("ignored")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 15
        revision = 0
        while not browser.sent and loop.time() < deadline:
            revision += 1
            (tmp_path / "index.py").write_text(f"revision = {revision}\n")
            await asyncio.sleep(0.5)
        stop_event.set()
        await asyncio.wait_for(watcher, 10)

    asyncio.run(scenario())
    assert browser.sent
    assert all(message == FULL_RELOAD for message in browser.sent)


def test_unwatched_extensions_do_not_reload(tmp_path) -> None:
    hub = ReloadHub()
    browser = FakeSocket()
    hub.clients.add(browser)

    async def scenario():
        stop_event = asyncio.Event()
        watcher = asyncio.create_task(watch_sources([str(tmp_path)], [".py"], hub, stop_event))
        await asyncio.sleep(0.5)
        (tmp_path / "style.css").write_text("body {}")
        await asyncio.sleep(2.5)
        stop_event.set()
        await asyncio.wait_for(watcher, 10)

    asyncio.run(scenario())
    assert browser.sent == []
