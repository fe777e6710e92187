"""
Reverse proxy and hot-reload front.

Browsers talk to this server. Every request outside the reserved prefixes is
forwarded to the dev bridge with httpx; reserved paths are served here and
never forwarded:

- `/@devserver/client.js`: the reload client the bridge injects into pages
- `/@devserver/ws`: the WebSocket carrying `full-reload` signals

While running, the document root is watched and every change to a file with
a watched extension reloads all connected pages.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from importlib import resources
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response
from starlette.websockets import WebSocketDisconnect

from notesbridge.database.config.config import settings
from notesbridge.devserver.reload import ReloadHub, watch_sources
from notesbridge.log import configure_logging

logger = logging.getLogger(__name__)

DEVSERVER_PREFIX = "/@devserver"
CLIENT_PATH = f"{DEVSERVER_PREFIX}/client.js"
SOCKET_PATH = f"{DEVSERVER_PREFIX}/ws"
METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
}


def is_reserved(path: str, prefixes: list[str]) -> bool:
    return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in prefixes)


def forward_headers(headers: list[tuple[str, str]], target_host: str) -> list[tuple[str, str]]:
    """Request headers for the bridge, with `Host` rewritten to the target."""
    forwarded = [
        (name, value) for name, value in headers
        if name.lower() not in HOP_BY_HOP and name.lower() != "host"
    ]
    forwarded.append(("host", target_host))
    return forwarded


def relay_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    # httpx already decoded the body, so its encoding and length no longer apply.
    return [
        (name, value) for name, value in headers
        if name.lower() not in HOP_BY_HOP and name.lower() not in ("content-length", "content-encoding")
    ]


def render_client(client_port: int | None) -> str:
    source = resources.files("notesbridge.devserver").joinpath("static/client.js").read_text(encoding="utf-8")
    return (
        source
        .replace("__RELOAD_CLIENT_PORT__", json.dumps(client_port))
        .replace("__RELOAD_SOCKET_PATH__", SOCKET_PATH)
    )


def create_dev_server(
    bridge_url: str = settings.BRIDGE_URL,
    watch_paths: list[str] | None = None,
    extensions: list[str] | None = None,
    reserved_prefixes: list[str] | None = None,
    client_port: int | None = settings.RELOAD_CLIENT_PORT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the proxy application.

    Parameters
    ----------
    bridge_url : str
        Base URL of the dev bridge.
    watch_paths : list[str] | None
        Directories to watch for source changes; nothing is watched when
        empty.
    extensions : list[str] | None
        File extensions triggering a full reload.
    reserved_prefixes : list[str] | None
        Path prefixes served locally and never forwarded.
    client_port : int | None
        WebSocket port announced to the reload client.
    transport : httpx.AsyncBaseTransport | None
        Transport used to reach the bridge (tests plug an ASGI transport in).
    """
    extensions = list(extensions if extensions is not None else settings.WATCH_EXTENSIONS)
    reserved_prefixes = list(reserved_prefixes if reserved_prefixes is not None else settings.RESERVED_PREFIXES)
    if DEVSERVER_PREFIX not in reserved_prefixes:
        reserved_prefixes.append(DEVSERVER_PREFIX)
    target_host = httpx.URL(bridge_url).netloc.decode("ascii")
    hub = ReloadHub()
    client_source = render_client(client_port)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        watcher = None
        if watch_paths:
            watcher = asyncio.create_task(watch_sources(watch_paths, extensions, hub, stop_event))
            logger.info("Watching %s for %s changes", ", ".join(watch_paths), ", ".join(extensions))
        async with httpx.AsyncClient(base_url=bridge_url, transport=transport, timeout=None) as client:
            app.state.client = client
            try:
                yield
            finally:
                stop_event.set()
                if watcher is not None:
                    await watcher

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.hub = hub

    @app.get(CLIENT_PATH)
    async def reload_client():
        return Response(client_source, media_type="text/javascript")

    @app.websocket(SOCKET_PATH)
    async def reload_socket(websocket: WebSocket):
        await hub.connect(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            hub.disconnect(websocket)

    @app.api_route("/{path:path}", methods=METHODS)
    async def forward(request: Request):
        if is_reserved(request.url.path, reserved_prefixes):
            return PlainTextResponse("Not Found", status_code=404)

        client: httpx.AsyncClient = request.app.state.client
        raw_path = request.scope.get("raw_path") or request.url.path.encode("latin-1")
        target = raw_path.split(b"?", 1)[0].decode("latin-1")
        if request.url.query:
            target += "?" + request.url.query
        headers = forward_headers(
            [(name.decode("latin-1"), value.decode("latin-1")) for name, value in request.headers.raw],
            target_host,
        )
        upstream_request = client.build_request(request.method, target, headers=headers, content=await request.body())
        try:
            upstream = await client.send(upstream_request)
        except httpx.HTTPError as exc:
            logger.error("Bridge unreachable at %s: %s", bridge_url, exc)
            return PlainTextResponse("Bad gateway: the bridge is not reachable", status_code=502)

        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in relay_headers(upstream.headers.multi_items()):
            response.raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
        return response

    return app


def main() -> None:
    configure_logging()
    document_root = str(Path(settings.DOCUMENT_ROOT).resolve())
    app = create_dev_server(watch_paths=[document_root])
    logger.info("Dev server on http://%s:%s -> %s", settings.DEV_SERVER_HOST, settings.DEV_SERVER_PORT, settings.BRIDGE_URL)
    uvicorn.run(app, host=settings.DEV_SERVER_HOST, port=settings.DEV_SERVER_PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
