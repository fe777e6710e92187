"""
Development HTTP bridge.

A FastAPI application with one catch-all endpoint relaying native HTTP
requests into the sandbox and the sandbox's responses back out:

- Requests keep their method, fully-qualified URL, headers and the raw,
  unparsed body; the sandboxed interpreter parses the body itself
- Status codes are relayed verbatim
- `Set-Cookie` stays one header entry per cookie
- HTML responses get the hot-reload client script injected before
  `</body>`; everything else is relayed byte for byte

Run with `notesbridge-bridge`. The bridge boots its primary sandbox before
listening and exits with status 1 if that fails.
"""

import asyncio
import logging
import re
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from notesbridge.bridge.errors import SandboxStartupError
from notesbridge.bridge.handler import RequestHandler
from notesbridge.bridge.runtimes import create_runtime
from notesbridge.bridge.sandbox import Sandbox, SandboxRequest, SandboxResponse
from notesbridge.database.config.config import settings
from notesbridge.log import configure_logging

logger = logging.getLogger(__name__)

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
INTERNAL_ERROR_MESSAGE = "Internal server error"
RELOAD_CLIENT_TAG = '\n<!-- dev-server reload client -->\n<script type="module" src="{src}"></script>\n'
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
}

_BODY_CLOSE = re.compile(r"</body>", re.IGNORECASE)


@dataclass
class NativeResponse:
    status: int
    headers: list[tuple[str, str]]
    body: bytes


def is_html(headers: list[tuple[str, str]]) -> bool:
    return any(
        name.lower() == "content-type" and "text/html" in value.lower()
        for name, value in headers
    )


def inject_reload_client(html: str, src: str) -> str:
    """Insert the reload client tag right before `</body>`, or append it when there is none."""
    tag = RELOAD_CLIENT_TAG.format(src=src)
    match = _BODY_CLOSE.search(html)
    if match is None:
        return html + tag
    return html[:match.start()] + tag + html[match.start():]


def relay_headers(headers: list[tuple[str, str]]) -> list[tuple[str, str]]:
    """
    Prepare sandbox headers for the native response.

    Hop-by-hop headers and `Content-Length` are dropped (the native server
    computes the length of the body it actually sends). `Set-Cookie` keeps
    one entry per cookie; other repeated headers are folded into a single
    comma-separated value, keeping the position of their first occurrence.
    """
    relayed: list[tuple[str, str]] = []
    folded: dict[str, int] = {}
    for name, value in headers:
        lowered = name.lower()
        if lowered in HOP_BY_HOP or lowered == "content-length":
            continue
        if lowered == "set-cookie":
            relayed.append((name, value))
            continue
        if lowered in folded:
            index = folded[lowered]
            relayed[index] = (relayed[index][0], f"{relayed[index][1]}, {value}")
            continue
        folded[lowered] = len(relayed)
        relayed.append((name, value))
    return relayed


def translate_response(result: SandboxResponse, reload_client_src: str) -> NativeResponse:
    headers = relay_headers(result.headers)
    if is_html(result.headers):
        html = result.body.decode("utf-8", errors="replace")
        body = inject_reload_client(html, reload_client_src).encode("utf-8")
    else:
        body = result.body
    return NativeResponse(status=result.status, headers=headers, body=body)


def to_starlette(native: NativeResponse) -> Response:
    response = Response(content=native.body, status_code=native.status)
    for name, value in native.headers:
        response.raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return response


async def to_sandbox_request(request: Request, absolute_url: str) -> SandboxRequest:
    """Rebuild a native request in the sandbox's shape, with the body left unparsed."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("latin-1")
    raw_path = raw_path.split(b"?", 1)[0]
    query = request.scope.get("query_string", b"")
    url = absolute_url.rstrip("/") + raw_path.decode("latin-1")
    if query:
        url += "?" + query.decode("latin-1")
    return SandboxRequest(
        method=request.method,
        url=url,
        headers=[(name.decode("latin-1"), value.decode("latin-1")) for name, value in request.headers.raw],
        body=await request.body(),
    )


def create_bridge_app(
    handler: RequestHandler,
    absolute_url: str = settings.ABSOLUTE_URL,
    reload_client_src: str = settings.RELOAD_CLIENT_PATH,
) -> FastAPI:
    """
    Build the bridge application around a request handler.

    Parameters
    ----------
    handler : RequestHandler
        Resolves requests against the sandbox's document root.
    absolute_url : str
        Scheme, host and port used to rebuild fully-qualified URLs.
    reload_client_src : str
        URL of the hot-reload client injected into HTML pages.

    Returns
    -------
    FastAPI
        The bridge application. Its lifespan boots the primary sandbox.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await handler.get_primary_sandbox()
        yield

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.handler = handler

    @app.api_route("/{path:path}", methods=METHODS)
    async def relay(request: Request):
        try:
            sandbox_request = await to_sandbox_request(request, absolute_url)
            result = await handler.request(sandbox_request)
            return to_starlette(translate_response(result, reload_client_src))
        except Exception:
            logger.exception("Internal error while serving %s %s", request.method, request.url.path)
            return PlainTextResponse(INTERNAL_ERROR_MESSAGE, status_code=500)

    return app


def sandbox_factory(host_root: str | Path, vfs_root: str):
    """Return a coroutine function building a sandbox with `host_root` mounted at `vfs_root`."""

    async def factory() -> Sandbox:
        runtime = await asyncio.to_thread(
            create_runtime,
            settings.RUNTIME,
            program_name=settings.PROGRAM_NAME,
            module_path=settings.RUNTIME_WASM,
            script_extensions=tuple(settings.SCRIPT_EXTENSIONS),
        )
        sandbox = Sandbox(runtime)
        sandbox.mount(host_root, vfs_root)
        sandbox.chdir(vfs_root)
        return sandbox

    return factory


def build_request_handler() -> RequestHandler:
    host_root = Path(settings.DOCUMENT_ROOT).resolve()
    logger.info("Document root: %s", host_root)
    return RequestHandler(
        document_root=settings.VFS_DOCUMENT_ROOT,
        sandbox_factory=sandbox_factory(host_root, settings.VFS_DOCUMENT_ROOT),
        entry_script=settings.ENTRY_SCRIPT,
        timeout=settings.SANDBOX_TIMEOUT,
    )


async def serve(handler: RequestHandler) -> None:
    await handler.get_primary_sandbox()
    config = uvicorn.Config(
        create_bridge_app(handler),
        host=settings.BRIDGE_HOST,
        port=settings.BRIDGE_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
    server = uvicorn.Server(config)
    logger.info("Bridge listening on %s:%s", settings.BRIDGE_HOST, settings.BRIDGE_PORT)
    await server.serve()
    if not server.started:
        raise SandboxStartupError("The bridge server did not start")


def main() -> None:
    configure_logging()
    try:
        asyncio.run(serve(build_request_handler()))
    except Exception:
        logger.exception("Bridge failed to start")
        sys.exit(1)


if __name__ == "__main__":
    main()
