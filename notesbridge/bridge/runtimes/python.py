"""
In-process Python runtime.

Front-controller scripts are ASGI entry files: the script is executed once
from the sandbox filesystem (like `runpy`), its `application` attribute is
kept, and each request drives that application through the ASGI protocol.
The loaded application is reused until the entry file changes on disk.

Command-line runs go to a child interpreter whose working directory is the
host directory behind the sandbox's current directory.
"""

import asyncio
import logging
import runpy
import sys
from pathlib import Path
from urllib.parse import unquote, urlsplit

from notesbridge.bridge.errors import ScriptError, SandboxError
from notesbridge.bridge.sandbox import CliProcess, SandboxResponse, ScriptCall
from notesbridge.bridge.streams import CHUNK_SIZE, ByteStream

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def build_scope(call: ScriptCall) -> dict:
    """Translate a sandbox request into an ASGI HTTP connection scope."""
    request = call.request
    parts = urlsplit(request.url)
    raw_path = parts.path or "/"
    scheme = parts.scheme or "http"
    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": request.method.upper(),
        "scheme": scheme,
        "path": unquote(raw_path),
        "raw_path": raw_path.encode("latin-1"),
        "query_string": parts.query.encode("latin-1"),
        "root_path": "",
        "headers": [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in request.headers
        ],
        "server": (parts.hostname or "localhost", parts.port or DEFAULT_PORTS.get(scheme, 80)),
        "client": ("127.0.0.1", 0),
    }


async def call_asgi(app, scope: dict, body: bytes) -> SandboxResponse:
    """
    Run one HTTP request through an ASGI application and collect its response.

    The whole body is delivered in a single `http.request` message; the
    application only sees `http.disconnect` once the response is complete.
    """
    status = None
    headers: list[tuple[str, str]] = []
    chunks: list[bytes] = []
    complete = asyncio.Event()
    body_sent = False

    async def receive():
        nonlocal body_sent
        if not body_sent:
            body_sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        await complete.wait()
        return {"type": "http.disconnect"}

    async def send(message):
        nonlocal status, headers
        if message["type"] == "http.response.start":
            status = message["status"]
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in message.get("headers", [])
            ]
        elif message["type"] == "http.response.body":
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                complete.set()

    try:
        await app(scope, receive, send)
    except Exception:
        if not complete.is_set():
            raise
        # Starlette re-raises after it has already sent its 500 page.
        logger.exception("Application raised after completing its response")
    finally:
        complete.set()

    if status is None:
        raise ScriptError("The application finished without sending a response")
    return SandboxResponse(status=status, headers=headers, body=b"".join(chunks))


class PythonRuntime:
    script_extensions = (".py",)

    def __init__(self, program_name: str = "python", executable: str = sys.executable,
                 entry_attribute: str = "application"):
        self.program_name = program_name
        self.executable = executable
        self.entry_attribute = entry_attribute
        self._applications: dict[Path, tuple[float, object]] = {}

    def load_application(self, host_path: Path):
        """Execute an entry file and return its ASGI application, cached per modification time."""
        mtime = host_path.stat().st_mtime
        cached = self._applications.get(host_path)
        if cached is not None and cached[0] == mtime:
            return cached[1]
        namespace = runpy.run_path(str(host_path), run_name="__sandbox__")
        application = namespace.get(self.entry_attribute)
        if application is None:
            raise ScriptError(f"{host_path.name} does not define `{self.entry_attribute}`")
        if cached is not None:
            logger.info("Reloaded %s", host_path)
        self._applications[host_path] = (mtime, application)
        return application

    async def run_script(self, sandbox, call: ScriptCall) -> SandboxResponse:
        host_path = sandbox.vfs.resolve(call.script)
        if host_path is None or not host_path.is_file():
            raise ScriptError(f"No such script in the sandbox: {call.script}")
        application = await asyncio.to_thread(self.load_application, host_path)
        return await call_asgi(application, build_scope(call), call.request.body)

    async def cli(self, sandbox, argv: list[str]) -> CliProcess:
        host_cwd = sandbox.vfs.resolve(sandbox.cwd)
        if host_cwd is None:
            raise SandboxError(f"Working directory {sandbox.cwd} is not mounted")
        process = await asyncio.create_subprocess_exec(
            *argv,
            executable=self.executable,
            cwd=str(host_cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = ByteStream(), ByteStream()
        readers = [
            asyncio.ensure_future(_relay_pipe(process.stdout, stdout)),
            asyncio.ensure_future(_relay_pipe(process.stderr, stderr)),
        ]

        async def wait_for_exit() -> int:
            await asyncio.gather(*readers)
            return await process.wait()

        return CliProcess(stdout=stdout, stderr=stderr, exit_code=asyncio.ensure_future(wait_for_exit()))


async def _relay_pipe(reader: asyncio.StreamReader, stream: ByteStream) -> None:
    try:
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                break
            stream.feed(chunk)
    except Exception as exc:
        stream.fail(exc)
        raise
    stream.close()
