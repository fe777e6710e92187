from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import pytest

from notesbridge.bridge.handler import RequestHandler
from notesbridge.bridge.runtimes import PythonRuntime
from notesbridge.bridge.sandbox import CliProcess, Sandbox, SandboxResponse
from notesbridge.bridge.streams import ByteStream
from notesbridge.database.core.connection import dispose_engines

SITE_ENTRY = Path(__file__).resolve().parents[1] / "site" / "index.py"
VFS_ROOT = "/var/www/html"


class RecordingRuntime:
    """Runtime double: records what the sandbox asks of it."""

    program_name = "python"
    script_extensions = (".py",)

    def __init__(self, response: SandboxResponse | None = None, exit_code: int = 0, delay: float = 0.0):
        self.response = response or SandboxResponse(200, [("content-type", "text/plain")], b"ok")
        self.exit_code = exit_code
        self.delay = delay
        self.calls = []
        self.argv: list[str] | None = None
        self.active = 0
        self.max_active = 0

    async def run_script(self, sandbox, call):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.calls.append(call)
            return self.response
        finally:
            self.active -= 1

    async def cli(self, sandbox, argv):
        self.argv = argv
        stdout, stderr = ByteStream(), ByteStream()
        stdout.feed(b"hello ")
        stdout.feed(b"world\n")
        stdout.close()
        stderr.feed(b"warning\n")
        stderr.close()
        exit_code = asyncio.get_running_loop().create_future()
        exit_code.set_result(self.exit_code)
        return CliProcess(stdout=stdout, stderr=stderr, exit_code=exit_code)


@pytest.fixture(autouse=True)
def _dispose_engines():
    yield
    dispose_engines()


@pytest.fixture
def document_root(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    shutil.copy(SITE_ENTRY, root / "index.py")
    (root / "robots.txt").write_text("User-agent: *\nDisallow:\n")
    (root / "pixel.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x01\x02\xff")
    return root


def make_handler(document_root: Path, runtime=None) -> RequestHandler:
    async def factory() -> Sandbox:
        sandbox = Sandbox(runtime or PythonRuntime())
        sandbox.mount(document_root, VFS_ROOT)
        sandbox.chdir(VFS_ROOT)
        return sandbox

    return RequestHandler(document_root=VFS_ROOT, sandbox_factory=factory)


@pytest.fixture
def handler(document_root: Path) -> RequestHandler:
    return make_handler(document_root)
