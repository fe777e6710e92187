"""
Sandbox resource handle.

A `Sandbox` owns one runtime instance together with its virtual filesystem.
Host directories are mounted before the first call is served; afterwards the
mount table is frozen for the lifetime of the instance. Calls into the
runtime are serialized by an `asyncio.Lock`, exposed through `acquire()`;
running several instances side by side is how throughput scales.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit

from notesbridge.bridge.errors import MountError, SandboxError
from notesbridge.bridge.streams import ByteStream
from notesbridge.bridge.vfs import Mount, VirtualFilesystem, normalize

logger = logging.getLogger(__name__)


@dataclass
class SandboxRequest:
    """HTTP request in the shape the sandbox consumes: fully-qualified URL and raw body."""

    method: str
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"

    @property
    def query(self) -> str:
        return urlsplit(self.url).query


@dataclass
class SandboxResponse:
    status: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def get_all(self, name: str) -> list[str]:
        name = name.lower()
        return [value for key, value in self.headers if key.lower() == name]

    def get(self, name: str, default: str | None = None) -> str | None:
        values = self.get_all(name)
        return values[0] if values else default

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass
class ScriptCall:
    """Execution of one script of the document root on behalf of a request."""

    script: str
    request: SandboxRequest
    document_root: str


@dataclass
class CliProcess:
    """A command-line run: live output streams and the eventual exit code."""

    stdout: ByteStream
    stderr: ByteStream
    exit_code: asyncio.Future


class Runtime(Protocol):
    program_name: str
    script_extensions: tuple[str, ...]

    async def run_script(self, sandbox: "Sandbox", call: ScriptCall) -> SandboxResponse: ...

    async def cli(self, sandbox: "Sandbox", argv: list[str]) -> CliProcess: ...


class Sandbox:
    def __init__(self, runtime: Runtime):
        self.runtime = runtime
        self.vfs = VirtualFilesystem()
        self.cwd = "/"
        self._lock = asyncio.Lock()
        self._serving = False

    @property
    def mounts(self) -> list[Mount]:
        return self.vfs.mounts

    def mount(self, host_path: str | Path, vfs_path: str) -> Mount:
        """
        Bind a host directory into the sandbox filesystem.

        Raises:
            MountError: If the sandbox already served a call, or the virtual
                path is already mounted.
        """
        if self._serving:
            raise MountError("Mounts must be set up before the sandbox serves its first call")
        mount = self.vfs.mount(host_path, vfs_path)
        logger.info("Mounted %s at %s", mount.host_path, mount.vfs_path)
        return mount

    def chdir(self, vfs_path: str) -> None:
        vfs_path = normalize(vfs_path)
        if not self.vfs.is_dir(vfs_path):
            raise SandboxError(f"Cannot change directory to {vfs_path}: no such mounted directory")
        self.cwd = vfs_path

    @asynccontextmanager
    async def acquire(self):
        """Hold exclusive use of the runtime for the duration of the block."""
        async with self._lock:
            self._serving = True
            yield self

    async def run_script(self, call: ScriptCall, timeout: float | None = None) -> SandboxResponse:
        async with self.acquire():
            execution = self.runtime.run_script(self, call)
            if timeout is None:
                return await execution
            return await asyncio.wait_for(execution, timeout)

    async def cli(self, argv: list[str]) -> CliProcess:
        """Start a command-line run. `argv[0]` is the conventional program name."""
        async with self.acquire():
            return await self.runtime.cli(self, list(argv))
