"""
Request handler in front of the sandbox.

Resolves each request path under the document root of the sandbox
filesystem, the way a web server with a `try_files ... /index.py` rule
would:

- a directory resolves to its entry file
- an existing script is executed by the sandbox runtime
- an existing static file is returned as is
- anything else goes through the file-not-found action, by default an
  internal redirect to the front controller, which is what lets virtual
  routes such as `/add` or `/delete/7` reach the application
"""

import asyncio
import logging
import mimetypes
import posixpath
from dataclasses import dataclass
from typing import Awaitable, Callable
from urllib.parse import unquote

from notesbridge.bridge.sandbox import Sandbox, SandboxRequest, SandboxResponse, ScriptCall
from notesbridge.bridge.vfs import join

logger = logging.getLogger(__name__)

PRIVATE_SUFFIXES = (".sqlite", ".sqlite3", ".sqlite-journal", ".db", ".pyc")


@dataclass(frozen=True)
class InternalRedirect:
    uri: str


@dataclass(frozen=True)
class RespondNotFound:
    pass


FileNotFoundAction = InternalRedirect | RespondNotFound


class RequestHandler:
    def __init__(
        self,
        document_root: str,
        sandbox_factory: Callable[[], Awaitable[Sandbox]],
        entry_script: str = "/index.py",
        file_not_found: Callable[[str], FileNotFoundAction] | None = None,
        timeout: float | None = None,
    ):
        """
        Args:
            document_root: Virtual path of the document root inside the sandbox.
            sandbox_factory: Coroutine function returning a mounted sandbox.
                Called once for the primary instance.
            entry_script: Front controller, relative to the document root.
            file_not_found: Decides what happens to paths with no file behind
                them. Defaults to an internal redirect to `entry_script`.
            timeout: Seconds before a script call is abandoned.
        """
        self.document_root = document_root
        self.sandbox_factory = sandbox_factory
        self.entry_script = entry_script
        self.file_not_found = file_not_found or (lambda path: InternalRedirect(entry_script))
        self.timeout = timeout
        self._primary: Sandbox | None = None
        self._boot_lock = asyncio.Lock()

    async def get_primary_sandbox(self) -> Sandbox:
        """Create the primary sandbox on first use and hand it out afterwards."""
        if self._primary is None:
            async with self._boot_lock:
                if self._primary is None:
                    self._primary = await self.sandbox_factory()
                    logger.info("Primary sandbox ready (runtime: %s)", type(self._primary.runtime).__name__)
        return self._primary

    def resolve(self, sandbox: Sandbox, path: str) -> str | None:
        """Return the virtual path of the file serving `path`, if there is one."""
        vfs_path = join(self.document_root, path)
        if sandbox.vfs.is_dir(vfs_path):
            vfs_path = join(vfs_path, posixpath.basename(self.entry_script))
        if vfs_path.endswith(PRIVATE_SUFFIXES) or "/__pycache__/" in vfs_path:
            return None
        if sandbox.vfs.is_file(vfs_path):
            return vfs_path
        return None

    def is_script(self, sandbox: Sandbox, vfs_path: str) -> bool:
        return vfs_path.endswith(tuple(sandbox.runtime.script_extensions))

    async def request(self, request: SandboxRequest) -> SandboxResponse:
        sandbox = await self.get_primary_sandbox()
        path = unquote(request.path)
        target = self.resolve(sandbox, path)
        if target is None:
            action = self.file_not_found(path)
            if isinstance(action, RespondNotFound):
                return SandboxResponse(
                    status=404,
                    headers=[("content-type", "text/plain; charset=utf-8")],
                    body=b"File not found",
                )
            target = join(self.document_root, action.uri)
            logger.debug("Internal redirect %s -> %s", path, action.uri)

        if self.is_script(sandbox, target):
            call = ScriptCall(script=target, request=request, document_root=self.document_root)
            return await sandbox.run_script(call, timeout=self.timeout)
        return await self.serve_static(sandbox, target)

    async def serve_static(self, sandbox: Sandbox, vfs_path: str) -> SandboxResponse:
        body = await asyncio.to_thread(sandbox.vfs.read_bytes, vfs_path)
        content_type, _ = mimetypes.guess_type(vfs_path)
        return SandboxResponse(
            status=200,
            headers=[
                ("content-type", content_type or "application/octet-stream"),
                ("content-length", str(len(body))),
            ],
            body=body,
        )
