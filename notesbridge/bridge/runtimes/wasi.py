"""
WebAssembly runtime hosted with wasmtime.

The interpreter (e.g. `php-cgi.wasm` built for WASI) is compiled once per
runtime; every call instantiates it in a fresh store, as
WASI command modules run `_start` exactly once. Sandbox mounts become WASI
pre-opened directories, so whatever the interpreter writes under a mount
(the SQLite file, for one) lands on the host disk and outlives the store.

Scripts are executed with the CGI protocol: the request body is the
program's stdin and its stdout is parsed as a CGI response. Only CGI
scripts can be served this way; the ASGI entry files of the Python runtime
write nothing to stdout and end up as a `ScriptError`. Command-line
runs stream stdout and stderr while the module is still running.
"""

import asyncio
import logging
import shutil
import tempfile
import threading
from pathlib import Path

from wasmtime import Engine, ExitTrap, Linker, Module, Store, WasiConfig, WasmtimeError

from notesbridge.bridge import cgi
from notesbridge.bridge.errors import SandboxStartupError, ScriptError
from notesbridge.bridge.sandbox import CliProcess, SandboxResponse, ScriptCall
from notesbridge.bridge.streams import ByteStream, follow_file
from notesbridge.bridge.vfs import Mount

logger = logging.getLogger(__name__)


class WasiRuntime:
    def __init__(self, module_path: str | Path, program_name: str = "python",
                 script_extensions: tuple[str, ...] = (".py",)):
        self.program_name = program_name
        self.script_extensions = tuple(script_extensions)
        module_path = Path(module_path)
        if not module_path.is_file():
            raise SandboxStartupError(f"WASI module not found: {module_path}")
        self.engine = Engine()
        try:
            self.module = Module.from_file(self.engine, str(module_path))
        except WasmtimeError as exc:
            raise SandboxStartupError(f"Cannot compile {module_path}: {exc}") from exc
        self.linker = Linker(self.engine)
        self.linker.define_wasi()
        logger.info("Loaded WASI runtime %s", module_path.name)

    def execute(self, argv: list[str], mounts: list[Mount], env: dict[str, str] | None = None,
                stdin: Path | None = None, stdout: Path | None = None,
                stderr: Path | None = None) -> int:
        """
        Run the module to completion and return its exit code.

        Blocking; called from a worker thread. Streams left as `None` are
        inherited from the host process.
        """
        config = WasiConfig()
        config.argv = argv
        config.env = list((env or {}).items())
        for mount in mounts:
            config.preopen_dir(str(mount.host_path), mount.vfs_path)
        if stdin is None:
            config.inherit_stdin()
        else:
            config.stdin_file = str(stdin)
        if stdout is None:
            config.inherit_stdout()
        else:
            config.stdout_file = str(stdout)
        if stderr is None:
            config.inherit_stderr()
        else:
            config.stderr_file = str(stderr)

        store = Store(self.engine)
        store.set_wasi(config)
        instance = self.linker.instantiate(store, self.module)
        start = instance.exports(store)["_start"]
        try:
            start(store)
        except ExitTrap as exit_trap:
            return exit_trap.code
        return 0

    async def run_script(self, sandbox, call: ScriptCall) -> SandboxResponse:
        environ = cgi.build_environ(call, cwd=sandbox.cwd)
        argv = [self.program_name, call.script]
        with tempfile.TemporaryDirectory(prefix="notesbridge-") as scratch:
            scratch = Path(scratch)
            stdin, stdout, stderr = scratch / "stdin", scratch / "stdout", scratch / "stderr"
            stdin.write_bytes(call.request.body)
            try:
                code = await asyncio.to_thread(
                    self.execute, argv, sandbox.mounts, environ, stdin, stdout, stderr,
                )
            except WasmtimeError as exc:
                raise ScriptError(f"{call.script} trapped: {exc}") from exc
            output = stdout.read_bytes() if stdout.exists() else b""
            errors = stderr.read_bytes() if stderr.exists() else b""

        for line in errors.decode("utf-8", errors="replace").splitlines():
            logger.warning("sandbox err: %s", line)
        if not output:
            raise ScriptError(f"{call.script} exited with status {code} without output")
        return cgi.parse_response(output)

    async def cli(self, sandbox, argv: list[str]) -> CliProcess:
        environ = {"PWD": sandbox.cwd}
        mounts = sandbox.mounts
        scratch = Path(tempfile.mkdtemp(prefix="notesbridge-cli-"))
        stdout_path, stderr_path = scratch / "stdout", scratch / "stderr"
        stdout_path.touch()
        stderr_path.touch()

        stdout, stderr = ByteStream(), ByteStream()
        finished = threading.Event()
        followers = [
            asyncio.ensure_future(asyncio.to_thread(follow_file, stdout_path, finished, stdout.feed_threadsafe)),
            asyncio.ensure_future(asyncio.to_thread(follow_file, stderr_path, finished, stderr.feed_threadsafe)),
        ]

        def run() -> int:
            try:
                return self.execute(argv, mounts, environ, None, stdout_path, stderr_path)
            finally:
                finished.set()

        async def supervise() -> int:
            try:
                return await asyncio.to_thread(run)
            finally:
                await asyncio.gather(*followers)
                stdout.close()
                stderr.close()
                shutil.rmtree(scratch, ignore_errors=True)

        return CliProcess(stdout=stdout, stderr=stderr, exit_code=asyncio.ensure_future(supervise()))
