"""
Sandbox runtimes.

- `PythonRuntime`: ASGI entry files served in-process, CLI scripts in a
  child interpreter.
- `WasiRuntime`: a WASI interpreter module hosted with wasmtime, speaking
  CGI for requests.
"""

from notesbridge.bridge.errors import SandboxStartupError
from notesbridge.bridge.runtimes.python import PythonRuntime
from notesbridge.bridge.runtimes.wasi import WasiRuntime


def create_runtime(name: str, program_name: str = "python", module_path: str = "",
                   script_extensions: tuple[str, ...] = (".py",)):
    """
    Build the runtime selected by configuration.

    Args:
        name: ``"python"`` or ``"wasi"``.
        program_name: Conventional argv[0] for command-line runs.
        module_path: WASI module to load, required for ``"wasi"``.
        script_extensions: File extensions the WASI interpreter executes.

    Raises:
        SandboxStartupError: On an unknown runtime name or a missing module.
    """
    if name == "python":
        return PythonRuntime(program_name=program_name)
    if name == "wasi":
        if not module_path:
            raise SandboxStartupError("RUNTIME_WASM must point to a WASI module when RUNTIME is 'wasi'")
        return WasiRuntime(module_path, program_name=program_name, script_extensions=script_extensions)
    raise SandboxStartupError(f"Unknown sandbox runtime: {name!r}")


__all__ = ["PythonRuntime", "WasiRuntime", "create_runtime"]
