"""
The `bridge` package runs the notes application inside a sandboxed runtime
and exposes it over HTTP and on the terminal.

Contents
--------
- sandbox
    `Sandbox` resource handle (runtime, mounts, serialized access) and the
    request/response shapes exchanged with it
- vfs
    Mount table of the sandbox filesystem
- runtimes
    In-process Python (ASGI) runtime and wasmtime-hosted WASI runtime
- cgi
    CGI/1.1 environment building and response parsing for WASI interpreters
- handler
    Document-root resolution with internal redirect to the front controller
- server
    FastAPI bridge: request translation, response translation, reload
    client injection
- streams
    Byte stream relay between the sandbox and host streams
- cli
    Terminal pass-through entry point
"""
