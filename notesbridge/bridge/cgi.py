"""
CGI/1.1 glue for runtimes that execute scripts as command-line programs.

`build_environ` turns a script call into the meta-variables a CGI
interpreter (php-cgi, a CPython CGI script, ...) expects; the request body
goes to the program's standard input. `parse_response` turns the program's
standard output back into a status, a header list and a body.
"""

from urllib.parse import urlsplit

from notesbridge.bridge.errors import ScriptError
from notesbridge.bridge.sandbox import SandboxResponse, ScriptCall

SERVER_SOFTWARE = "notesbridge"
DEFAULT_PORTS = {"http": "80", "https": "443"}


def build_environ(call: ScriptCall, cwd: str | None = None) -> dict[str, str]:
    request = call.request
    parts = urlsplit(request.url)
    scheme = parts.scheme or "http"
    request_uri = (parts.path or "/") + (f"?{parts.query}" if parts.query else "")
    script_name = call.script
    if script_name.startswith(call.document_root.rstrip("/") + "/"):
        script_name = script_name[len(call.document_root.rstrip("/")):]

    environ = {
        "GATEWAY_INTERFACE": "CGI/1.1",
        "SERVER_SOFTWARE": SERVER_SOFTWARE,
        "SERVER_PROTOCOL": "HTTP/1.1",
        "SERVER_NAME": parts.hostname or "localhost",
        "SERVER_PORT": str(parts.port) if parts.port else DEFAULT_PORTS.get(scheme, "80"),
        "REQUEST_SCHEME": scheme,
        "REQUEST_METHOD": request.method.upper(),
        "REQUEST_URI": request_uri,
        "QUERY_STRING": parts.query,
        "DOCUMENT_ROOT": call.document_root,
        "SCRIPT_FILENAME": call.script,
        "SCRIPT_NAME": script_name,
        "REMOTE_ADDR": "127.0.0.1",
        # php-cgi refuses to run without it (force-cgi-redirect).
        "REDIRECT_STATUS": "200",
    }
    if scheme == "https":
        environ["HTTPS"] = "on"
    if cwd:
        environ["PWD"] = cwd
    if request.body:
        environ["CONTENT_LENGTH"] = str(len(request.body))

    for name, value in request.headers:
        lowered = name.lower()
        if lowered == "content-type":
            environ["CONTENT_TYPE"] = value
            continue
        if lowered == "content-length":
            continue
        key = "HTTP_" + name.upper().replace("-", "_")
        if key in environ:
            separator = "; " if lowered == "cookie" else ", "
            environ[key] = environ[key] + separator + value
        else:
            environ[key] = value
    return environ


def _split_head(output: bytes) -> tuple[bytes, bytes]:
    candidates = [
        (index, len(separator))
        for separator in (b"\r\n\r\n", b"\n\n")
        if (index := output.find(separator)) >= 0
    ]
    if not candidates:
        raise ScriptError("Malformed CGI response: no header block")
    index, length = min(candidates)
    return output[:index], output[index + length:]


def parse_response(output: bytes) -> SandboxResponse:
    """
    Parse CGI program output.

    A `Status` header sets the status code; a `Location` header without a
    status means 302. Repeated headers (notably `Set-Cookie`) are kept as
    separate entries.
    """
    head, body = _split_head(output)
    status = None
    headers: list[tuple[str, str]] = []
    for raw_line in head.splitlines():
        line = raw_line.decode("latin-1")
        if not line.strip():
            continue
        name, separator, value = line.partition(":")
        if not separator:
            raise ScriptError(f"Malformed CGI header line: {line!r}")
        name, value = name.strip(), value.strip()
        if name.lower() == "status":
            try:
                status = int(value.split()[0])
            except (IndexError, ValueError) as exc:
                raise ScriptError(f"Malformed CGI status: {value!r}") from exc
            continue
        headers.append((name, value))

    if status is None:
        status = 302 if any(name.lower() == "location" for name, _ in headers) else 200
    return SandboxResponse(status=status, headers=headers, body=body)
