from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    Every key has a development default so the servers start without a `.env`.
    """

    DOCUMENT_ROOT: str = "site"
    """Host directory holding the front controller, static assets and the database."""

    VFS_DOCUMENT_ROOT: str = "/var/www/html"
    """Path at which the document root is mounted inside the sandbox."""

    ENTRY_SCRIPT: str = "/index.py"
    """Front-controller entry file, relative to the document root."""

    DATABASE_FILE: str = "database.sqlite"
    """SQLite file name, created next to the front controller."""

    BRIDGE_HOST: str = "127.0.0.1"
    """Interface the dev bridge listens on."""

    BRIDGE_PORT: int = 3000
    """Internal port of the dev bridge."""

    ABSOLUTE_URL: str = "http://localhost:3000"
    """Base URL used to rebuild fully-qualified request URLs for the sandbox."""

    RUNTIME: str = "python"
    """
    Sandbox runtime. `python` serves ASGI entry files such as `site/index.py`
    in-process. `wasi` hosts a CGI-speaking WebAssembly interpreter (e.g.
    `php-cgi.wasm`): its document root must hold CGI scripts that print a
    header block and a body, because ASGI entry files print nothing.
    """

    RUNTIME_WASM: str = ""
    """Path to the WASI interpreter module (e.g. `php-cgi.wasm`), required when `RUNTIME` is `wasi`."""

    PROGRAM_NAME: str = "python"
    """Conventional argv[0] handed to the runtime's command-line entry point."""

    SCRIPT_EXTENSIONS: list[str] = [".py"]
    """Extensions executed by a WASI interpreter rather than served as static files (e.g. `.php`)."""

    SANDBOX_TIMEOUT: float | None = None
    """Seconds before a sandbox call is abandoned (`None` waits forever)."""

    DEV_SERVER_HOST: str = "127.0.0.1"
    """Interface the hot-reload proxy listens on."""

    DEV_SERVER_PORT: int = 5173
    """Public port of the hot-reload proxy."""

    BRIDGE_URL: str = "http://127.0.0.1:3000"
    """Target the proxy forwards non-reserved requests to."""

    RESERVED_PREFIXES: list[str] = ["/@devserver"]
    """Path prefixes served by the proxy itself and never forwarded."""

    WATCH_EXTENSIONS: list[str] = [".py", ".html"]
    """File extensions whose modification triggers a full page reload."""

    RELOAD_CLIENT_PATH: str = "/@devserver/client.js"
    """URL of the reload client script injected into HTML responses."""

    RELOAD_CLIENT_PORT: int | None = None
    """Port the browser uses for the reload WebSocket (e.g. 443 behind a TLS load balancer)."""

    SESSION_COOKIE: str = "NOTES_SESSION"
    """Name of the cookie carrying the opaque session identifier."""

    LOG_LEVEL: str = "INFO"
    """Root log level for the bridge, the proxy and the CLI."""

    class Config:
        """
        Configuration for Pydantic settings. Loads values from `.env` file by default.
        """
        env_file = ".env"


# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
