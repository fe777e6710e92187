"""
The `devserver` package is the browser-facing development server: a reverse
proxy to the dev bridge that also pushes full-page reloads when source
files change.

Contents
--------
- proxy
    FastAPI reverse proxy (httpx) with reserved local paths
- reload
    WebSocket hub and watchfiles-driven change detection
"""
