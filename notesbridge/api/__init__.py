"""
The `api` package defines the notes application's HTTP surface and the
logic behind it.

Contents
--------
- fast_api
    FastAPI front controller:
        * Catch-all endpoint receiving every routed request
        * Session cookie issuing and raw-body capture
        * Outcome to response conversion (redirect, page, 404)

- routing
    Ordered `(matcher, handler)` route table:
        * Literal path matchers, optionally restricted to one method
        * Integer segment matcher backed by a typed parser

- controller
    Controller actions:
        * `POST /add` with raw-body fallback and post-redirect-get
        * `/delete/<id>` (idempotent)
        * `/` home page with single-read flash messages

- sessions
    Keyed flash store with read-and-clear semantics

- models
    Pydantic schemas for flashes, controller requests and outcomes
"""
