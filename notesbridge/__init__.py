"""
The `notesbridge` package: a notes application executed inside a sandboxed
interpreter runtime, with the development bridge and hot-reload proxy that
serve it.

Contents
--------
- api
    Front controller application, router, controller and flash store.
- database
    Configuration, SQLAlchemy entities, DAOs and connection bootstrap.
- views
    Jinja2 rendering of the home page.
- bridge
    Sandbox resource, runtimes, request handler, HTTP bridge and CLI.
- devserver
    Reverse proxy with WebSocket full-reload signalling.
"""

__version__ = "0.1.0"
