"""
FastAPI front controller for the notes application.

Every request that reaches the application, whatever its path, lands in a
single catch-all endpoint. The endpoint:
- Reads the raw body first, then the structured form fields
- Resolves (or issues) the opaque session cookie
- Hands a `ControllerRequest` to the `NotesController`
- Converts the outcome into a redirect, an HTML page or a plain 404

The application is exposed to the sandbox by the `index.py` entry file of the
document root, which calls `create_application` with the database location
next to it.
"""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response

from notesbridge.api.controller import NotesController
from notesbridge.api.models import ControllerRequest, NotFound, Outcome, Page, Redirect
from notesbridge.api.sessions import FlashStore, new_session_id
from notesbridge.database.config.config import settings
from notesbridge.database.core.connection import DatabaseConnectionError
from notesbridge.database.daos import NoteDao

logger = logging.getLogger(__name__)

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


async def read_form_fields(request: Request) -> dict[str, str]:
    """
    Return the textual form fields Starlette could parse from the body.

    Returns an empty mapping when the content type is missing or is not a
    form encoding; uploaded files are ignored.
    """
    form = await request.form()
    return {key: value for key, value in form.multi_items() if isinstance(value, str)}


def outcome_to_response(outcome: Outcome) -> Response:
    if isinstance(outcome, Redirect):
        return RedirectResponse(outcome.location, status_code=302)
    if isinstance(outcome, Page):
        return HTMLResponse(outcome.html)
    if isinstance(outcome, NotFound):
        return PlainTextResponse(outcome.message, status_code=404)
    raise TypeError(f"Unexpected controller outcome: {outcome!r}")


def create_application(
    database_path: str | Path,
    flashes: FlashStore | None = None,
    session_cookie: str = settings.SESSION_COOKIE,
) -> FastAPI:
    """
    Build the notes front-controller application.

    Parameters
    ----------
    database_path : str | Path
        SQLite file backing the notes table; created on first use.
    flashes : FlashStore | None
        Store of pending flash messages. A private store is created when
        omitted.
    session_cookie : str
        Name of the cookie carrying the session id.

    Returns
    -------
    FastAPI
        The ASGI application served by the sandbox.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    controller = NotesController(NoteDao(database_path), flashes or FlashStore())
    app.state.controller = controller

    @app.exception_handler(DatabaseConnectionError)
    async def database_unavailable(request: Request, exc: DatabaseConnectionError):
        logger.error("Request aborted: %s", exc)
        return PlainTextResponse(str(exc), status_code=500)

    @app.api_route("/{path:path}", methods=METHODS)
    async def front_controller(request: Request):
        raw_body = await request.body()
        form = await read_form_fields(request)

        session_id = request.cookies.get(session_cookie)
        fresh_session = not session_id
        if fresh_session:
            session_id = new_session_id()

        outcome = await run_in_threadpool(
            controller.dispatch,
            ControllerRequest(
                path=request.url.path,
                method=request.method,
                form=form,
                raw_body=raw_body,
                session_id=session_id,
            ),
        )
        response = outcome_to_response(outcome)
        if fresh_session:
            response.set_cookie(session_cookie, session_id, httponly=True, samesite="lax")
        return response

    return app
