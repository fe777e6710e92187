"""
Controller actions of the notes application.

`NotesController.dispatch` normalizes the request path, runs it through the
ordered route table and returns an outcome (redirect, page or 404). The
controller never touches HTTP objects directly, which keeps it usable from
the front-controller app and from tests alike.
"""

import logging
from urllib.parse import parse_qsl

from notesbridge.api.models import ControllerRequest, Flash, NotFound, Outcome, Page, Redirect
from notesbridge.api.routing import Route, Router, exact, int_segment, normalize_path
from notesbridge.api.sessions import FlashStore
from notesbridge.database.daos import NoteDao
from notesbridge.views import render_home

logger = logging.getLogger(__name__)

NOTE_ADDED = "✨ Note added successfully!"
NOTE_EMPTY = "⚠️ The note content cannot be empty."
NOTE_DELETED = "🗑️ Note deleted."


def parse_form_body(raw_body: bytes) -> dict[str, str]:
    """Decode an `application/x-www-form-urlencoded` body; the last value of a repeated field wins."""
    return dict(parse_qsl(raw_body.decode("utf-8", errors="replace"), keep_blank_values=True))


class NotesController:
    def __init__(self, notes: NoteDao, flashes: FlashStore, render=render_home):
        self.notes = notes
        self.flashes = flashes
        self.render = render
        self.router = Router([
            Route("add", exact("/add", "POST"), self.add_note),
            Route("delete", int_segment("/delete/", "note_id"), self.delete_note),
            Route("home", exact("/"), self.show_home),
        ])

    def dispatch(self, request: ControllerRequest) -> Outcome:
        """
        Route one request to its action.

        Parameters
        ----------
        request : ControllerRequest
            Path, method, parsed form fields, raw body and session id.

        Returns
        -------
        Outcome
            `Redirect` after every write, `Page` for the home page and
            `NotFound` when no route matches.
        """
        path = normalize_path(request.path)
        match = self.router.match(path, request.method)
        if match is None:
            logger.debug("No route for %s %s", request.method, path)
            return NotFound()
        route, params = match
        return route.handler(request, **params)

    def add_note(self, request: ControllerRequest) -> Redirect:
        # Structured fields can arrive empty when the content type got lost
        # on the way; the raw body still carries the form.
        form = request.form or parse_form_body(request.raw_body)
        content = form.get("content", "").strip()
        if content:
            self.notes.insert(content)
            self.flashes.set(request.session_id, Flash(kind="success", text=NOTE_ADDED))
        else:
            self.flashes.set(request.session_id, Flash(kind="error", text=NOTE_EMPTY))
        return Redirect(location="/")

    def delete_note(self, request: ControllerRequest, note_id: int) -> Redirect:
        self.notes.delete_by_id(note_id)
        self.flashes.set(request.session_id, Flash(kind="success", text=NOTE_DELETED))
        return Redirect(location="/")

    def show_home(self, request: ControllerRequest) -> Page:
        notes = self.notes.list_all()
        flash = self.flashes.pop(request.session_id)
        return Page(html=self.render(notes, flash))
