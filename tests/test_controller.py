from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import pytest

from notesbridge.api.controller import NOTE_ADDED, NOTE_DELETED, NOTE_EMPTY, NotesController, parse_form_body
from notesbridge.api.models import ControllerRequest, NotFound, Page, Redirect
from notesbridge.api.sessions import FlashStore


@dataclass
class StoredNote:
    id: int
    content: str
    created_at: datetime = field(default_factory=lambda: datetime(2024, 5, 1, 9, 30))


class MemoryNoteDao:
    def __init__(self):
        self.notes: list[StoredNote] = []
        self.deleted: list[int] = []

    def list_all(self):
        return list(reversed(self.notes))

    def insert(self, content: str) -> bool:
        self.notes.append(StoredNote(id=len(self.notes) + 1, content=content))
        return True

    def delete_by_id(self, note_id: int) -> bool:
        self.deleted.append(note_id)
        self.notes = [note for note in self.notes if note.id != note_id]
        return True


@pytest.fixture
def dao() -> MemoryNoteDao:
    return MemoryNoteDao()


@pytest.fixture
def flashes() -> FlashStore:
    return FlashStore()


@pytest.fixture
def controller(dao: MemoryNoteDao, flashes: FlashStore) -> NotesController:
    return NotesController(dao, flashes, render=lambda notes, flash: f"{[n.content for n in notes]}|{flash}")


def request(path: str, method: str = "GET", **kwargs) -> ControllerRequest:
    return ControllerRequest(path=path, method=method, session_id="s1", **kwargs)


def test_add_inserts_trimmed_content_and_redirects(controller, dao, flashes) -> None:
    outcome = controller.dispatch(request("/add", "POST", form={"content": "  buy milk  "}))

    assert outcome == Redirect(location="/")
    assert [note.content for note in dao.notes] == ["buy milk"]
    flash = flashes.pop("s1")
    assert flash.kind == "success" and flash.text == NOTE_ADDED


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
def test_add_rejects_blank_content_but_still_redirects(controller, dao, flashes, content) -> None:
    outcome = controller.dispatch(request("/add", "POST", form={"content": content}))

    assert isinstance(outcome, Redirect)
    assert dao.notes == []
    flash = flashes.pop("s1")
    assert flash.kind == "error" and flash.text == NOTE_EMPTY


def test_add_without_content_field_is_an_error_flash(controller, dao, flashes) -> None:
    controller.dispatch(request("/add", "POST", form={"other": "x"}))
    assert dao.notes == []
    assert flashes.pop("s1").kind == "error"


def test_add_falls_back_to_raw_body_when_form_is_empty(controller, dao) -> None:
    controller.dispatch(request("/add", "POST", raw_body=b"content=from+raw%20body&x=1"))
    assert [note.content for note in dao.notes] == ["from raw body"]


def test_add_via_get_is_not_found(controller, dao) -> None:
    assert isinstance(controller.dispatch(request("/add", "GET")), NotFound)
    assert dao.notes == []


def test_delete_is_idempotent_and_flashes_success(controller, dao, flashes) -> None:
    outcome = controller.dispatch(request("/delete/41"))

    assert outcome == Redirect(location="/")
    assert dao.deleted == [41]
    flash = flashes.pop("s1")
    assert flash.kind == "success" and flash.text == NOTE_DELETED


@pytest.mark.parametrize("path", ["/delete/abc", "/delete/", "/delete/1/2", "/delete/-3"])
def test_non_numeric_delete_falls_through_to_404(controller, dao, path) -> None:
    assert isinstance(controller.dispatch(request(path)), NotFound)
    assert dao.deleted == []


def test_home_consumes_flash_exactly_once(controller, flashes) -> None:
    controller.dispatch(request("/add", "POST", form={"content": "hello"}))

    first = controller.dispatch(request("/"))
    second = controller.dispatch(request("/"))

    assert isinstance(first, Page) and NOTE_ADDED in first.html
    assert isinstance(second, Page) and NOTE_ADDED not in second.html
    assert "['hello']" in second.html


def test_flashes_are_per_session(controller, flashes) -> None:
    controller.dispatch(request("/add", "POST", form={"content": "mine"}))
    other = controller.dispatch(ControllerRequest(path="/", method="GET", session_id="s2"))
    assert NOTE_ADDED not in other.html
    assert flashes.pop("s1") is not None


def test_front_controller_segment_is_stripped(controller) -> None:
    assert isinstance(controller.dispatch(request("/index.py")), Page)
    assert isinstance(controller.dispatch(request("")), Page)


def test_unknown_path_is_not_found(controller) -> None:
    outcome = controller.dispatch(request("/nonexistent.png"))
    assert isinstance(outcome, NotFound)
    assert outcome.message.startswith("404 Not Found")


def test_parse_form_body_last_value_wins() -> None:
    assert parse_form_body(b"content=a&content=b&empty=") == {"content": "b", "empty": ""}
