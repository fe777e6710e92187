"""
Pydantic models exchanged between the front controller, the controller and
the view.
"""

from typing import Literal

from pydantic import BaseModel


class Flash(BaseModel):
    """One-time notification shown on the next page render."""

    kind: Literal["success", "error"]
    text: str


class ControllerRequest(BaseModel):
    """Everything the controller needs to know about one request."""

    path: str
    method: str
    form: dict[str, str] = {}
    raw_body: bytes = b""
    session_id: str


class Redirect(BaseModel):
    location: str = "/"


class Page(BaseModel):
    html: str


class NotFound(BaseModel):
    message: str = "404 Not Found - The requested page does not exist."


Outcome = Redirect | Page | NotFound
"""Result of dispatching a request: redirect-after-write, rendered page or 404."""
