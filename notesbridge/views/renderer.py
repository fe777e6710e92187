"""
Rendering of the notes home page.

The template only displays already-fetched data. Autoescaping is always on,
so note content and flash text are embedded as literal text and never as
markup.
"""

from datetime import datetime

from jinja2 import Environment, PackageLoader, select_autoescape

DISPLAY_FORMAT = "%d/%m/%Y at %H:%M"


def format_timestamp(value: datetime | str | None) -> str:
    """Format a stored timestamp for display without touching the stored value."""
    if value is None:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime(DISPLAY_FORMAT)


environment = Environment(
    loader=PackageLoader("notesbridge.views", "templates"),
    autoescape=select_autoescape(["html"], default=True),
    trim_blocks=True,
    lstrip_blocks=True,
)
environment.filters["display_date"] = format_timestamp


def render_home(notes, flash=None) -> str:
    """
    Render the home page.

    Args:
        notes: Sequence of notes (objects with ``id``, ``content`` and
            ``created_at``), newest first.
        flash: Optional :class:`~notesbridge.api.models.Flash` to display once.

    Returns:
        str: The complete HTML document.
    """
    return environment.get_template("home.html").render(notes=list(notes), flash=flash)
