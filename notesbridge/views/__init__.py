from notesbridge.views.renderer import format_timestamp, render_home

__all__ = ["format_timestamp", "render_home"]
