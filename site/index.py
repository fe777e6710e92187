"""
Front controller of the notes application.

The dev bridge internally redirects every path that is not an existing file
of this directory to this entry file. The database lives next to it, inside
the mounted directory, so it survives from one request to the next.
"""

from pathlib import Path

from notesbridge.api.fast_api import create_application
from notesbridge.database.config.config import settings

application = create_application(Path(__file__).parent / settings.DATABASE_FILE)
