"""
The `entities` package defines the ORM models of the application,
representing the database tables as Python classes via SQLAlchemy.

These entity classes are the foundation of the persistence layer,
used by DAOs (`daos` package) to perform CRUD operations.

Contents
--------
- Note
    Represents a single note.
    * Stores an auto-incrementing integer id and the note text
    * Records the creation timestamp assigned by the database
    * Never updated after insertion
"""

from notesbridge.database.entities.note import Base, Note

__all__ = ["Base", "Note"]
