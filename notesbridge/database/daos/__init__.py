"""
The `daos` package provides the Data Access Layer for the application.

It is responsible for all interactions with the database entities,
encapsulating CRUD operations that support the core functionality
of the system. Each DAO operates on a specific entity and abstracts
away the direct SQLAlchemy queries, offering a cleaner API to the
controller layer.

Contents
--------
- NoteDao
    Handles note persistence:
    * Lists every note, newest first
    * Inserts a note with bound parameters
    * Deletes a note by id (idempotent)
"""

from notesbridge.database.daos.note_dao import NoteDao

__all__ = ["NoteDao"]
