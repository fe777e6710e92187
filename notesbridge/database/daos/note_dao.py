from pathlib import Path

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from notesbridge.database.core.connection import DatabaseConnectionError, get_engine
from notesbridge.database.entities import Note

# Largest value an SQLite INTEGER PRIMARY KEY can hold.
MAX_ROW_ID = 2**63 - 1


class NoteDao:
    """
    Data access object for the `notes` table.

    Every operation opens its own session and closes it before returning.
    User-supplied values (content, id) always travel as bound parameters,
    never as part of the SQL text.
    """

    def __init__(self, database_path: str | Path):
        self.database_path = Path(database_path)

    def _session(self) -> Session:
        return Session(get_engine(self.database_path), expire_on_commit=False)

    def list_all(self) -> list[Note]:
        """
        Fetch every note, newest first.

        Returns
        -------
        list[Note]
            Notes ordered by `created_at` descending. Notes created within the
            same second are ordered by descending id so the latest insert
            always comes first.
        """
        statement = select(Note).order_by(Note.created_at.desc(), Note.id.desc())
        try:
            with self._session() as session:
                return list(session.scalars(statement))
        except OperationalError as exc:
            raise DatabaseConnectionError(f"Critical database connection error: {exc}") from exc

    def insert(self, content: str) -> bool:
        """
        Insert a note.

        Parameters
        ----------
        content : str
            Already trimmed, non-empty text.

        Returns
        -------
        bool
            True once the row is committed.
        """
        try:
            with self._session() as session:
                session.execute(insert(Note).values(content=content))
                session.commit()
        except OperationalError as exc:
            raise DatabaseConnectionError(f"Critical database connection error: {exc}") from exc
        return True

    def delete_by_id(self, note_id: int) -> bool:
        """
        Delete the note with `note_id`.

        Deleting an id that does not exist is not an error. An id beyond the
        range SQLite can store cannot exist either, so it is a no-op.

        Returns
        -------
        bool
            True once the statement is committed.
        """
        if not 0 <= note_id <= MAX_ROW_ID:
            return True
        try:
            with self._session() as session:
                session.execute(delete(Note).where(Note.id == note_id))
                session.commit()
        except OperationalError as exc:
            raise DatabaseConnectionError(f"Critical database connection error: {exc}") from exc
        return True
