"""
Connection bootstrap for the file-backed notes store.

An engine is created once per database file. The first time it is obtained
the schema is created if it does not exist yet, so a fresh deployment works
without running any migration by hand. A store that cannot be opened is a
broken deployment: the failure is raised as `DatabaseConnectionError` and
never retried.
"""

import logging
import threading
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import SQLAlchemyError

from notesbridge.database.entities import Base

logger = logging.getLogger(__name__)

_engines: dict[str, Engine] = {}
_engines_lock = threading.Lock()


class DatabaseConnectionError(RuntimeError):
    """Raised when the notes database cannot be opened or bootstrapped."""


def get_engine(database_path: str | Path) -> Engine:
    """
    Return the engine bound to `database_path`, bootstrapping the schema on
    first use.

    Parameters
    ----------
    database_path : str | Path
        Location of the SQLite file. It is created if missing.

    Returns
    -------
    Engine
        A SQLAlchemy engine shared by every DAO using the same file.

    Raises
    ------
    DatabaseConnectionError
        If the file cannot be opened or the schema cannot be created
        (e.g. write permission denied on the directory).
    """
    key = str(Path(database_path).resolve())
    with _engines_lock:
        engine = _engines.get(key)
        if engine is not None:
            return engine
        engine = create_engine(f"sqlite:///{key}")
        try:
            Base.metadata.create_all(engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            raise DatabaseConnectionError(f"Critical database connection error: {exc}") from exc
        logger.info("Notes database ready at %s", key)
        _engines[key] = engine
        return engine


def dispose_engines() -> None:
    """Close every pooled connection (used on shutdown and between tests)."""
    with _engines_lock:
        for engine in _engines.values():
            engine.dispose()
        _engines.clear()
