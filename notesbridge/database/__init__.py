"""
The `database` package holds the persistence layer of the notes application:
configuration (`config`), SQLAlchemy entities (`entities`), data access
objects (`daos`) and connection bootstrap (`core`).
"""
