"""
db/upsert.py
------------
Dialect-aware INSERT ... ON CONFLICT construction.

Webhook sync handlers must converge to one row per natural key no matter how
often an event is redelivered, so every upsert is a single statement and the
database's own atomicity does the work. PostgreSQL and SQLite expose the same
on_conflict_do_update() API through their dialect-specific insert().
"""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def insert_for(db: AsyncSession, model):
    """Return an insert() construct for model in the session's dialect."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
