"""
Dialect-aware database types and column defaults shared by the registry
and the per-event schema.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator


def generate_id() -> str:
    """Text primary keys, unique across the registry and every event file."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without an offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UniversalJSON(TypeDecorator):
    """
    JSON column that always reads back a list or dict.
    NULL is stored as an empty list so audit payloads are never None.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value, dialect):
        return [] if value is None else value

    def process_result_value(self, value, dialect):
        return [] if value is None else value
