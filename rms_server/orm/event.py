"""
rms_server/orm/event.py
Event directory and append-only audit log
"""
from sqlalchemy import Column, String, Integer, DateTime, Text, Index

from rms_server.core.db_types import UniversalJSON, generate_id, utcnow
from rms_server.orm.base import Base, TimestampMixin


class EventLogType:
    """Audit log type tags."""
    ADMIN_BOOTSTRAPPED = "ADMIN_BOOTSTRAPPED"
    EVENT_CREATED = "EVENT_CREATED"


class Event(TimestampMixin, Base):
    """
    One tournament event. code is globally unique and also the stem of the
    event's database file; there is no update path for it.
    """
    __tablename__ = "event"

    id = Column(String(36), primary_key=True, default=generate_id)
    code = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    type = Column(Integer, nullable=False, default=0)
    status = Column(Integer, nullable=False, default=0)
    finals = Column(Integer, nullable=False, default=0)
    divisions = Column(Integer, nullable=False, default=0)
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    region = Column(String(64), nullable=False)


class EventLog(Base):
    """Append-only audit row. Never updated or deleted by the server."""
    __tablename__ = "event_log"

    id = Column(String(36), primary_key=True, default=generate_id)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    type = Column(String(64), nullable=False)
    event_code = Column(String(64), nullable=True)
    info = Column(Text, nullable=True)
    extra = Column(UniversalJSON, nullable=True, default=list)

    __table_args__ = (
        Index("event_log_event_code_idx", "event_code"),
        Index("event_log_type_idx", "type"),
    )
