"""
rms_server/orm/base.py
Declarative base for the registry database
"""
from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

from rms_server.core.db_types import utcnow

Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at columns shared by mutable registry rows."""

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )
