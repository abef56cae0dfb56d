"""
rms_server/orm/role.py
Role assignments

A row with event_code NULL is a global role. At most one global ADMIN row may
ever exist; the partial unique index below enforces it so that two concurrent
bootstrap requests cannot both succeed.
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Index, Enum as SQLEnum, text
from sqlalchemy.orm import relationship

from rms_server.core.db_types import generate_id, utcnow
from rms_server.orm.base import Base


class RoleName(str, Enum):
    """Closed set of roles"""
    ADMIN = "ADMIN"
    TSO = "TSO"
    HEAD_REFEREE = "HEAD_REFEREE"
    REFEREE = "REFEREE"
    INSPECTOR = "INSPECTOR"
    LEAD_INSPECTOR = "LEAD_INSPECTOR"
    JUDGE = "JUDGE"


class UserRole(Base):
    __tablename__ = "user_role"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False
    )
    role = Column(
        SQLEnum(RoleName, name="role_name", native_enum=False, length=32),
        nullable=False
    )
    event_code = Column(
        String(64),
        ForeignKey("event.code", ondelete="CASCADE"),
        nullable=True,
        comment="NULL = global scope"
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="roles")

    __table_args__ = (
        Index("user_role_userId_idx", "user_id"),
        Index("user_role_eventCode_idx", "event_code"),
        Index("user_role_role_idx", "role"),
        Index(
            "user_role_single_global_admin_uq",
            "role",
            unique=True,
            sqlite_where=text("role = 'ADMIN' AND event_code IS NULL"),
        ),
    )
