"""
rms_server/orm/user.py
Identity tables: user, account, session

The identity provider owns account and session rows. The rest of the server
only reads sessions and, during admin bootstrap, attaches a username to a
freshly created user or deletes it again as a compensating action.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from rms_server.core.db_types import generate_id
from rms_server.orm.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    """
    Registered person.

    email is required and unique; locally bootstrapped accounts use a
    synthesized `<username>@local.rms` address. username is optional and
    attached after creation.
    """
    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    username = Column(String(64), nullable=True, unique=True, index=True)
    display_username = Column(String(64), nullable=True)

    # Rows below are removed by ON DELETE CASCADE at the database level
    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "emailVerified": self.email_verified,
            "username": self.username,
        }


class Account(TimestampMixin, Base):
    """Credential record; password_hash is a passlib hash."""
    __tablename__ = "account"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    provider_id = Column(String(32), nullable=False, default="credential")
    account_id = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=True)

    user = relationship("User", back_populates="accounts")


class Session(TimestampMixin, Base):
    """Opaque login session; token is never exposed unsigned."""
    __tablename__ = "session"

    id = Column(String(36), primary_key=True, default=generate_id)
    token = Column(String(128), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime, nullable=False)
    user_id = Column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    user = relationship("User", back_populates="sessions")
