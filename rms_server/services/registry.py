"""
rms_server/services/registry.py
Queries and append helpers over the registry tables
"""
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from rms_server.core.db_types import utcnow
from rms_server.orm import ConfigEntry, Event, EventLog, RoleName, User, UserRole

logger = logging.getLogger(__name__)


# ================= CONFIG =================

async def get_config_value(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(ConfigEntry.value).where(ConfigEntry.key == key))
    return result.scalar_one_or_none()


async def set_config_value(db: AsyncSession, key: str, value: str) -> None:
    """Insert or overwrite a config entry. Caller commits."""
    entry = await db.get(ConfigEntry, key)
    if entry is None:
        db.add(ConfigEntry(key=key, value=value))
    else:
        entry.value = value
    await db.flush()


# ================= AUDIT LOG =================

async def record_event(
    db: AsyncSession,
    log_type: str,
    info: Optional[str] = None,
    event_code: Optional[str] = None,
    extra: Optional[Union[Dict[str, Any], List[Any]]] = None,
) -> EventLog:
    """
    Append one audit row. Caller commits, so the row lands in the same
    transaction as the change it describes.
    """
    entry = EventLog(
        timestamp=utcnow(),
        type=log_type,
        event_code=event_code,
        info=info,
        extra=extra if extra is not None else [],
    )
    db.add(entry)
    await db.flush()
    return entry


async def list_event_logs(db: AsyncSession, event_code: Optional[str] = None) -> List[EventLog]:
    query = select(EventLog).order_by(EventLog.timestamp)
    if event_code is not None:
        query = query.where(EventLog.event_code == event_code)
    result = await db.execute(query)
    return list(result.scalars().all())


# ================= USERS & ROLES =================

async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def find_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def delete_user(db: AsyncSession, user_id: str) -> int:
    """Delete a user row; roles, sessions and accounts go with it by cascade."""
    result = await db.execute(delete(User).where(User.id == user_id))
    return result.rowcount or 0


async def global_admin_exists(db: AsyncSession) -> bool:
    result = await db.execute(
        select(UserRole.id)
        .where(UserRole.role == RoleName.ADMIN, UserRole.event_code.is_(None))
        .limit(1)
    )
    return result.first() is not None


async def list_user_roles(db: AsyncSession, user_id: str) -> List[UserRole]:
    result = await db.execute(select(UserRole).where(UserRole.user_id == user_id))
    return list(result.scalars().all())


# ================= EVENTS =================

async def find_event(db: AsyncSession, code: str) -> Optional[Event]:
    result = await db.execute(select(Event).where(Event.code == code))
    return result.scalar_one_or_none()
