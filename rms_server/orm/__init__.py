"""
rms_server/orm
Registry models. Importing this package registers every table with Base.
"""
from rms_server.orm.base import Base
from rms_server.orm.user import User, Account, Session
from rms_server.orm.role import RoleName, UserRole
from rms_server.orm.event import Event, EventLog, EventLogType
from rms_server.orm.config import ConfigEntry

__all__ = [
    "Base",
    "User",
    "Account",
    "Session",
    "RoleName",
    "UserRole",
    "Event",
    "EventLog",
    "EventLogType",
    "ConfigEntry",
]
