"""
rms_server/orm/config.py
Installation-wide key/value settings
"""
from sqlalchemy import Column, String, Text

from rms_server.orm.base import Base


class ConfigEntry(Base):
    __tablename__ = "config"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
