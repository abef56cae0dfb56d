"""
rms_server/orm/event_db.py
Per-event database schema

Each event gets its own SQLite file holding these tables. They are bound to a
separate declarative base so that creating the registry never creates them and
applying them to an event file never touches the registry tables.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, ForeignKey,
    Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base

from rms_server.core.db_types import UniversalJSON, utcnow

EventBase = declarative_base()


class Team(EventBase):
    __tablename__ = "team"

    number = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False, default="")
    school = Column(String(255), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(128), nullable=True)
    country = Column(String(128), nullable=True)
    rookie_year = Column(Integer, nullable=True)
    division = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Match(EventBase):
    """Schedule entry. Team slots refer to team.number."""
    __tablename__ = "match"

    id = Column(Integer, primary_key=True, autoincrement=True)
    level = Column(Integer, nullable=False, default=0, comment="0 practice, 1 qualification, 2+ playoff")
    number = Column(Integer, nullable=False)
    division = Column(Integer, nullable=False, default=0)
    field = Column(Integer, nullable=False, default=1)
    scheduled_start = Column(DateTime, nullable=True)
    red1 = Column(Integer, ForeignKey("team.number"), nullable=True)
    red2 = Column(Integer, ForeignKey("team.number"), nullable=True)
    red3 = Column(Integer, ForeignKey("team.number"), nullable=True)
    blue1 = Column(Integer, ForeignKey("team.number"), nullable=True)
    blue2 = Column(Integer, ForeignKey("team.number"), nullable=True)
    blue3 = Column(Integer, ForeignKey("team.number"), nullable=True)
    red1_surrogate = Column(Boolean, nullable=False, default=False)
    red2_surrogate = Column(Boolean, nullable=False, default=False)
    blue1_surrogate = Column(Boolean, nullable=False, default=False)
    blue2_surrogate = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("level", "division", "number", name="match_level_number_uq"),
    )


class MatchResult(EventBase):
    """Committed outcome of one match."""
    __tablename__ = "match_result"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("match.id", ondelete="CASCADE"), nullable=False, unique=True)
    red_score = Column(Integer, nullable=False, default=0)
    blue_score = Column(Integer, nullable=False, default=0)
    red_penalty = Column(Integer, nullable=False, default=0)
    blue_penalty = Column(Integer, nullable=False, default=0)
    winner = Column(String(8), nullable=True, comment="RED, BLUE or TIE")
    committed_at = Column(DateTime, nullable=True)
    posted_at = Column(DateTime, nullable=True)


class MatchScore(EventBase):
    """Itemized score sheet for one alliance in one match."""
    __tablename__ = "match_score"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    alliance = Column(String(8), nullable=False)
    auto_points = Column(Integer, nullable=False, default=0)
    teleop_points = Column(Integer, nullable=False, default=0)
    endgame_points = Column(Integer, nullable=False, default=0)
    minor_fouls = Column(Integer, nullable=False, default=0)
    major_fouls = Column(Integer, nullable=False, default=0)
    details = Column(UniversalJSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("match_id", "alliance", name="match_score_alliance_uq"),
        Index("match_score_match_idx", "match_id"),
    )


class Ranking(EventBase):
    __tablename__ = "ranking"

    team = Column(Integer, ForeignKey("team.number", ondelete="CASCADE"), primary_key=True)
    division = Column(Integer, nullable=False, default=0)
    rank = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    ties = Column(Integer, nullable=False, default=0)
    ranking_points = Column(Integer, nullable=False, default=0)
    tiebreaker_points = Column(Integer, nullable=False, default=0)
    matches_played = Column(Integer, nullable=False, default=0)
    disqualified = Column(Integer, nullable=False, default=0)


class Alliance(EventBase):
    """Playoff alliance selection."""
    __tablename__ = "alliance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    division = Column(Integer, nullable=False, default=0)
    seed = Column(Integer, nullable=False)
    captain = Column(Integer, ForeignKey("team.number"), nullable=False)
    pick1 = Column(Integer, ForeignKey("team.number"), nullable=True)
    pick2 = Column(Integer, ForeignKey("team.number"), nullable=True)
    backup = Column(Integer, ForeignKey("team.number"), nullable=True)

    __table_args__ = (
        UniqueConstraint("division", "seed", name="alliance_seed_uq"),
    )


class Award(EventBase):
    __tablename__ = "award"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    place = Column(Integer, nullable=False, default=1)
    team = Column(Integer, ForeignKey("team.number"), nullable=True)
    recipient = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)


class Inspection(EventBase):
    __tablename__ = "inspection"

    team = Column(Integer, ForeignKey("team.number", ondelete="CASCADE"), primary_key=True)
    status = Column(Integer, nullable=False, default=0)
    checklist = Column(UniversalJSON, nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


EVENT_TABLE_NAMES = tuple(sorted(EventBase.metadata.tables.keys()))
