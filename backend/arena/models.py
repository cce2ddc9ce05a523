from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Boolean,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


class User(Base):
    """Identity mirrored from the external auth provider."""

    __tablename__ = "user"
    id = Column(String, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)


class Tournament(Base):
    __tablename__ = "tournament"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    organizer_id = Column(String, ForeignKey("user.id"), nullable=True)
    unique_id = Column(String, nullable=False, unique=True)  # invite code
    is_locked = Column(Boolean, nullable=False, default=False)
    is_public = Column(Boolean, nullable=False, default=True)
    scorer_pin_hash = Column(String, nullable=True)
    ranking_criteria = Column(JSON, nullable=True)
    player_pool = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    participants = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )  # user ids
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Team(Base):
    __tablename__ = "team"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=False)
    name = Column(String, nullable=False)
    player_names = Column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )

    __table_args__ = (Index("ix_team_tournament_id", "tournament_id"),)


class Match(Base):
    __tablename__ = "match"
    id = Column(String, primary_key=True)
    tournament_id = Column(String, ForeignKey("tournament.id"), nullable=False)
    team_a_id = Column(String, ForeignKey("team.id"), nullable=False)
    team_b_id = Column(String, ForeignKey("team.id"), nullable=False)
    target_points = Column(Integer, nullable=False, default=21)
    golden_point_cap = Column(Integer, nullable=False, default=30)
    best_of = Column(Integer, nullable=False, default=3)
    status = Column(String, nullable=False, default="scheduled")
    winner_id = Column(String, nullable=True)
    scores = Column(JSON, nullable=False, default=list)  # [{"A": int, "B": int}]
    court = Column(Integer, nullable=True)
    umpire_name = Column(String, nullable=True)
    scheduled_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_match_tournament_status", "tournament_id", "status"),
    )


class JoinRequest(Base):
    """A user's request to join a private arena, resolved by its organizer."""

    __tablename__ = "join_request"
    id = Column(String, primary_key=True)
    tournament_id = Column(
        String, ForeignKey("tournament.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_join_request_tournament_status", "tournament_id", "status"),
    )
