"""
zgames/orm/tournament.py
Tournament aggregate root and the games selected for it.

Tournament.version is the optimistic-concurrency counter bumped by every
successful scoring transaction.
"""
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship

from zgames.orm.base import Base, BaseModel, generate_uuid


class TournamentStatus(str, PyEnum):
    """Tournament status values"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Tournament(BaseModel):
    """
    A Z Games event. At most one tournament is ACTIVE at any time.
    """
    __tablename__ = "tournaments"

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default=TournamentStatus.PENDING.value)
    version = Column(Integer, nullable=False, default=0, server_default="0")

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    teams = relationship(
        "Team",
        back_populates="tournament",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    selected_games = relationship(
        "TournamentSelectedGame",
        back_populates="tournament",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        # Only one row may hold status='active'
        Index(
            "uq_tournaments_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    def __repr__(self):
        return f"<Tournament(id={self.id}, name='{self.name}', status={self.status}, version={self.version})>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "version": self.version,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class TournamentSelectedGame(Base):
    """Games chosen for a tournament. Scores may only be recorded for these."""
    __tablename__ = "tournament_selected_games"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    game_id = Column(
        String(36),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tournament = relationship("Tournament", back_populates="selected_games")
    game = relationship("Game", lazy="joined")

    __table_args__ = (
        UniqueConstraint("tournament_id", "game_id", name="uq_tournament_selected_game"),
    )
