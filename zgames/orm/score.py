"""
zgames/orm/score.py
Append-only score delta log and the request ledger.

Delta rows are never updated. A correction is a new offsetting row.
Every row's reason ends with the request tag "[RequestID:<token>]".
"""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, Index
)

from zgames.orm.base import Base, generate_uuid


class ScoreMode:
    """Which delta table a request writes to"""
    TEAM = "team"
    PLAYER = "player"

    ALL = (TEAM, PLAYER)


class TeamScore(Base):
    """Team-level score delta (bonus award or deduction)."""
    __tablename__ = "team_scores"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False
    )
    game_id = Column(
        String(36),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False
    )
    team_id = Column(
        String(36),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False
    )
    score_change = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_team_scores_tournament_game", "tournament_id", "game_id"),
        Index("idx_team_scores_team", "team_id"),
    )

    def __repr__(self):
        return f"<TeamScore(team={self.team_id}, game={self.game_id}, change={self.score_change})>"

    def to_dict(self):
        return {
            "score": self.score_change,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PlayerScore(Base):
    """
    Player-level score delta. team_id records the team context at write time
    and is informational only: aggregation follows the player's current team.
    """
    __tablename__ = "player_scores"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False
    )
    game_id = Column(
        String(36),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False
    )
    player_id = Column(
        String(36),
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False
    )
    team_id = Column(
        String(36),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True
    )
    score_change = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_player_scores_tournament_game", "tournament_id", "game_id"),
        Index("idx_player_scores_player", "player_id"),
    )

    def __repr__(self):
        return f"<PlayerScore(player={self.player_id}, game={self.game_id}, change={self.score_change})>"

    def to_dict(self):
        return {
            "score": self.score_change,
            "reason": self.reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ScoreRequest(Base):
    """
    One row per processed scoring request.
    The unique constraint makes a request claimable exactly once per
    tournament and game.
    """
    __tablename__ = "score_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False
    )
    game_id = Column(
        String(36),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False
    )
    request_id = Column(String(255), nullable=False)
    mode = Column(String(10), nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tournament_id", "game_id", "request_id",
            name="uq_score_request_per_tournament_game"
        ),
    )
