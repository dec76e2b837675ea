"""
zgames/orm/team.py
Teams, players and player avatars (animals).

A team belongs to exactly one tournament; a player belongs to one team at a
time. Moving a player between teams only changes team_id, score rows stay
where they were written.
"""
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from zgames.orm.base import BaseModel


class Animal(BaseModel):
    """Player avatar"""
    __tablename__ = "animals"

    name = Column(String(100), nullable=False, unique=True)
    emoji = Column(String(16), nullable=True)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "emoji": self.emoji}


class Team(BaseModel):
    """
    Team competing in a tournament.
    Name is unique within the tournament.
    """
    __tablename__ = "teams"

    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name = Column(String(255), nullable=False)

    tournament = relationship("Tournament", back_populates="teams")
    players = relationship(
        "Player",
        back_populates="team",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("tournament_id", "name", name="uq_team_name_per_tournament"),
    )

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', tournament={self.tournament_id})>"


class Player(BaseModel):
    """
    Player on a team. tournament_id is denormalized from the team for
    query convenience.
    """
    __tablename__ = "players"

    name = Column(String(255), nullable=False)
    team_id = Column(
        String(36),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tournament_id = Column(
        String(36),
        ForeignKey("tournaments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    animal_id = Column(
        String(36),
        ForeignKey("animals.id", ondelete="SET NULL"),
        nullable=True
    )

    team = relationship("Team", back_populates="players")
    animal = relationship("Animal", lazy="joined")

    def __repr__(self):
        return f"<Player(id={self.id}, name='{self.name}', team={self.team_id})>"
