"""
zgames/orm/game.py
Game catalog entries. Seeded outside this service; read by the leaderboard.
"""
from sqlalchemy import Column, String, Integer, Text, JSON

from zgames.orm.base import BaseModel


class Game(BaseModel):
    """A party game that tournaments can select."""
    __tablename__ = "games"

    name = Column(String(255), nullable=False, index=True)
    type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    rules = Column(Text, nullable=True)

    # Point system
    win_points = Column(Integer, nullable=True)
    bonus_points = Column(Integer, nullable=True)
    penalty_points = Column(Integer, nullable=True)
    point_system_custom_rules = Column(Text, nullable=True)

    prizes = Column(JSON, nullable=True)
    time_limit = Column(Integer, nullable=True)
    max_players = Column(Integer, nullable=True)
    min_players = Column(Integer, nullable=True)
    equipment = Column(JSON, nullable=True)
    applicable_superpowers = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Game(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "rules": self.rules,
            "scoring": {
                "win_points": self.win_points,
                "bonus_points": self.bonus_points,
                "penalty_points": self.penalty_points,
                "custom_rules": self.point_system_custom_rules,
            },
            "prizes": self.prizes,
            "time_limit": self.time_limit,
            "player_limits": {
                "max_players": self.max_players,
                "min_players": self.min_players,
            },
            "equipment": self.equipment,
            "applicable_superpowers": self.applicable_superpowers,
        }
