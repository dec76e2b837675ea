from .base import Base

from .tournament import Tournament, TournamentStatus, TournamentSelectedGame
from .game import Game
from .team import Animal, Team, Player
from .score import TeamScore, PlayerScore, ScoreRequest, ScoreMode
