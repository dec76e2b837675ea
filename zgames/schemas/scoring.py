"""
zgames/schemas/scoring.py
Pydantic schemas for score submission and leaderboard responses.

Score values are passed through untyped so the score recorder applies a
single set of rules (and reports the offending item index).
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TeamScoreItem(BaseModel):
    """One team delta."""
    model_config = ConfigDict(extra="allow")

    team_id: Optional[str] = None
    score: Any = None
    reason: Optional[str] = None


class PlayerScoreItem(BaseModel):
    """One player delta. team_id defaults to the player's current team."""
    model_config = ConfigDict(extra="allow")

    player_id: Optional[str] = None
    team_id: Optional[str] = None
    score: Any = None
    reason: Optional[str] = None


class ScoreSubmission(BaseModel):
    """
    Request body for recording scores of one game.

    score_type may be omitted; it is then taken from whichever list is present.
    """
    score_type: Optional[Literal["team", "player"]] = None
    team_scores: Optional[List[TeamScoreItem]] = None
    player_scores: Optional[List[PlayerScoreItem]] = None
    request_id: Optional[str] = Field(default=None, max_length=255)

    @model_validator(mode='after')
    def detect_score_type(self):
        """Fill score_type from the lists present."""
        if self.score_type is None:
            if self.team_scores is not None and self.player_scores is None:
                self.score_type = "team"
            elif self.player_scores is not None and self.team_scores is None:
                self.score_type = "player"
        return self

    def score_items(self) -> Optional[List[Dict[str, Any]]]:
        """Deltas for the resolved score type, as plain dicts."""
        source = self.team_scores if self.score_type == "team" else self.player_scores
        if source is None:
            return None
        return [item.model_dump() for item in source]

    def duplicate_ids(self) -> List[str]:
        """Entity ids that appear more than once in the submitted list."""
        key = "team_id" if self.score_type == "team" else "player_id"
        seen = set()
        duplicates = []
        for item in self.score_items() or []:
            value = item.get(key)
            if value is None:
                continue
            if value in seen and value not in duplicates:
                duplicates.append(value)
            seen.add(value)
        return duplicates


class ScoreSummary(BaseModel):
    count: int
    highest: Optional[int] = None
    lowest: Optional[int] = None
    average: Optional[float] = None
    scores: List[Dict[str, Any]] = []


class ScoreSubmissionData(BaseModel):
    score_type: str
    summary: ScoreSummary
    request_id: str
    already_processed: bool
    version: Optional[int] = None


class ScoreSubmissionResponse(BaseModel):
    success: bool = True
    message: str
    data: ScoreSubmissionData


class LeaderboardResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
