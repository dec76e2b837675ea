"""
Score Recorder Service

Records a batch of score deltas for one game of one tournament.

Transaction protocol (one attempt):
1. Lock the tournament row and read its version
2. Check the game is selected for the tournament
3. Idempotency guard: a replayed request commits nothing
4. Check every team/player belongs to the tournament
5. Claim the request in the ledger and insert one immutable row per item
6. Verify the tagged rows are visible
7. Bump the tournament version (compare-and-set)
8. Commit, then notify subscribers

The retry wrapper re-runs whole attempts on transient failures only.
"""
import asyncio
import logging
import random
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zgames.config.feature_flags import feature_flags
from zgames.config.settings import settings
from zgames.exceptions import (
    InvalidInputError,
    ScoreValidationError,
    NotFoundError,
    InternalScoringError,
    ScoreRecordingFailedError,
)
from zgames.orm.score import TeamScore, PlayerScore, ScoreMode
from zgames.orm.team import Team, Player
from zgames.services.change_notifier import ChangeNotifier
from zgames.services.idempotency_guard import IdempotencyGuard, tag_reason
from zgames.services.tournament_service import is_game_selected
from zgames.services.version_fencer import lock_tournament, bump_version

logger = logging.getLogger(__name__)


# =============================================================================
# Input validation
# =============================================================================

def default_reason(game_id: str) -> str:
    return f"Game {game_id} completion"


def coerce_score(value: Any, index: int) -> int:
    """
    Accept ints (zero and negatives included) and integral floats.
    Booleans, None, strings and fractional numbers are rejected.
    """
    if value is None:
        raise ScoreValidationError(f"Item {index}: score is required", index)
    if isinstance(value, bool):
        raise ScoreValidationError(f"Item {index}: score must be an integer", index)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ScoreValidationError(f"Item {index}: score must be an integer, got {value!r}", index)


def validate_deltas(deltas: Any, mode: str, game_id: str) -> List[Dict[str, Any]]:
    """
    Validate and normalize a delta batch before any database work.

    Returns:
        List of {team_id, player_id, score, reason} dicts

    Raises:
        InvalidInputError: Unknown mode or deltas not a list
        ScoreValidationError: An item is malformed (names the index)
    """
    if mode not in ScoreMode.ALL:
        raise InvalidInputError(f"Invalid score mode '{mode}'. Must be one of: {', '.join(ScoreMode.ALL)}")
    if not isinstance(deltas, list):
        raise InvalidInputError("Scores must be provided as a list")

    items = []
    for index, item in enumerate(deltas):
        if not isinstance(item, dict):
            raise ScoreValidationError(f"Item {index}: must be an object", index)

        team_id = item.get("team_id")
        player_id = item.get("player_id")

        if mode == ScoreMode.TEAM and not team_id:
            raise ScoreValidationError(f"Item {index}: team_id is required", index)
        if mode == ScoreMode.PLAYER and not player_id:
            raise ScoreValidationError(f"Item {index}: player_id is required", index)

        reason = item.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise ScoreValidationError(f"Item {index}: reason must be a string", index)

        items.append({
            "team_id": team_id,
            "player_id": player_id if mode == ScoreMode.PLAYER else None,
            "score": coerce_score(item.get("score"), index),
            "reason": reason or default_reason(game_id),
        })
    return items


def is_retryable(error: Exception) -> bool:
    """Conflicts and transient driver failures (lock timeouts, dropped connections)."""
    if getattr(error, "retryable", False):
        return True
    if isinstance(error, OperationalError):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


# =============================================================================
# Service
# =============================================================================

class ScoreRecorderService:
    """Transactional, idempotent score recording with bounded retries."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        notifier: Optional[ChangeNotifier] = None,
        max_attempts: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_jitter_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ):
        if session_factory is None:
            from zgames.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory
        self.notifier = notifier or ChangeNotifier()
        self.max_attempts = max(1, max_attempts or settings.scoring_max_attempts)
        self.backoff_base_ms = settings.scoring_backoff_base_ms if backoff_base_ms is None else backoff_base_ms
        self.backoff_jitter_ms = settings.scoring_backoff_jitter_ms if backoff_jitter_ms is None else backoff_jitter_ms
        self._sleep = sleep
        self._jitter = jitter

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after a failed attempt: base * 2^(attempt-1) + jitter."""
        delay_ms = self.backoff_base_ms * (2 ** (attempt - 1)) + self._jitter(0, self.backoff_jitter_ms)
        return delay_ms / 1000.0

    async def record_game_scores(
        self,
        tournament_id: str,
        game_id: str,
        deltas: List[Dict[str, Any]],
        mode: str,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record a batch of score deltas exactly once.

        Args:
            tournament_id: Tournament being scored
            game_id: Game (must be selected for the tournament)
            deltas: Items with team_id/player_id, score and optional reason
            mode: "team" or "player"
            request_id: Idempotency token; generated when omitted
        Returns:
            dict with success, request_id, already_processed, inserted,
            version and message

        Raises:
            InvalidInputError, ScoreValidationError, NotFoundError: fail fast
            ScoreRecordingFailedError: retry budget exhausted
        """
        items = validate_deltas(deltas, mode, game_id)
        request_id = (request_id or "").strip() or str(uuid.uuid4())

        if not items:
            return {
                "success": True,
                "request_id": request_id,
                "already_processed": False,
                "inserted": 0,
                "version": None,
                "message": "No scores to record",
            }

        retry_all = feature_flags.FEATURE_SCORING_RETRY_ALL_ERRORS
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            logger.info(
                f"Recording {len(items)} {mode} score(s) for tournament {tournament_id}, "
                f"game {game_id} (request {request_id}, attempt {attempt}/{self.max_attempts})"
            )
            try:
                result = await self._record_attempt(tournament_id, game_id, items, mode, request_id)
            except Exception as e:
                last_error = e
                if not (retry_all or is_retryable(e)):
                    raise
                logger.warning(f"Attempt {attempt} for request {request_id} failed: {type(e).__name__}: {e}")
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_delay(attempt))
                continue

            if not result["already_processed"]:
                await self.notifier.publish({
                    "tournament_id": tournament_id,
                    "game_id": game_id,
                    "mode": mode,
                    "request_id": request_id,
                    "version": result["version"],
                })
            return result

        logger.error(f"Giving up on request {request_id} after {self.max_attempts} attempts")
        raise ScoreRecordingFailedError(self.max_attempts, last_error) from last_error

    async def _record_attempt(
        self,
        tournament_id: str,
        game_id: str,
        items: List[Dict[str, Any]],
        mode: str,
        request_id: str
    ) -> Dict[str, Any]:
        """One scoring transaction. Rolled back on any error."""
        async with self.session_factory() as db:
            try:
                tournament = await lock_tournament(db, tournament_id)
                expected_version = tournament.version

                if not await is_game_selected(db, tournament_id, game_id):
                    raise NotFoundError("Game", game_id)

                if await IdempotencyGuard.find_processed_request(db, tournament_id, game_id, request_id, mode):
                    await db.rollback()
                    logger.info(f"Request {request_id} already processed, skipping")
                    return self._already_processed(request_id, expected_version)

                rows = await self._build_rows(db, tournament_id, game_id, items, mode, request_id)

                claimed = await IdempotencyGuard.claim_request(
                    db, tournament_id, game_id, request_id, mode, len(rows)
                )
                if not claimed:
                    return self._already_processed(request_id, None)

                db.add_all(rows)
                await db.flush()

                written = await IdempotencyGuard.count_tagged_rows(db, tournament_id, game_id, request_id, mode)
                if written < len(rows):
                    raise InternalScoringError(
                        f"Score verification failed for request {request_id}: "
                        f"expected {len(rows)} rows, found {written}"
                    )

                new_version = await bump_version(db, tournament_id, expected_version)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            f"✓ Recorded {len(rows)} {mode} score(s) for tournament {tournament_id} "
            f"(version {new_version})"
        )
        return {
            "success": True,
            "request_id": request_id,
            "already_processed": False,
            "inserted": len(rows),
            "version": new_version,
            "message": f"Recorded {len(rows)} {mode} score(s) for game {game_id}",
        }

    @staticmethod
    def _already_processed(request_id: str, version: Optional[int]) -> Dict[str, Any]:
        return {
            "success": True,
            "request_id": request_id,
            "already_processed": True,
            "inserted": 0,
            "version": version,
            "message": "Request already processed",
        }

    @staticmethod
    async def _build_rows(
        db: AsyncSession,
        tournament_id: str,
        game_id: str,
        items: List[Dict[str, Any]],
        mode: str,
        request_id: str
    ) -> list:
        """Check membership and build the delta rows for this batch."""
        team_ids = {item["team_id"] for item in items if item["team_id"]}
        known_teams = set()
        if team_ids:
            result = await db.execute(
                select(Team.id).where(
                    and_(Team.tournament_id == tournament_id, Team.id.in_(team_ids))
                )
            )
            known_teams = set(result.scalars().all())

        player_teams: Dict[str, str] = {}
        if mode == ScoreMode.PLAYER:
            player_ids = {item["player_id"] for item in items}
            result = await db.execute(
                select(Player.id, Player.team_id).where(
                    and_(Player.tournament_id == tournament_id, Player.id.in_(player_ids))
                )
            )
            player_teams = {player_id: team_id for player_id, team_id in result.all()}

        rows = []
        for index, item in enumerate(items):
            team_id = item["team_id"]
            if team_id and team_id not in known_teams:
                raise ScoreValidationError(
                    f"Item {index}: team {team_id} does not belong to tournament {tournament_id}", index
                )

            reason = tag_reason(item["reason"], request_id)

            if mode == ScoreMode.TEAM:
                rows.append(TeamScore(
                    tournament_id=tournament_id,
                    game_id=game_id,
                    team_id=team_id,
                    score_change=item["score"],
                    reason=reason
                ))
                continue

            player_id = item["player_id"]
            if player_id not in player_teams:
                raise ScoreValidationError(
                    f"Item {index}: player {player_id} does not belong to tournament {tournament_id}", index
                )
            rows.append(PlayerScore(
                tournament_id=tournament_id,
                game_id=game_id,
                player_id=player_id,
                team_id=team_id or player_teams[player_id],
                score_change=item["score"],
                reason=reason
            ))
        return rows
