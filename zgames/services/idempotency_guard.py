"""
Idempotency Guard

Decides whether a scoring request was already applied to a tournament/game.

A request is "processed" when either:
1. the score_requests ledger holds (tournament_id, game_id, request_id), or
2. a delta row of the request's mode carries the tag "[RequestID:<id>]"
   in its reason (rows written before the ledger existed).

Both checks run inside the caller's scoring transaction, after the
tournament row is locked. The ledger's unique constraint catches the
duplicate that slips past the lookup on backends without row locks.
"""
import logging
from typing import Optional

from sqlalchemy import select, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from zgames.orm.score import TeamScore, PlayerScore, ScoreRequest, ScoreMode

logger = logging.getLogger(__name__)


def request_tag(request_id: str) -> str:
    """Marker embedded in every delta row's reason."""
    return f"[RequestID:{request_id}]"


def tag_reason(reason: Optional[str], request_id: str) -> str:
    """Append the request tag to a reason."""
    return f"{reason or ''} {request_tag(request_id)}".strip()


LIKE_ESCAPE = "\\"


def tag_pattern(request_id: str) -> str:
    """
    LIKE pattern matching exactly this request's tag.

    The closing bracket stops "req-1" from matching "[RequestID:req-10]";
    escaping keeps "%" and "_" in an id literal.
    """
    escaped = (
        request_id
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%[RequestID:{escaped}]%"


def score_model_for_mode(mode: str):
    """Delta table written by a mode."""
    return TeamScore if mode == ScoreMode.TEAM else PlayerScore


class IdempotencyGuard:
    """Request-level deduplication for the score recorder."""

    @staticmethod
    async def find_processed_request(
        db: AsyncSession,
        tournament_id: str,
        game_id: str,
        request_id: str,
        mode: str
    ) -> bool:
        """
        Check whether this request already wrote rows for the tournament/game.

        Args:
            db: Session holding the scoring transaction
            tournament_id: Tournament being scored
            game_id: Game being scored
            request_id: Caller-supplied or generated idempotency token
            mode: "team" or "player", selects the fallback table
        Returns:
            True if the request was already applied
        """
        ledger = await db.execute(
            select(ScoreRequest.id).where(
                and_(
                    ScoreRequest.tournament_id == tournament_id,
                    ScoreRequest.game_id == game_id,
                    ScoreRequest.request_id == request_id
                )
            ).limit(1)
        )
        if ledger.scalar_one_or_none() is not None:
            return True

        # Fallback: tagged rows without a ledger entry
        model = score_model_for_mode(mode)
        tagged = await db.execute(
            select(model.id).where(
                and_(
                    model.tournament_id == tournament_id,
                    model.game_id == game_id,
                    model.reason.like(tag_pattern(request_id), escape=LIKE_ESCAPE)
                )
            ).limit(1)
        )
        return tagged.scalar_one_or_none() is not None

    @staticmethod
    async def claim_request(
        db: AsyncSession,
        tournament_id: str,
        game_id: str,
        request_id: str,
        mode: str,
        row_count: int
    ) -> bool:
        """
        Insert the ledger row for a request and flush it.

        On a unique violation the session is rolled back; the caller must
        end the attempt and report the request as already processed.

        Returns:
            True if claimed, False if another transaction already holds it
        """
        db.add(ScoreRequest(
            tournament_id=tournament_id,
            game_id=game_id,
            request_id=request_id,
            mode=mode,
            row_count=row_count
        ))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            logger.info(f"Request {request_id} already claimed for tournament {tournament_id}, game {game_id}")
            return False
        return True

    @staticmethod
    async def count_tagged_rows(
        db: AsyncSession,
        tournament_id: str,
        game_id: str,
        request_id: str,
        mode: str
    ) -> int:
        """Number of delta rows carrying this request's tag."""
        model = score_model_for_mode(mode)
        result = await db.execute(
            select(func.count(model.id)).where(
                and_(
                    model.tournament_id == tournament_id,
                    model.game_id == game_id,
                    model.reason.like(tag_pattern(request_id), escape=LIKE_ESCAPE)
                )
            )
        )
        return result.scalar_one()
