"""
Leaderboard Scoring API Routes

Score submission for a tournament game, tournament and game leaderboards,
and the leaderboardUpdated WebSocket push channel.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from zgames.config.settings import settings
from zgames.database import get_db
from zgames.errors import BadRequestError, ErrorCode
from zgames.rate_limit import limiter
from zgames.schemas.scoring import ScoreSubmission
from zgames.services.leaderboard_service import (
    get_leaderboard_for_tournament,
    get_leaderboard_for_game,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leaderboardScoring", tags=["Leaderboard Scoring"])
ws_router = APIRouter(tags=["Leaderboard Scoring"])


def summarize_scores(items: List[Dict[str, Any]], score_type: str) -> Dict[str, Any]:
    """Count and range of the submitted scores."""
    key = "team_id" if score_type == "team" else "player_id"
    values = [int(item["score"]) for item in items]
    if not values:
        return {"count": 0, "highest": None, "lowest": None, "average": None, "scores": []}
    return {
        "count": len(values),
        "highest": max(values),
        "lowest": min(values),
        "average": round(sum(values) / len(values), 2),
        "scores": [
            {key: item.get(key), "score": int(item["score"]), "reason": item.get("reason")}
            for item in items
        ],
    }


@router.post("/{tournament_id}/games/{game_id}/scores")
@limiter.limit(settings.score_rate_limit)
async def record_game_scores(
    request: Request,
    tournament_id: str,
    game_id: str,
    submission: ScoreSubmission,
) -> Dict[str, Any]:
    """
    Record team or player scores for a game.

    Body:
    - score_type: "team" or "player" (optional, inferred from the list sent)
    - team_scores / player_scores: [{team_id|player_id, score, reason?}]
    - request_id: idempotency token (optional)
    """
    if submission.score_type is None:
        raise BadRequestError("Provide score_type, or exactly one of team_scores / player_scores")

    items = submission.score_items()
    if items is None:
        raise BadRequestError(f"{submission.score_type}_scores is required for score_type '{submission.score_type}'")

    duplicates = submission.duplicate_ids()
    if duplicates:
        raise BadRequestError(
            f"Duplicate {submission.score_type} ids in submission",
            code=ErrorCode.DUPLICATE_ENTRY,
            details={"duplicates": duplicates}
        )

    recorder = request.app.state.score_recorder
    result = await recorder.record_game_scores(
        tournament_id=tournament_id,
        game_id=game_id,
        deltas=items,
        mode=submission.score_type,
        request_id=submission.request_id,
    )

    return {
        "success": True,
        "message": result["message"],
        "data": {
            "score_type": submission.score_type,
            "summary": summarize_scores(items, submission.score_type),
            "request_id": result["request_id"],
            "already_processed": result["already_processed"],
            "version": result["version"],
        },
    }


@router.get("/leaderboard/active")
async def get_active_leaderboard(db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Leaderboard of the active tournament. data is null when none is active."""
    leaderboard = await get_leaderboard_for_tournament(db)
    if leaderboard is None:
        return {"success": True, "message": "No active tournament", "data": None}
    return {"success": True, "data": leaderboard}


@router.get("/{tournament_id}/leaderboard")
async def get_tournament_leaderboard(
    tournament_id: str,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Full leaderboard for a tournament."""
    leaderboard = await get_leaderboard_for_tournament(db, tournament_id)
    return {"success": True, "data": leaderboard}


@router.get("/{tournament_id}/games/{game_id}/leaderboard")
async def get_game_leaderboard(
    tournament_id: str,
    game_id: str,
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """Leaderboard for one selected game."""
    leaderboard = await get_leaderboard_for_game(db, tournament_id, game_id)
    return {"success": True, "data": leaderboard}


@ws_router.websocket("/ws/leaderboard")
async def leaderboard_updates(websocket: WebSocket, client_id: Optional[str] = None):
    """
    Push channel for leaderboardUpdated events.

    Read-only: incoming client messages are ignored. Clients re-fetch the
    leaderboard over HTTP when an event arrives.
    """
    manager = websocket.app.state.connection_manager
    await manager.connect(websocket, client_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Leaderboard client disconnected ({client_id or 'anonymous'})")
    finally:
        await manager.disconnect(websocket)
