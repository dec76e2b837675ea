"""
Tournament Service

Tournament lookups, status transitions and the helpers used to set up
tournaments from the CLI and tests. There is no HTTP surface for creating
tournaments, teams or players.

Single-active rule:
- At most one tournament has status 'active'
- Activating a tournament first flips every other active one to 'inactive'
  in the same transaction (the partial unique index backs this up)
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from zgames.exceptions import InvalidInputError, NotFoundError
from zgames.orm.game import Game
from zgames.orm.team import Animal, Team, Player
from zgames.orm.tournament import Tournament, TournamentStatus, TournamentSelectedGame

logger = logging.getLogger(__name__)


# =============================================================================
# Lookups
# =============================================================================

async def get_tournament(db: AsyncSession, tournament_id: str) -> Tournament:
    result = await db.execute(
        select(Tournament)
        .where(Tournament.id == tournament_id)
        .execution_options(populate_existing=True)
    )
    tournament = result.scalar_one_or_none()
    if not tournament:
        raise NotFoundError("Tournament", tournament_id)
    return tournament


async def get_active_tournament(db: AsyncSession) -> Optional[Tournament]:
    """The single active tournament, or None."""
    result = await db.execute(
        select(Tournament)
        .where(Tournament.status == TournamentStatus.ACTIVE.value)
        .order_by(Tournament.updated_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def is_game_selected(db: AsyncSession, tournament_id: str, game_id: str) -> bool:
    """Whether the game was selected for the tournament."""
    result = await db.execute(
        select(TournamentSelectedGame.id).where(
            and_(
                TournamentSelectedGame.tournament_id == tournament_id,
                TournamentSelectedGame.game_id == game_id
            )
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


# =============================================================================
# Status transitions
# =============================================================================

async def set_tournament_status(db: AsyncSession, tournament_id: str, status: str) -> Tournament:
    """
    Change a tournament's status and commit.

    Args:
        db: Database session
        tournament_id: Tournament to update
        status: One of active, inactive, pending, completed, cancelled
    Returns:
        The updated tournament

    Raises:
        InvalidInputError: Unknown status literal
        NotFoundError: Tournament does not exist
    """
    valid = [s.value for s in TournamentStatus]
    if status not in valid:
        raise InvalidInputError(
            f"Invalid tournament status '{status}'. Must be one of: {', '.join(valid)}"
        )

    result = await db.execute(
        select(Tournament)
        .where(Tournament.id == tournament_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    tournament = result.scalar_one_or_none()
    if not tournament:
        raise NotFoundError("Tournament", tournament_id)

    if tournament.status == status:
        await db.commit()
        return tournament

    try:
        now = datetime.utcnow()
        if status == TournamentStatus.ACTIVE.value:
            # Statements run in order so the partial unique index never sees two actives
            await db.execute(
                update(Tournament)
                .where(
                    Tournament.status == TournamentStatus.ACTIVE.value,
                    Tournament.id != tournament_id
                )
                .values(status=TournamentStatus.INACTIVE.value, updated_at=now)
                .execution_options(synchronize_session=False)
            )

        await db.execute(
            update(Tournament)
            .where(Tournament.id == tournament_id)
            .values(status=status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(tournament)
    logger.info(f"Tournament {tournament_id} status -> {status}")
    return tournament


# =============================================================================
# Stats
# =============================================================================

async def get_tournament_stats(db: AsyncSession, tournament_id: str) -> Dict[str, Any]:
    """Counts plus the current leaders."""
    from zgames.services.leaderboard_service import get_leaderboard_for_tournament

    tournament = await get_tournament(db, tournament_id)

    team_count = await db.scalar(
        select(func.count(Team.id)).where(Team.tournament_id == tournament_id)
    )
    player_count = await db.scalar(
        select(func.count(Player.id)).where(Player.tournament_id == tournament_id)
    )
    game_count = await db.scalar(
        select(func.count(TournamentSelectedGame.id)).where(
            TournamentSelectedGame.tournament_id == tournament_id
        )
    )

    leaderboard = await get_leaderboard_for_tournament(db, tournament_id)
    top_team = leaderboard["highest_team"]
    top_player = leaderboard["highest_player"]

    return {
        "tournament_id": tournament.id,
        "name": tournament.name,
        "status": tournament.status,
        "version": tournament.version,
        "total_teams": team_count or 0,
        "total_players": player_count or 0,
        "total_games": game_count or 0,
        "top_team": {"id": top_team["id"], "name": top_team["name"], "total_score": top_team["score"]} if top_team else None,
        "top_player": {"id": top_player["id"], "name": top_player["name"], "total_score": top_player["score"]} if top_player else None,
    }


# =============================================================================
# Setup helpers (CLI / tests)
# =============================================================================

async def create_tournament(
    db: AsyncSession,
    name: str,
    description: Optional[str] = None,
    status: str = TournamentStatus.PENDING.value,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> Tournament:
    tournament = Tournament(
        name=name,
        description=description,
        status=TournamentStatus.PENDING.value,
        start_date=start_date,
        end_date=end_date
    )
    db.add(tournament)
    await db.commit()
    await db.refresh(tournament)

    if status != TournamentStatus.PENDING.value:
        tournament = await set_tournament_status(db, tournament.id, status)
    return tournament


async def create_game(db: AsyncSession, name: str, **fields) -> Game:
    game = Game(name=name, **fields)
    db.add(game)
    await db.commit()
    await db.refresh(game)
    return game


async def select_game(db: AsyncSession, tournament_id: str, game_id: str) -> TournamentSelectedGame:
    """Add a game to a tournament's selection. Idempotent."""
    result = await db.execute(
        select(TournamentSelectedGame).where(
            and_(
                TournamentSelectedGame.tournament_id == tournament_id,
                TournamentSelectedGame.game_id == game_id
            )
        )
    )
    selected = result.scalar_one_or_none()
    if selected:
        return selected

    selected = TournamentSelectedGame(tournament_id=tournament_id, game_id=game_id)
    db.add(selected)
    await db.commit()
    return selected


async def create_team(db: AsyncSession, tournament_id: str, name: str) -> Team:
    team = Team(tournament_id=tournament_id, name=name)
    db.add(team)
    await db.commit()
    await db.refresh(team)
    return team


async def create_player(
    db: AsyncSession,
    team: Team,
    name: str,
    animal: Optional[Animal] = None
) -> Player:
    player = Player(
        name=name,
        team_id=team.id,
        tournament_id=team.tournament_id,
        animal_id=animal.id if animal else None
    )
    db.add(player)
    await db.commit()
    await db.refresh(player)
    return player


async def move_player(db: AsyncSession, player_id: str, team_id: str) -> Player:
    """Move a player to another team of the same tournament. Score rows stay put."""
    result = await db.execute(select(Player).where(Player.id == player_id))
    player = result.scalar_one_or_none()
    if not player:
        raise NotFoundError("Player", player_id)

    result = await db.execute(
        select(Team).where(and_(Team.id == team_id, Team.tournament_id == player.tournament_id))
    )
    if not result.scalar_one_or_none():
        raise NotFoundError("Team", team_id)

    player.team_id = team_id
    await db.commit()
    await db.refresh(player)
    return player
