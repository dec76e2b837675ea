"""
Version Fencer

Per-tournament optimistic concurrency for the scoring transaction.

lock_tournament opens the attempt with a no-op UPDATE of the tournament row.
That is a row lock on PostgreSQL and, on SQLite (which ignores FOR UPDATE),
it starts the transaction holding the database write lock, so concurrent
writers queue on the busy timeout instead of racing to the version check.
It must be the first statement of the transaction.

bump_version is the compare-and-set: it only succeeds if nobody committed
against the tournament since the version was read.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from zgames.exceptions import NotFoundError, ConcurrencyConflictError
from zgames.orm.tournament import Tournament

logger = logging.getLogger(__name__)


async def lock_tournament(db: AsyncSession, tournament_id: str) -> Tournament:
    """
    Lock the tournament row for the rest of the transaction.

    Raises:
        NotFoundError: If the tournament does not exist
    """
    # Touch without changing anything, updated_at included
    await db.execute(
        update(Tournament)
        .where(Tournament.id == tournament_id)
        .values(version=Tournament.version, updated_at=Tournament.updated_at)
        .execution_options(synchronize_session=False)
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
    return tournament


async def bump_version(db: AsyncSession, tournament_id: str, expected_version: int) -> int:
    """
    Increment Tournament.version by exactly one if it still equals expected_version.

    Returns:
        The new version

    Raises:
        ConcurrencyConflictError: If another transaction moved the version
    """
    result = await db.execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.version == expected_version)
        .values(version=Tournament.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            f"Version conflict on tournament {tournament_id}: expected {expected_version}"
        )
        raise ConcurrencyConflictError(tournament_id, expected_version)

    new_version = expected_version + 1
    logger.debug(f"Tournament {tournament_id} version {expected_version} -> {new_version}")
    return new_version
