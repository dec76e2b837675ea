"""
Shared fixtures: a file-backed SQLite database per test, a seeded
tournament, and a score recorder with instant backoff.
"""
from types import SimpleNamespace

import pytest

from zgames.database import create_engine_for_url, create_session_factory, init_db
from zgames.orm.team import Animal
from zgames.orm.tournament import TournamentStatus
from zgames.realtime.in_memory_adapter import InMemoryAdapter
from zgames.services.change_notifier import ChangeNotifier
from zgames.services.score_recorder_service import ScoreRecorderService
from zgames.services.tournament_service import (
    create_tournament, create_game, select_game, create_team, create_player,
)


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test (shared by every connection)."""
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'zgames_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# =============================================================================
# Seed data
# =============================================================================

@pytest.fixture
async def seeded(db):
    """
    Active tournament "Spring Games" with:
    - games: Tug of War and Sack Race (selected), Dodgeball (not selected)
    - teams: Red (Alice, Bob), Blue (Carol)
    """
    tournament = await create_tournament(db, "Spring Games", description="Annual party games",
                                         status=TournamentStatus.ACTIVE.value)
    tug = await create_game(db, "Tug of War", type="team", win_points=100, bonus_points=20, penalty_points=10)
    sack = await create_game(db, "Sack Race", type="individual", win_points=50)
    dodgeball = await create_game(db, "Dodgeball", type="team")
    await select_game(db, tournament.id, tug.id)
    await select_game(db, tournament.id, sack.id)

    fox = Animal(name="Fox", emoji="🦊")
    db.add(fox)
    await db.commit()

    red = await create_team(db, tournament.id, "Red")
    blue = await create_team(db, tournament.id, "Blue")
    alice = await create_player(db, red, "Alice", animal=fox)
    bob = await create_player(db, red, "Bob")
    carol = await create_player(db, blue, "Carol")

    return SimpleNamespace(
        tournament=tournament,
        tug=tug, sack=sack, dodgeball=dodgeball,
        red=red, blue=blue,
        alice=alice, bob=bob, carol=carol,
    )


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def broadcast_adapter():
    return InMemoryAdapter()


@pytest.fixture
def sleeps():
    """Backoff delays requested by the recorder."""
    return []


@pytest.fixture
def recorder(session_factory, broadcast_adapter, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return ScoreRecorderService(
        session_factory=session_factory,
        notifier=ChangeNotifier(broadcast_adapter),
        max_attempts=3,
        backoff_base_ms=100,
        backoff_jitter_ms=100,
        sleep=fake_sleep,
        jitter=lambda low, high: 0,
    )


@pytest.fixture
def read_leaderboard(session_factory):
    """Read a leaderboard through a fresh session."""
    from zgames.services.leaderboard_service import get_leaderboard_for_tournament

    async def _read(tournament_id=None):
        async with session_factory() as session:
            return await get_leaderboard_for_tournament(session, tournament_id)

    return _read
