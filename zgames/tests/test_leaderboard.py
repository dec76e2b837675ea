"""
Leaderboard Aggregation Test Suite

Read-time fold of the delta log: totals, team bonus, deterministic
tie-breaks, per-game views and the active-tournament default.
"""
import pytest

from zgames.exceptions import NotFoundError
from zgames.orm.tournament import TournamentStatus
from zgames.services.leaderboard_service import (
    get_leaderboard_for_tournament,
    get_leaderboard_for_game,
    ranking_key,
)
from zgames.services.tournament_service import (
    create_tournament, create_team, create_player, create_game, select_game,
    move_player, set_tournament_status,
)


def team_entry(board, team_id):
    return next(t for t in board["team_rankings"] if t["id"] == team_id)


def player_entry(board, player_id):
    return next(p for p in board["player_rankings"] if p["id"] == player_id)


# =============================================================================
# Test Class 1: Reference scenarios
# =============================================================================

class TestReferenceScenarios:
    """Single team "Red" scored through team and player deltas."""

    @pytest.fixture
    async def red_only(self, db):
        tournament = await create_tournament(db, "Solo Cup", status=TournamentStatus.ACTIVE.value)
        game = await create_game(db, "Relay")
        await select_game(db, tournament.id, game.id)
        red = await create_team(db, tournament.id, "Red")
        return tournament, game, red

    @pytest.mark.asyncio
    async def test_scenarios_a_to_d(self, db, red_only, recorder, read_leaderboard):
        tournament, game, red = red_only

        # A: a single team delta
        await recorder.record_game_scores(
            tournament.id, game.id, [{"team_id": red.id, "score": 100, "reason": "win"}], "team", "req-a"
        )
        board = await read_leaderboard(tournament.id)
        assert team_entry(board, red.id)["total_score"] == 100

        # B: a penalty with a new request id
        penalty = [{"team_id": red.id, "score": -30, "reason": "penalty"}]
        await recorder.record_game_scores(tournament.id, game.id, penalty, "team", "req-b")
        board = await read_leaderboard(tournament.id)
        assert team_entry(board, red.id)["total_score"] == 70

        # C: replaying B changes nothing
        await recorder.record_game_scores(tournament.id, game.id, penalty, "team", "req-b")
        board = await read_leaderboard(tournament.id)
        assert team_entry(board, red.id)["total_score"] == 70

        # D: a player delta counts for the player and the team
        alice = await create_player(db, red, "Alice")
        await recorder.record_game_scores(
            tournament.id, game.id,
            [{"player_id": alice.id, "team_id": red.id, "score": 50}], "player", "req-d"
        )
        board = await read_leaderboard(tournament.id)
        red_entry = team_entry(board, red.id)
        assert player_entry(board, alice.id)["score"] == 50
        assert red_entry["total_score"] == 120
        assert red_entry["team_bonus"] == 70
        assert board["tournament"]["version"] == 3

    @pytest.mark.asyncio
    async def test_scenario_e_no_active_tournament(self, db, read_leaderboard):
        tournament = await create_tournament(db, "Dormant Cup")
        assert tournament.status == TournamentStatus.PENDING.value

        assert await read_leaderboard() is None


# =============================================================================
# Test Class 2: Aggregation rules
# =============================================================================

class TestAggregation:

    @pytest.mark.asyncio
    async def test_team_total_equals_bonus_plus_players(self, seeded, recorder, read_leaderboard):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.tug.id,
            [{"team_id": seeded.red.id, "score": 100}, {"team_id": seeded.blue.id, "score": 60}],
            "team", "req-team",
        )
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.sack.id,
            [
                {"player_id": seeded.alice.id, "score": 15},
                {"player_id": seeded.bob.id, "score": -5},
                {"player_id": seeded.carol.id, "score": 25},
            ],
            "player", "req-players",
        )

        board = await read_leaderboard(seeded.tournament.id)
        for team in board["team_rankings"]:
            player_sum = sum(p["score"] for p in team["players"])
            assert team["total_score"] == team["team_bonus"] + player_sum

        red = team_entry(board, seeded.red.id)
        assert red["total_score"] == 110
        assert red["game_scores"] == {seeded.tug.id: 100, seeded.sack.id: 10}
        assert team_entry(board, seeded.blue.id)["total_score"] == 85

    @pytest.mark.asyncio
    async def test_negative_totals_are_shown_negative(self, seeded, recorder, read_leaderboard):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.tug.id,
            [{"team_id": seeded.blue.id, "score": -40, "reason": "foul"}], "team",
        )
        board = await read_leaderboard(seeded.tournament.id)

        assert team_entry(board, seeded.blue.id)["total_score"] == -40
        assert board["team_rankings"][0]["id"] == seeded.red.id

    @pytest.mark.asyncio
    async def test_moved_player_scores_follow_current_team(self, seeded, recorder, db, read_leaderboard):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.sack.id,
            [{"player_id": seeded.alice.id, "score": 50}], "player", "req-alice",
        )
        await move_player(db, seeded.alice.id, seeded.blue.id)

        board = await read_leaderboard(seeded.tournament.id)
        assert team_entry(board, seeded.red.id)["total_score"] == 0
        assert team_entry(board, seeded.blue.id)["total_score"] == 50
        assert player_entry(board, seeded.alice.id)["team_id"] == seeded.blue.id

    @pytest.mark.asyncio
    async def test_view_shape(self, seeded, recorder, read_leaderboard):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.sack.id,
            [{"player_id": seeded.alice.id, "score": 30, "reason": "first place"}], "player", "req-shape",
        )
        board = await read_leaderboard(seeded.tournament.id)

        assert board["tournament"]["name"] == "Spring Games"
        assert board["total_teams"] == 2
        assert board["total_players"] == 3
        assert board["highest_team"] == {"id": seeded.red.id, "name": "Red", "score": 30}
        assert board["highest_player"]["name"] == "Alice"
        assert board["highest_player"]["animal"] == {"name": "Fox", "emoji": "🦊"}
        assert board["selected_games"]["count"] == 2
        scoring = {g["name"]: g["scoring"] for g in board["selected_games"]["games"]}
        assert scoring["Tug of War"]["win_points"] == 100
        assert board["last_updated"]

        sack = next(g for g in board["game_breakdown"] if g["game_id"] == seeded.sack.id)
        assert sack["player_scores"][0]["breakdown"][0]["reason"] == "first place [RequestID:req-shape]"
        assert sack["team_scores"][0]["team_only_score"] == 0
        assert sack["team_scores"][0]["player_score"] == 30

    @pytest.mark.asyncio
    async def test_player_ranks(self, seeded, recorder, read_leaderboard):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.sack.id,
            [
                {"player_id": seeded.alice.id, "score": 10},
                {"player_id": seeded.bob.id, "score": 40},
                {"player_id": seeded.carol.id, "score": 25},
            ],
            "player", "req-ranks",
        )
        board = await read_leaderboard(seeded.tournament.id)

        bob = player_entry(board, seeded.bob.id)
        alice = player_entry(board, seeded.alice.id)
        carol = player_entry(board, seeded.carol.id)
        assert (bob["overall_rank"], carol["overall_rank"], alice["overall_rank"]) == (1, 2, 3)
        assert (bob["team_rank"], alice["team_rank"], carol["team_rank"]) == (1, 2, 1)
        # Red 50 beats Blue 25
        assert bob["team_overall_rank"] == 1
        assert carol["team_overall_rank"] == 2

    @pytest.mark.asyncio
    async def test_unknown_tournament_is_not_found(self, db):
        with pytest.raises(NotFoundError):
            await get_leaderboard_for_tournament(db, "does-not-exist")

    @pytest.mark.asyncio
    async def test_default_reads_active_tournament(self, seeded, read_leaderboard):
        board = await read_leaderboard()
        assert board["tournament"]["id"] == seeded.tournament.id


# =============================================================================
# Test Class 3: Tie-breaks
# =============================================================================

class TestTieBreaks:

    def test_ranking_key_orders_by_total_then_name_then_id(self):
        entries = [
            (10, "bravo", "id-2"),
            (10, "Alpha", "id-9"),
            (20, "zulu", "id-5"),
            (10, "alpha", "id-1"),
        ]
        ordered = sorted(entries, key=lambda e: ranking_key(*e))
        assert ordered == [
            (20, "zulu", "id-5"),
            (10, "alpha", "id-1"),
            (10, "Alpha", "id-9"),
            (10, "bravo", "id-2"),
        ]

    @pytest.mark.asyncio
    async def test_tied_teams_rank_alphabetically(self, db, recorder, read_leaderboard):
        tournament = await create_tournament(db, "Tie Cup", status=TournamentStatus.ACTIVE.value)
        game = await create_game(db, "Coin Toss")
        await select_game(db, tournament.id, game.id)
        zebras = await create_team(db, tournament.id, "zebras")
        ants = await create_team(db, tournament.id, "Ants")

        await recorder.record_game_scores(
            tournament.id, game.id,
            [{"team_id": zebras.id, "score": 10}, {"team_id": ants.id, "score": 10}], "team",
        )
        board = await read_leaderboard(tournament.id)

        assert [t["name"] for t in board["team_rankings"]] == ["Ants", "zebras"]
        assert [t["rank"] for t in board["team_rankings"]] == [1, 2]


# =============================================================================
# Test Class 4: Game leaderboard
# =============================================================================

class TestGameLeaderboard:

    @pytest.mark.asyncio
    async def test_game_leaderboard(self, seeded, recorder, session_factory):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.tug.id,
            [{"team_id": seeded.blue.id, "score": 80}, {"team_id": seeded.red.id, "score": 20}],
            "team", "req-tug",
        )
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.sack.id,
            [{"player_id": seeded.alice.id, "score": 90}], "player", "req-sack",
        )

        async with session_factory() as session:
            board = await get_leaderboard_for_game(session, seeded.tournament.id, seeded.tug.id)

        assert board["game"]["name"] == "Tug of War"
        assert [e["team_name"] for e in board["team_rankings"]] == ["Blue", "Red"]
        assert board["team_rankings"][0]["score"] == 80
        assert board["team_rankings"][0]["rank"] == 1
        assert board["player_rankings"] == []

    @pytest.mark.asyncio
    async def test_unselected_game_is_not_found(self, seeded, db):
        with pytest.raises(NotFoundError):
            await get_leaderboard_for_game(db, seeded.tournament.id, seeded.dodgeball.id)

    @pytest.mark.asyncio
    async def test_unknown_tournament_is_not_found(self, seeded, db):
        with pytest.raises(NotFoundError):
            await get_leaderboard_for_game(db, "nope", seeded.tug.id)

    @pytest.mark.asyncio
    async def test_read_does_not_change_version(self, seeded, recorder, read_leaderboard, db):
        await recorder.record_game_scores(
            seeded.tournament.id, seeded.tug.id, [{"team_id": seeded.red.id, "score": 1}], "team",
        )
        first = await read_leaderboard(seeded.tournament.id)
        second = await read_leaderboard(seeded.tournament.id)
        assert first["tournament"]["version"] == second["tournament"]["version"] == 1

        await set_tournament_status(db, seeded.tournament.id, TournamentStatus.COMPLETED.value)
        board = await read_leaderboard(seeded.tournament.id)
        assert board["tournament"]["status"] == "completed"
