"""
Leaderboard Service

Read-time aggregation of the score delta log into tournament and game
leaderboards. Nothing here writes; every call folds the full log again, so
the view always reflects committed deltas and current team membership.

Aggregation rules:
- Team per-game score = team deltas + deltas of the team's CURRENT players
- Player total = sum of the player's deltas across games
- team_bonus = team total - sum of its players' totals
- Deterministic ordering: total DESC, name (case-insensitive) ASC, id ASC
- Ranks are positional (1..n), ties do not share a rank
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from zgames.exceptions import NotFoundError
from zgames.orm.score import TeamScore, PlayerScore
from zgames.orm.team import Team, Player
from zgames.orm.tournament import Tournament, TournamentSelectedGame
from zgames.services.tournament_service import get_active_tournament, get_tournament

logger = logging.getLogger(__name__)


def ranking_key(total: int, name: Optional[str], entity_id: str) -> Tuple[int, str, str]:
    """Sort key: total DESC, name case-insensitive ASC, id ASC."""
    return (-total, (name or "").casefold(), entity_id)


def _animal(player: Player) -> Optional[Dict[str, Any]]:
    if player.animal is None:
        return None
    return {"name": player.animal.name, "emoji": player.animal.emoji}


# =============================================================================
# Loading
# =============================================================================

async def _load_tournament_data(db: AsyncSession, tournament_id: str) -> Dict[str, Any]:
    teams = (await db.execute(
        select(Team)
        .where(Team.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    )).scalars().all()

    players = (await db.execute(
        select(Player)
        .where(Player.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    )).scalars().all()

    selected = (await db.execute(
        select(TournamentSelectedGame)
        .where(TournamentSelectedGame.tournament_id == tournament_id)
        .order_by(TournamentSelectedGame.created_at, TournamentSelectedGame.id)
    )).scalars().all()

    team_rows = (await db.execute(
        select(TeamScore)
        .where(TeamScore.tournament_id == tournament_id)
        .order_by(TeamScore.created_at, TeamScore.id)
    )).scalars().all()

    player_rows = (await db.execute(
        select(PlayerScore)
        .where(PlayerScore.tournament_id == tournament_id)
        .order_by(PlayerScore.created_at, PlayerScore.id)
    )).scalars().all()

    return {
        "teams": list(teams),
        "players": list(players),
        "games": [s.game for s in selected],
        "team_rows": list(team_rows),
        "player_rows": list(player_rows),
    }


# =============================================================================
# Fold
# =============================================================================

def _fold(tournament: Tournament, data: Dict[str, Any]) -> Dict[str, Any]:
    """Fold the delta log into the full tournament leaderboard view."""
    teams: List[Team] = data["teams"]
    players: List[Player] = data["players"]
    games = data["games"]

    team_game_score: Dict[Tuple[str, str], int] = defaultdict(int)
    team_game_rows: Dict[Tuple[str, str], list] = defaultdict(list)
    for row in data["team_rows"]:
        team_game_score[(row.team_id, row.game_id)] += row.score_change
        team_game_rows[(row.team_id, row.game_id)].append(row.to_dict())

    player_game_score: Dict[Tuple[str, str], int] = defaultdict(int)
    player_game_rows: Dict[Tuple[str, str], list] = defaultdict(list)
    for row in data["player_rows"]:
        player_game_score[(row.player_id, row.game_id)] += row.score_change
        player_game_rows[(row.player_id, row.game_id)].append(row.to_dict())

    # Every game with rows counts toward totals, selected or not
    scored_games = {g for (_, g) in team_game_score} | {g for (_, g) in player_game_score}

    players_by_team: Dict[str, List[Player]] = defaultdict(list)
    for player in players:
        players_by_team[player.team_id].append(player)

    player_total = {
        p.id: sum(player_game_score.get((p.id, g), 0) for g in scored_games)
        for p in players
    }

    team_only_total = {
        t.id: sum(team_game_score.get((t.id, g), 0) for g in scored_games)
        for t in teams
    }

    def team_game_total(team_id: str, game_id: str) -> int:
        return team_game_score.get((team_id, game_id), 0) + sum(
            player_game_score.get((p.id, game_id), 0) for p in players_by_team[team_id]
        )

    team_total = {
        t.id: team_only_total[t.id] + sum(player_total[p.id] for p in players_by_team[t.id])
        for t in teams
    }

    ordered_teams = sorted(teams, key=lambda t: ranking_key(team_total[t.id], t.name, t.id))

    team_rankings = []
    player_entries: Dict[str, Dict[str, Any]] = {}
    for team_index, team in enumerate(ordered_teams):
        members = sorted(
            players_by_team[team.id],
            key=lambda p: ranking_key(player_total[p.id], p.name, p.id)
        )
        player_sum = sum(player_total[p.id] for p in members)

        member_entries = []
        for member_index, player in enumerate(members):
            entry = {
                "id": player.id,
                "name": player.name,
                "score": player_total[player.id],
                "animal": _animal(player),
                "team_id": team.id,
                "team_name": team.name,
                "team_rank": member_index + 1,
                "team_overall_rank": team_index + 1,
                "game_scores": {
                    g: player_game_score[(player.id, g)]
                    for g in sorted(scored_games) if (player.id, g) in player_game_score
                },
            }
            member_entries.append(entry)
            player_entries[player.id] = entry

        team_rankings.append({
            "id": team.id,
            "name": team.name,
            "rank": team_index + 1,
            "total_score": team_total[team.id],
            "team_bonus": team_total[team.id] - player_sum,
            "player_score": player_sum,
            "player_count": len(members),
            "players": member_entries,
            "game_scores": {g: team_game_total(team.id, g) for g in sorted(scored_games)},
        })

    player_rankings = sorted(
        player_entries.values(),
        key=lambda e: ranking_key(e["score"], e["name"], e["id"])
    )
    for index, entry in enumerate(player_rankings):
        entry["overall_rank"] = index + 1

    game_breakdown = []
    for game in games:
        game_breakdown.append(_game_entry(
            game, ordered_teams, players_by_team,
            team_game_score, team_game_rows, player_game_score, player_game_rows
        ))

    highest_team = None
    if team_rankings:
        top = team_rankings[0]
        highest_team = {"id": top["id"], "name": top["name"], "score": top["total_score"]}

    highest_player = None
    if player_rankings:
        top = player_rankings[0]
        highest_player = {
            "id": top["id"],
            "name": top["name"],
            "score": top["score"],
            "team_id": top["team_id"],
            "team_name": top["team_name"],
            "animal": top["animal"],
        }

    timestamps = [r.created_at for r in data["team_rows"] + data["player_rows"] if r.created_at]
    last_updated = max(timestamps) if timestamps else (tournament.updated_at or datetime.utcnow())

    return {
        "tournament": {
            "id": tournament.id,
            "name": tournament.name,
            "description": tournament.description,
            "status": tournament.status,
            "version": tournament.version,
            "start_date": tournament.start_date.isoformat() if tournament.start_date else None,
            "end_date": tournament.end_date.isoformat() if tournament.end_date else None,
        },
        "team_rankings": team_rankings,
        "player_rankings": player_rankings,
        "total_teams": len(team_rankings),
        "total_players": len(player_rankings),
        "highest_team": highest_team,
        "highest_player": highest_player,
        "game_breakdown": game_breakdown,
        "selected_games": {
            "count": len(games),
            "games": [g.to_dict() for g in games],
        },
        "last_updated": last_updated.isoformat(),
    }


def _game_entry(
    game,
    ordered_teams: List[Team],
    players_by_team: Dict[str, List[Player]],
    team_game_score,
    team_game_rows,
    player_game_score,
    player_game_rows,
) -> Dict[str, Any]:
    """Per-game view: teams and players with rows in this game."""
    team_scores = []
    player_scores = []

    for team in ordered_teams:
        members = players_by_team[team.id]
        has_team_rows = (team.id, game.id) in team_game_score
        scored_members = [p for p in members if (p.id, game.id) in player_game_score]

        for player in scored_members:
            player_scores.append({
                "player_id": player.id,
                "player_name": player.name,
                "team_id": team.id,
                "team_name": team.name,
                "animal": _animal(player),
                "score": player_game_score[(player.id, game.id)],
                "breakdown": player_game_rows[(player.id, game.id)],
            })

        if not has_team_rows and not scored_members:
            continue

        team_only = team_game_score.get((team.id, game.id), 0)
        player_part = sum(player_game_score.get((p.id, game.id), 0) for p in members)
        team_scores.append({
            "team_id": team.id,
            "team_name": team.name,
            "score": team_only + player_part,
            "team_only_score": team_only,
            "player_score": player_part,
            "breakdown": team_game_rows.get((team.id, game.id), []),
        })

    team_scores.sort(key=lambda e: ranking_key(e["score"], e["team_name"], e["team_id"]))
    player_scores.sort(key=lambda e: ranking_key(e["score"], e["player_name"], e["player_id"]))
    for index, entry in enumerate(team_scores):
        entry["rank"] = index + 1
    for index, entry in enumerate(player_scores):
        entry["rank"] = index + 1

    return {
        "game_id": game.id,
        "game_name": game.name,
        "team_scores": team_scores,
        "player_scores": player_scores,
        "total_team_participants": len(team_scores),
        "total_player_participants": len(player_scores),
    }


# =============================================================================
# Public API
# =============================================================================

async def get_leaderboard_for_tournament(
    db: AsyncSession,
    tournament_id: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Full leaderboard for a tournament.

    Args:
        db: Database session
        tournament_id: Tournament to read; None means the active tournament
    Returns:
        Leaderboard view, or None when no id is given and nothing is active

    Raises:
        NotFoundError: An explicit tournament_id does not exist
    """
    if tournament_id is None:
        tournament = await get_active_tournament(db)
        if tournament is None:
            return None
    else:
        tournament = await get_tournament(db, tournament_id)

    data = await _load_tournament_data(db, tournament.id)
    leaderboard = _fold(tournament, data)
    logger.debug(
        f"Leaderboard for tournament {tournament.id}: {leaderboard['total_teams']} teams, "
        f"{len(data['team_rows']) + len(data['player_rows'])} deltas"
    )
    return leaderboard


async def get_leaderboard_for_game(
    db: AsyncSession,
    tournament_id: str,
    game_id: str
) -> Dict[str, Any]:
    """
    Leaderboard for one selected game of a tournament.

    Raises:
        NotFoundError: Tournament missing, or game not selected for it
    """
    tournament = await get_tournament(db, tournament_id)
    data = await _load_tournament_data(db, tournament.id)

    game = next((g for g in data["games"] if g.id == game_id), None)
    if game is None:
        raise NotFoundError("Game", game_id)

    leaderboard = _fold(tournament, data)
    entry = next(e for e in leaderboard["game_breakdown"] if e["game_id"] == game_id)

    return {
        "tournament": leaderboard["tournament"],
        "game": game.to_dict(),
        "team_rankings": entry["team_scores"],
        "player_rankings": entry["player_scores"],
        "total_team_participants": entry["total_team_participants"],
        "total_player_participants": entry["total_player_participants"],
        "last_updated": leaderboard["last_updated"],
    }
