"""
Leaderboard CLI Commands
"""
import json

from zgames.cli.base import BaseCommand
from zgames.services.leaderboard_service import (
    get_leaderboard_for_tournament,
    get_leaderboard_for_game,
)


class LeaderboardCommand(BaseCommand):
    """Leaderboard CLI command handler."""

    def execute(self, args) -> int:
        self.args = args
        if args.leaderboard_action == "show":
            return self.run(self._show)
        print("Error: Unknown leaderboard action")
        return 1

    async def _show(self, engine, session_factory) -> None:
        args = self.args
        async with session_factory() as session:
            if args.game:
                if not args.id:
                    print("Error: --game requires --id")
                    return
                board = await get_leaderboard_for_game(session, args.id, args.game)
            else:
                board = await get_leaderboard_for_tournament(session, args.id)

        if board is None:
            print("No active tournament")
            return

        if args.json:
            print(json.dumps(board, indent=2, default=str))
            return

        print(f"=== {board['tournament']['name']} (v{board['tournament']['version']}) ===")
        if args.game:
            print(f"Game: {board['game']['name']}")
            rows = [(e["rank"], e["team_name"], e["score"]) for e in board["team_rankings"]]
        else:
            rows = [(t["rank"], t["name"], t["total_score"]) for t in board["team_rankings"]]

        print(f"\n{'Rank':<6} {'Team':<40} {'Score':>8}")
        print("-" * 56)
        for rank, name, score in rows:
            print(f"{rank:<6} {name[:38]:<40} {score:>8}")
