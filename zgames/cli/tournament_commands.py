"""
Tournament CLI Commands

Status transitions and statistics.
"""
from zgames.cli.base import BaseCommand
from zgames.services.tournament_service import set_tournament_status, get_tournament_stats


class TournamentCommand(BaseCommand):
    """Tournament CLI command handler."""

    def execute(self, args) -> int:
        """Execute tournament command."""
        self.args = args
        if args.tournament_action == "status":
            print(f"=== Tournament {args.id} -> {args.status} ===")
            return self.run(self._status)
        elif args.tournament_action == "stats":
            print(f"=== Tournament {args.id} Stats ===")
            return self.run(self._stats)
        print("Error: Unknown tournament action")
        return 1

    async def _status(self, engine, session_factory) -> None:
        async with session_factory() as session:
            tournament = await set_tournament_status(session, self.args.id, self.args.status)
            print(f"✓ {tournament.name} is now {tournament.status}")

    async def _stats(self, engine, session_factory) -> None:
        async with session_factory() as session:
            stats = await get_tournament_stats(session, self.args.id)

        print(f"  Name:     {stats['name']}")
        print(f"  Status:   {stats['status']}")
        print(f"  Version:  {stats['version']}")
        print(f"  Teams:    {stats['total_teams']}")
        print(f"  Players:  {stats['total_players']}")
        print(f"  Games:    {stats['total_games']}")
        if stats["top_team"]:
            print(f"  Top team:   {stats['top_team']['name']} ({stats['top_team']['total_score']})")
        if stats["top_player"]:
            print(f"  Top player: {stats['top_player']['name']} ({stats['top_player']['total_score']})")
