"""
Database CLI Commands
"""
from zgames.cli.base import BaseCommand
from zgames.database import init_db


class DbCommand(BaseCommand):
    """Database CLI command handler."""

    def execute(self, args) -> int:
        if args.db_action == "init":
            print("=== Initialize Database ===")
            return self.run(self._init)
        print("Error: Unknown db action")
        return 1

    async def _init(self, engine, session_factory) -> None:
        await init_db(engine)
        print(f"✓ Tables created on {engine.url.get_backend_name()}")
