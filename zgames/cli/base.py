"""
Shared plumbing for CLI commands: one engine per invocation.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from zgames.config.settings import settings
from zgames.database import create_engine_for_url, create_session_factory
from zgames.exceptions import ZGamesException


class BaseCommand:
    """Runs an async action against a short-lived engine and reports errors."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url

    def run(self, action: Callable[..., Awaitable[Any]]) -> int:
        try:
            asyncio.run(self._with_engine(action))
            return 0
        except (ZGamesException, SQLAlchemyError) as e:
            print(f"Error: {e}")
            return 1

    async def _with_engine(self, action: Callable[..., Awaitable[Any]]) -> None:
        engine = create_engine_for_url(self.database_url)
        try:
            await action(engine, create_session_factory(engine))
        finally:
            await engine.dispose()
