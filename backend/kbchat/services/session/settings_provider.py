"""Read the GlobalSettings singleton as an immutable per-turn snapshot."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.settings import global_settings_crud
from kbchat.schemas.settings import GlobalSettingsSnapshot


class SettingsProvider:
    """Loads a fresh snapshot on every call; admin writes replace the row atomically."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def load(self) -> GlobalSettingsSnapshot:
        async with self._session_maker() as db:
            return await global_settings_crud.snapshot(db)
