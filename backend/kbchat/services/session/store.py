"""Session store: active sessions and their ordered message history.

Review note:
- Each operation opens its own database session, so long-lived session
  workers never hold a connection between turns.
- `destroy` is idempotent; an `append` after `destroy` raises UnknownSession,
  which is how an abandoned in-flight turn learns it must stop.
"""

from __future__ import annotations

from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.session import message_crud, session_crud
from kbchat.errors import DuplicateSession, UnknownSession
from kbchat.models.message import Message
from kbchat.models.session import ChatSession

ROLES = ("system", "user", "assistant")


class SessionStore:
    """Durable table of active sessions keyed by opaque session key."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def create(self, session_key: str) -> ChatSession:
        async with self._session_maker() as db:
            if await session_crud.get(db, session_key):
                raise DuplicateSession(session_key)
            try:
                return await session_crud.create(db, session_key)
            except IntegrityError as exc:
                await db.rollback()
                raise DuplicateSession(session_key) from exc

    async def ensure(self, session_key: str) -> ChatSession:
        """Find-or-create, used when a client starts its session."""
        async with self._session_maker() as db:
            existing = await session_crud.get(db, session_key)
            if existing:
                return existing
        try:
            return await self.create(session_key)
        except DuplicateSession:
            async with self._session_maker() as db:
                return await session_crud.get(db, session_key)

    async def exists(self, session_key: str) -> bool:
        async with self._session_maker() as db:
            return await session_crud.get(db, session_key) is not None

    async def append(self, session_key: str, role: str, content: str) -> Message:
        if role not in ROLES:
            raise ValueError(f"invalid role: {role}")
        async with self._session_maker() as db:
            if not await session_crud.get(db, session_key):
                raise UnknownSession(session_key)
            return await message_crud.create(db, session_key, role, content)

    async def history(self, session_key: str) -> List[Message]:
        async with self._session_maker() as db:
            if not await session_crud.get(db, session_key):
                raise UnknownSession(session_key)
            return await message_crud.get_by_session(db, session_key)

    async def destroy(self, session_key: str) -> bool:
        """Remove the session and its messages. Returns False when nothing was there."""
        async with self._session_maker() as db:
            return await session_crud.delete(db, session_key)
