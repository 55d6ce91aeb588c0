"""End-of-session variable extraction.

Review note:
- No configured fields: nothing is requested and nothing is written.
- The result always holds every configured field; missing ones become "".
- Records accumulate across repeated runs; the exporter reads the newest.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence
import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.variable import variable_crud
from kbchat.services.session.store import SessionStore
from kbchat.utils.openai_helper import CompletionBackend
from kbchat.utils.system_prompt import build_extraction_instruction, build_transcript

logger = logging.getLogger("uvicorn.error")


def coerce_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def complete_fields(headers: Sequence[str], payload: Dict[str, Any]) -> Dict[str, str]:
    """Exactly the configured fields, in configured order."""
    return {header: coerce_value(payload.get(header)) for header in headers}


class VariableExtractor:
    def __init__(
        self,
        store: SessionStore,
        backend: CompletionBackend,
        session_maker: async_sessionmaker[AsyncSession],
    ) -> None:
        self.store = store
        self.backend = backend
        self._session_maker = session_maker

    async def extract(self, session_key: str, headers: Sequence[str]) -> Dict[str, str]:
        """Extract and persist the configured fields for one session."""
        if not headers:
            logger.info("extraction-skipped reason=no-fields session=%s", session_key)
            return {}

        history = await self.store.history(session_key)
        payload = await self.backend.extract(
            build_extraction_instruction(headers),
            build_transcript(history),
        )

        missing = [h for h in headers if h not in payload]
        if missing:
            logger.info("extraction-missing-fields session=%s fields=%s", session_key, ",".join(missing))
        values = complete_fields(headers, payload)

        async with self._session_maker() as db:
            await variable_crud.create_many(db, session_key, values)
        logger.info("extraction-saved session=%s fields=%s", session_key, len(values))
        return values
