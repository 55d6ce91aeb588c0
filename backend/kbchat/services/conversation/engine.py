"""Per-turn conversation state machine.

Review note:
- Idle -> AwaitingUserTurn -> Assembling -> AwaitingModel -> Idle.
- The model always receives the full reconstructed message list.
- A failed completion leaves no assistant message behind; an UnknownSession
  during the turn means the session was torn down and the turn is abandoned.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from kbchat.errors import CompletionFailure, ConfigurationAbsent, UnknownSession
from kbchat.services.context.assembler import ContextAssembler
from kbchat.services.session.settings_provider import SettingsProvider
from kbchat.services.session.store import SessionStore
from kbchat.utils.openai_helper import CompletionBackend
from kbchat.utils.system_prompt import build_chat_messages

logger = logging.getLogger("uvicorn.error")

Emitter = Callable[[str, Dict[str, Any]], Awaitable[None]]
ASSISTANT_TYPING_ID = "assistant"

# client-facing turnError reasons; details stay in the log
COMPLETION_FAILED = "completion failed"
SETTINGS_UNAVAILABLE = "settings unavailable"


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_USER_TURN = "awaiting_user_turn"
    ASSEMBLING = "assembling"
    AWAITING_MODEL = "awaiting_model"


def truncate_reply(text: str, max_chars: int, marker: str = "...") -> str:
    """Cut to exactly `max_chars` characters and append `marker`; short text is unchanged."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + marker


class ConversationEngine:
    """Runs one turn at a time for a session; callers serialize turns per session."""

    def __init__(
        self,
        store: SessionStore,
        settings_provider: SettingsProvider,
        assembler: ContextAssembler,
        backend: CompletionBackend,
        max_chars: int = 500,
        truncation_marker: str = "...",
    ) -> None:
        self.store = store
        self.settings_provider = settings_provider
        self.assembler = assembler
        self.backend = backend
        self.max_chars = max_chars
        self.truncation_marker = truncation_marker
        self._states: Dict[str, TurnState] = {}

    def state_of(self, session_key: str) -> TurnState:
        return self._states.get(session_key, TurnState.IDLE)

    def forget(self, session_key: str) -> None:
        self._states.pop(session_key, None)

    async def run_turn(self, session_key: str, text: str, emit: Emitter) -> Optional[str]:
        """
        Persist the user message, build the prompt, call the model and persist
        the (possibly truncated) reply.

        Returns the assistant text, or None when the turn was abandoned or failed.
        """
        self._states[session_key] = TurnState.AWAITING_USER_TURN
        try:
            try:
                await self.store.append(session_key, "user", text)
            except UnknownSession:
                logger.info("turn-ignored reason=unknown-session session=%s", session_key)
                return None

            self._states[session_key] = TurnState.ASSEMBLING
            snapshot = await self.settings_provider.load()
            blocks = await self.assembler.assemble(snapshot)
            history = await self.store.history(session_key)
            messages = build_chat_messages(blocks, history)

            self._states[session_key] = TurnState.AWAITING_MODEL
            await emit("typingStart", {"sessionId": ASSISTANT_TYPING_ID})
            try:
                raw_reply = await self.backend.complete(messages)
            finally:
                await emit("typingStop", {"sessionId": ASSISTANT_TYPING_ID})

            reply = truncate_reply(raw_reply, self.max_chars, self.truncation_marker)
            await self.store.append(session_key, "assistant", reply)
        except UnknownSession:
            logger.info("turn-abandoned reason=session-destroyed session=%s", session_key)
            return None
        except ConfigurationAbsent as exc:
            logger.warning("turn-failed session=%s error=%s", session_key, exc)
            await emit("turnError", {"reason": SETTINGS_UNAVAILABLE})
            return None
        except CompletionFailure as exc:
            logger.warning("turn-failed session=%s error=%s", session_key, exc)
            await emit("turnError", {"reason": COMPLETION_FAILED})
            return None
        finally:
            self._states[session_key] = TurnState.IDLE

        logger.info(
            "turn-completed session=%s chars=%s truncated=%s",
            session_key,
            len(reply),
            len(raw_reply) > self.max_chars,
        )
        await emit("assistantMessage", {"message": reply})
        return reply
