"""Session hub: connections, per-session workers and teardown.

Review note:
- `start_session` is find-or-create; messages for a session that was never
  started are ignored.
- Teardown runs once per key even when an explicit end races a disconnect:
  close mailbox -> extract -> export -> destroy -> `sessionEnded`.
  Settings, extraction and export failures are logged and never block the destroy.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set
import asyncio
import logging

from kbchat.errors import ConfigurationAbsent, ExportFailure, KbChatError
from kbchat.services.conversation.engine import ConversationEngine, Emitter
from kbchat.services.conversation.mailbox import SessionWorker
from kbchat.services.export.sheet_exporter import SpreadsheetExporter
from kbchat.services.extraction.variable_extractor import VariableExtractor
from kbchat.services.session.settings_provider import SettingsProvider
from kbchat.services.session.store import SessionStore

logger = logging.getLogger("uvicorn.error")


class SessionHub:
    def __init__(
        self,
        store: SessionStore,
        engine: ConversationEngine,
        extractor: VariableExtractor,
        exporter: SpreadsheetExporter,
        settings_provider: SettingsProvider,
        mailbox_size: int = 16,
    ) -> None:
        self.store = store
        self.engine = engine
        self.extractor = extractor
        self.exporter = exporter
        self.settings_provider = settings_provider
        self.mailbox_size = mailbox_size
        self._connections: Dict[str, Emitter] = {}
        self._workers: Dict[str, SessionWorker] = {}
        self._closing: Set[str] = set()

    # ---- connections -------------------------------------------------
    def connect(self, session_key: str, emit: Emitter) -> None:
        self._connections[session_key] = emit
        logger.info("client-connected session=%s", session_key)

    def connected_keys(self) -> List[str]:
        return list(self._connections)

    def worker(self, session_key: str) -> Optional[SessionWorker]:
        return self._workers.get(session_key)

    async def emit_to(self, session_key: str, event: str, data: Dict[str, Any]) -> None:
        emitter = self._connections.get(session_key)
        if emitter is not None:
            await emitter(event, data)

    def _emitter_for(self, session_key: str) -> Emitter:
        async def emit(event: str, data: Dict[str, Any]) -> None:
            await self.emit_to(session_key, event, data)

        return emit

    async def broadcast_typing(self, session_key: str, active: bool) -> None:
        """Relay a client's typing hint to every other observer."""
        event = "typingStart" if active else "typingStop"
        for other, emitter in list(self._connections.items()):
            if other == session_key:
                continue
            await emitter(event, {"sessionId": session_key})

    # ---- session lifecycle -------------------------------------------
    async def start_session(self, session_key: str) -> None:
        if session_key in self._closing:
            logger.info("session-start-ignored reason=closing session=%s", session_key)
            return
        await self.store.ensure(session_key)
        if session_key not in self._workers:
            worker = SessionWorker(
                session_key,
                self.engine,
                self._emitter_for(session_key),
                maxsize=self.mailbox_size,
            )
            worker.start()
            self._workers[session_key] = worker
        logger.info("session-started session=%s", session_key)

    async def submit(self, session_key: str, text: str) -> bool:
        worker = self._workers.get(session_key)
        if worker is None:
            logger.info("message-ignored reason=no-session session=%s", session_key)
            return False
        if not worker.submit(text):
            await self.emit_to(session_key, "turnError", {"reason": "busy"})
            return False
        return True

    async def end_session(self, session_key: str) -> bool:
        """
        Tear the session down. Returns True only for the call that ran the
        extraction/export/destroy cycle.
        """
        if session_key in self._closing:
            logger.info("teardown-skipped reason=in-progress session=%s", session_key)
            return False
        self._closing.add(session_key)
        try:
            worker = self._workers.pop(session_key, None)
            if worker is not None:
                await worker.close()
            self.engine.forget(session_key)

            if not await self.store.exists(session_key):
                logger.info("teardown-skipped reason=unknown-session session=%s", session_key)
                return False

            await self._finalize(session_key)
            await self.store.destroy(session_key)
            logger.info("session-ended session=%s", session_key)
        finally:
            self._closing.discard(session_key)

        await self.emit_to(session_key, "sessionEnded", {"sessionId": session_key})
        return True

    async def disconnect(self, session_key: str) -> bool:
        self._connections.pop(session_key, None)
        logger.info("client-disconnected session=%s", session_key)
        return await self.end_session(session_key)

    async def _finalize(self, session_key: str) -> None:
        try:
            snapshot = await self.settings_provider.load()
        except ConfigurationAbsent as exc:
            logger.warning("teardown-extraction-skipped session=%s error=%s", session_key, exc)
            return
        except Exception:
            logger.exception("teardown-settings-crashed session=%s", session_key)
            return

        try:
            await self.extractor.extract(session_key, snapshot.extraction_headers)
        except KbChatError as exc:
            logger.warning("extraction-failed session=%s error=%s", session_key, exc)
        except Exception:
            logger.exception("extraction-crashed session=%s", session_key)

        try:
            await self.exporter.export(
                session_key,
                snapshot.extraction_headers,
                snapshot.target_spreadsheet_id,
            )
        except ExportFailure as exc:
            logger.warning("export-failed session=%s error=%s", session_key, exc)
        except Exception:
            logger.exception("export-crashed session=%s", session_key)

    async def shutdown(self) -> None:
        workers = list(self._workers.items())
        self._workers.clear()
        for key, worker in workers:
            worker.cancel()
            logger.info("worker-cancelled session=%s", key)
        await asyncio.gather(*(worker.wait_stopped() for _, worker in workers))
