"""One bounded mailbox and one task per session.

Review note:
- The task runs each queued message to completion before taking the next,
  so turns of one session never interleave. Sessions do not share a task.
- `close` drops messages that have not started, waits for the in-flight turn,
  then stops the task.
"""

from __future__ import annotations

from typing import Optional
import asyncio
import logging

from kbchat.services.conversation.engine import ConversationEngine, Emitter

logger = logging.getLogger("uvicorn.error")

_STOP = object()


class SessionWorker:
    def __init__(
        self,
        session_key: str,
        engine: ConversationEngine,
        emit: Emitter,
        maxsize: int = 16,
    ) -> None:
        self.session_key = session_key
        self.engine = engine
        self.emit = emit
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, int(maxsize)))
        self._closing = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closing(self) -> bool:
        return self._closing

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"session-{self.session_key}")

    def submit(self, text: str) -> bool:
        """Queue a user message; False if the mailbox is closed or full."""
        if self._closing:
            return False
        try:
            self.queue.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("mailbox-full session=%s size=%s", self.session_key, self.queue.maxsize)
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued message has been handled."""
        await self.queue.join()

    async def _run(self) -> None:
        while True:
            item = await self.queue.get()
            try:
                if item is _STOP:
                    return
                if self._closing:
                    continue
                await self.engine.run_turn(self.session_key, item, self.emit)
            except Exception:
                logger.exception("turn-crashed session=%s", self.session_key)
                await self.emit("turnError", {"reason": "internal error"})
            finally:
                self.queue.task_done()

    def _drop_pending(self) -> int:
        dropped = 0
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            self.queue.task_done()
            dropped += 1

    async def close(self) -> None:
        self._closing = True
        dropped = self._drop_pending()
        if dropped:
            logger.info("mailbox-dropped session=%s count=%s", self.session_key, dropped)
        if self._task is None:
            return
        self.queue.put_nowait(_STOP)
        await self._task

    def cancel(self) -> None:
        self._closing = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_stopped(self) -> None:
        """Wait for the task to finish after `close` or `cancel`."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
