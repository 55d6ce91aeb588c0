"""Assemble knowledge-context blocks for one turn.

Review note:
- Every reference of every category is fetched concurrently; the join waits for
  all of them to settle before anything is used.
- A failed reference is logged and left out. It never fails its category or the turn.
- Output order: documents, web pages, spreadsheets, then the base prompt, so the
  most recently added kind of context ends up nearest the conversation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import asyncio
import logging

from kbchat.schemas.settings import GlobalSettingsSnapshot
from kbchat.services.sources.base import ContextSource

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class ContextBlock:
    """One system-role chunk of text; `kind` is the source category or "prompt"."""

    kind: str
    text: str


def render_block(source: ContextSource, fetched: Sequence[Tuple[str, str]]) -> str:
    body = "".join(f"\n{source.describe(ref)}\n{text}\n" for ref, text in fetched)
    return f"{source.label}\n{body}"


class ContextAssembler:
    """Fans out the configured fetchers and merges their output into ordered blocks."""

    def __init__(
        self,
        spreadsheets: Optional[ContextSource] = None,
        webpages: Optional[ContextSource] = None,
        documents: Optional[ContextSource] = None,
    ) -> None:
        self.spreadsheets = spreadsheets
        self.webpages = webpages
        self.documents = documents

    def _categories(self, snapshot: GlobalSettingsSnapshot) -> List[Tuple[ContextSource, Sequence[str]]]:
        plan = [
            (self.documents, snapshot.knowledge_base_document_paths),
            (self.webpages, snapshot.knowledge_base_urls),
            (self.spreadsheets, snapshot.knowledge_base_sheet_ids),
        ]
        return [(source, refs) for source, refs in plan if source is not None and refs]

    async def _collect(self, source: ContextSource, references: Sequence[str]) -> Optional[ContextBlock]:
        outcomes = await asyncio.gather(
            *(source.fetch(ref) for ref in references),
            return_exceptions=True,
        )
        fetched: List[Tuple[str, str]] = []
        for ref, outcome in zip(references, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(
                    "context-source-skipped kind=%s ref=%s error=%s",
                    source.kind,
                    ref,
                    outcome,
                )
                continue
            if not outcome:
                continue
            fetched.append((ref, outcome))

        if not fetched:
            return None
        return ContextBlock(kind=source.kind, text=render_block(source, fetched))

    async def knowledge_blocks(self, snapshot: GlobalSettingsSnapshot) -> List[ContextBlock]:
        """Knowledge blocks only; empty or fully failed categories are omitted."""
        categories = self._categories(snapshot)
        if not categories:
            return []
        blocks = await asyncio.gather(
            *(self._collect(source, refs) for source, refs in categories)
        )
        return [block for block in blocks if block is not None]

    async def assemble(self, snapshot: GlobalSettingsSnapshot) -> List[ContextBlock]:
        """Knowledge blocks followed by the base system prompt."""
        blocks = await self.knowledge_blocks(snapshot)
        blocks.append(ContextBlock(kind="prompt", text=snapshot.prompt))
        logger.info(
            "context-assembled kinds=%s",
            ",".join(block.kind for block in blocks),
        )
        return blocks
