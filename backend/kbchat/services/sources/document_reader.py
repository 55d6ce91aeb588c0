"""Document (PDF) text with an mtime-keyed cache.

Review note:
- Cache row is reused while its `last_modified` is not older than the file's mtime.
- Extraction is CPU-bound; it runs via asyncio.to_thread so the loop stays free.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Tuple
import asyncio
import logging

from PyPDF2 import PdfReader
from PyPDF2.errors import PyPdfError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.document import document_crud
from kbchat.crud.settings import global_settings_crud
from kbchat.errors import SourceUnavailable
from kbchat.services.sources.base import ContextSource

logger = logging.getLogger("uvicorn.error")


def extract_pdf_text(path: Path) -> str:
    reader = PdfReader(str(path))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages).strip()


def file_mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).replace(tzinfo=None)


def split_existing(paths: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Partition paths into (present, missing), preserving order."""
    present: List[str] = []
    missing: List[str] = []
    for raw in paths:
        (present if Path(raw).is_file() else missing).append(raw)
    return present, missing


class DocumentReader(ContextSource):
    kind = "document"
    label = "PDF Knowledge Base:"

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        suffixes: Iterable[str] = (".pdf",),
    ) -> None:
        self._session_maker = session_maker
        self.suffixes = tuple(s.lower() for s in suffixes)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _extract(self, path: Path) -> str:
        return extract_pdf_text(path)

    def check_path(self, reference: str) -> Path:
        path = Path(reference)
        if path.suffix.lower() not in self.suffixes:
            raise SourceUnavailable(f"unsupported document type path={reference}")
        if not path.is_file():
            raise SourceUnavailable(f"document not found path={reference}")
        return path

    async def fetch(self, reference: str) -> str:
        path = self.check_path(reference)
        mtime = file_mtime(path)

        # one extraction per path at a time
        lock = self._locks.setdefault(reference, asyncio.Lock())
        async with lock, self._session_maker() as db:
            cached = await document_crud.get(db, reference)
            if cached and cached.last_modified >= mtime:
                return cached.content

            try:
                text = await asyncio.to_thread(self._extract, path)
            except (OSError, PyPdfError, ValueError) as exc:
                raise SourceUnavailable(f"document unreadable path={reference}: {exc}") from exc

            await document_crud.upsert(db, reference, text, mtime)
            logger.info("document-extracted path=%s chars=%s", reference, len(text))
            return text

    def describe(self, reference: str) -> str:
        return f"Content from {Path(reference).name}:"


async def prune_missing_documents(db: AsyncSession) -> List[str]:
    """Drop document references (and their cache rows) whose files are gone."""
    snapshot = await global_settings_crud.snapshot(db)
    present, missing = split_existing(snapshot.knowledge_base_document_paths)
    if missing:
        await global_settings_crud.update(db, knowledge_base_document_paths=present)
        await document_crud.delete_many(db, missing)
        logger.info("documents-pruned count=%s paths=%s", len(missing), ",".join(missing))
    return missing
