"""
Shared test fixtures for the chat core.

Provides: a real SQLite database per test, the session store, and in-process
fakes for the completion backend and the Sheets API.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.settings import global_settings_crud
from kbchat.database import build_engine, build_session_maker, init_db
from kbchat.errors import SourceUnavailable
from kbchat.services.session.settings_provider import SettingsProvider
from kbchat.services.session.store import SessionStore
from kbchat.services.context.assembler import ContextAssembler
from kbchat.services.conversation.engine import ConversationEngine
from kbchat.services.conversation.hub import SessionHub
from kbchat.services.export.sheet_exporter import SpreadsheetExporter
from kbchat.services.extraction.variable_extractor import VariableExtractor
from kbchat.services.sources.spreadsheet_reader import SpreadsheetReader


class FakeCompletionBackend:
    """Records every call; replies come from a queue, then `default_reply`."""

    def __init__(self) -> None:
        self.calls: List[List[Dict[str, str]]] = []
        self.replies: List[str] = []
        self.default_reply = "ok"
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.started = asyncio.Event()
        self.extract_calls: List[Dict[str, str]] = []
        self.extract_payload: Dict[str, Any] = {}
        self.extract_fail_with: Optional[Exception] = None

    async def complete(self, messages):
        self.calls.append([dict(m) for m in messages])
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply

    async def extract(self, instruction, transcript):
        self.extract_calls.append({"instruction": instruction, "transcript": transcript})
        if self.extract_fail_with is not None:
            raise self.extract_fail_with
        return dict(self.extract_payload)


class FakeSheetsClient:
    """In-memory stand-in for the Sheets REST client."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[List[str]]] = {}
        self.unavailable: Set[str] = set()
        self.appended: List[Dict[str, Any]] = []
        self.append_error: Optional[Exception] = None

    async def read_range(self, sheet_id, cell_range):
        if sheet_id in self.unavailable or sheet_id not in self.tables:
            raise SourceUnavailable(f"sheet not accessible sheet={sheet_id}")
        return [list(row) for row in self.tables[sheet_id]]

    async def append_row(self, sheet_id, row, cell_range):
        if self.append_error is not None:
            raise self.append_error
        self.appended.append({"sheet_id": sheet_id, "row": list(row), "range": cell_range})
        return {"updates": {"updatedRows": 1}}

    async def check_access(self, sheet_id):
        if sheet_id in self.unavailable or sheet_id not in self.tables:
            raise SourceUnavailable(f"sheet not accessible sheet={sheet_id}")


@pytest.fixture
async def session_maker(tmp_path) -> async_sessionmaker[AsyncSession]:
    """File-backed SQLite so concurrent tasks each get their own connection."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    maker = build_session_maker(engine)
    await init_db(engine, maker)
    yield maker
    await engine.dispose()


@pytest.fixture
def store(session_maker) -> SessionStore:
    return SessionStore(session_maker)


@pytest.fixture
def settings_provider(session_maker) -> SettingsProvider:
    return SettingsProvider(session_maker)


@pytest.fixture
def backend() -> FakeCompletionBackend:
    return FakeCompletionBackend()


@pytest.fixture
def sheets() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def update_settings(session_maker):
    """Apply admin-style updates to the settings row."""

    async def _update(**fields):
        async with session_maker() as db:
            return await global_settings_crud.update(db, **fields)

    return _update


class EventRecorder:
    """Emitter that keeps every outbound event."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    async def __call__(self, event, data):
        self.events.append((event, dict(data)))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def of(self, name: str) -> List[Dict[str, Any]]:
        return [data for event, data in self.events if event == name]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
async def hub(session_maker, store, settings_provider, backend, sheets):
    """A session hub wired to the fakes; workers are cancelled afterwards."""
    assembler = ContextAssembler(spreadsheets=SpreadsheetReader(sheets))
    engine = ConversationEngine(store, settings_provider, assembler, backend, max_chars=500)
    session_hub = SessionHub(
        store,
        engine,
        VariableExtractor(store, backend, session_maker),
        SpreadsheetExporter(sheets, session_maker),
        settings_provider,
        mailbox_size=4,
    )
    yield session_hub
    await session_hub.shutdown()
