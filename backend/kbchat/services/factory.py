"""Wire the orchestration core from process settings."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.config import Settings
from kbchat.services.context.assembler import ContextAssembler
from kbchat.services.conversation.engine import ConversationEngine
from kbchat.services.conversation.hub import SessionHub
from kbchat.services.export.sheet_exporter import SpreadsheetExporter
from kbchat.services.extraction.variable_extractor import VariableExtractor
from kbchat.services.session.settings_provider import SettingsProvider
from kbchat.services.session.store import SessionStore
from kbchat.services.sources.document_reader import DocumentReader
from kbchat.services.sources.sheets_client import SheetsClient
from kbchat.services.sources.spreadsheet_reader import SpreadsheetReader
from kbchat.services.sources.webpage_reader import WebpageReader
from kbchat.utils.openai_helper import CompletionBackend


@dataclass
class Services:
    hub: SessionHub
    sheets: SheetsClient
    webpages: WebpageReader
    documents: DocumentReader


def build_services(
    config: Settings,
    session_maker: async_sessionmaker[AsyncSession],
    backend: CompletionBackend = None,
    sheets: SheetsClient = None,
    webpages: WebpageReader = None,
) -> Services:
    backend = backend or CompletionBackend(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        chat_model=config.CHAT_MODEL,
        extraction_model=config.EXTRACTION_MODEL,
        timeout_sec=config.COMPLETION_TIMEOUT_SEC,
    )
    sheets = sheets or SheetsClient(
        base_url=config.SHEETS_API_BASE_URL,
        access_token=config.SHEETS_ACCESS_TOKEN,
        api_key=config.SHEETS_API_KEY,
        timeout_sec=config.SHEETS_TIMEOUT_SEC,
    )
    webpages = webpages or WebpageReader(
        timeout_sec=config.WEB_FETCH_TIMEOUT_SEC,
        user_agent=config.WEB_FETCH_USER_AGENT,
    )
    documents = DocumentReader(session_maker, suffixes=config.document_suffixes)

    store = SessionStore(session_maker)
    settings_provider = SettingsProvider(session_maker)
    assembler = ContextAssembler(
        spreadsheets=SpreadsheetReader(sheets, config.KNOWLEDGE_SHEET_RANGE),
        webpages=webpages,
        documents=documents,
    )
    engine = ConversationEngine(
        store,
        settings_provider,
        assembler,
        backend,
        max_chars=config.MAX_ASSISTANT_CHARS,
        truncation_marker=config.TRUNCATION_MARKER,
    )
    hub = SessionHub(
        store,
        engine,
        VariableExtractor(store, backend, session_maker),
        SpreadsheetExporter(sheets, session_maker, config.EXPORT_SHEET_RANGE),
        settings_provider,
        mailbox_size=config.SESSION_MAILBOX_SIZE,
    )
    return Services(hub=hub, sheets=sheets, webpages=webpages, documents=documents)
