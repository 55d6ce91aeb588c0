"""
Test suite for the knowledge sources.

Covers sheet row rendering, HTML text extraction, the Sheets REST client and
web reader over httpx.MockTransport, and the document text cache.
"""

import asyncio
import json
import os
import time
from pathlib import Path
from typing import List

import httpx
import pytest

from kbchat.crud.document import document_crud
from kbchat.crud.settings import global_settings_crud
from kbchat.errors import SourceUnavailable, TransientFailure
from kbchat.models.base import utcnow
from kbchat.services.sources.document_reader import DocumentReader, prune_missing_documents
from kbchat.services.sources.sheets_client import SheetsClient
from kbchat.services.sources.spreadsheet_reader import SpreadsheetReader, format_rows
from kbchat.services.sources.webpage_reader import WebpageReader, extract_page_text


class TestFormatRows:
    """Test suite for sheet row rendering."""

    def test_rows_should_render_header_value_pairs(self) -> None:
        values = [["name", "price"], ["tea", "3"], ["cake", "5"]]

        assert format_rows(values) == "name: tea, price: 3\nname: cake, price: 5"

    def test_missing_cells_should_render_empty(self) -> None:
        values = [["name", "price", "stock"], ["tea"]]

        assert format_rows(values) == "name: tea, price: , stock: "

    def test_header_only_or_empty_should_render_nothing(self) -> None:
        assert format_rows([]) == ""
        assert format_rows([["name"]]) == ""


class TestExtractPageText:
    """Test suite for visible-text extraction."""

    def test_title_and_body_should_be_extracted_without_scripts(self) -> None:
        markup = """
        <html><head><title> Opening  Hours </title><style>p{color:red}</style></head>
        <body><h1>Shop</h1><script>var x = 1;</script><p>Open   9 to 5</p></body></html>
        """

        title, content = extract_page_text(markup)

        assert title == "Opening Hours"
        assert content == "Shop Open 9 to 5"

    def test_markup_without_body_should_fall_back_to_loose_text(self) -> None:
        title, content = extract_page_text("<p>just a fragment</p>")

        assert title == ""
        assert content == "just a fragment"


class TestWebpageReader:
    """Test suite for the web page fetcher."""

    async def test_fetch_should_return_title_and_content(self) -> None:
        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["User-Agent"] == "kbchat-test"
            return httpx.Response(200, text="<title>FAQ</title><body><p>Returns within 30 days</p></body>")

        reader = WebpageReader(user_agent="kbchat-test", transport=httpx.MockTransport(handler))

        # Act
        text = await reader.fetch("https://shop.test/faq")

        # Assert
        assert text == "Title: FAQ\nContent: Returns within 30 days"

    async def test_error_status_should_raise_source_unavailable(self) -> None:
        reader = WebpageReader(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

        with pytest.raises(SourceUnavailable):
            await reader.fetch("https://shop.test/missing")

    async def test_transport_error_should_raise_source_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        reader = WebpageReader(transport=httpx.MockTransport(handler))

        with pytest.raises(SourceUnavailable):
            await reader.fetch("https://down.test/")


class TestSheetsClient:
    """Test suite for the Sheets REST client."""

    async def test_read_range_should_use_token_and_normalize_cells(self) -> None:
        # Arrange
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"values": [["name", "qty"], ["tea", 3]]})

        client = SheetsClient(
            "https://sheets.test/v4",
            access_token="tok",
            api_key="ignored",
            transport=httpx.MockTransport(handler),
        )

        # Act
        values = await client.read_range("abc", "A:Z")

        # Assert
        assert values == [["name", "qty"], ["tea", "3"]]
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert "key" not in seen[0].url.params
        assert seen[0].url.path.startswith("/v4/spreadsheets/abc/values/")

    async def test_api_key_should_be_sent_without_token(self) -> None:
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = SheetsClient("https://sheets.test/v4", api_key="k1", transport=httpx.MockTransport(handler))

        assert await client.read_range("abc", "A:Z") == []
        assert seen[0].url.params["key"] == "k1"

    async def test_append_row_should_post_values(self) -> None:
        # Arrange
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"updates": {"updatedRows": 1}})

        client = SheetsClient("https://sheets.test/v4", access_token="tok", transport=httpx.MockTransport(handler))

        # Act
        await client.append_row("abc", ["Ann", "ann@x.test"], "Sheet1!A:Z")

        # Assert
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path.endswith(":append")
        assert request.url.params["valueInputOption"] == "RAW"
        assert request.url.params["insertDataOption"] == "INSERT_ROWS"
        assert json.loads(request.content) == {"values": [["Ann", "ann@x.test"]]}

    @pytest.mark.parametrize("status", [400, 403, 404])
    async def test_client_errors_should_mean_unavailable(self, status) -> None:
        client = SheetsClient(
            "https://sheets.test/v4",
            transport=httpx.MockTransport(lambda request: httpx.Response(status)),
        )

        with pytest.raises(SourceUnavailable):
            await client.check_access("abc")

    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_server_errors_should_be_transient(self, status) -> None:
        client = SheetsClient(
            "https://sheets.test/v4",
            transport=httpx.MockTransport(lambda request: httpx.Response(status, text="busy")),
        )

        with pytest.raises(TransientFailure):
            await client.read_range("abc", "A:Z")


class TestSpreadsheetReader:
    """Test suite for sheet-backed context."""

    async def test_fetch_should_render_sheet_rows(self, sheets) -> None:
        sheets.tables = {"s1": [["q", "a"], ["hours", "9-5"]]}
        reader = SpreadsheetReader(sheets)

        assert await reader.fetch("s1") == "q: hours, a: 9-5"
        assert reader.describe("s1") == "Data from Sheet s1:"


class CountingReader(DocumentReader):
    def __init__(self, session_maker) -> None:
        super().__init__(session_maker)
        self.extractions = 0

    def _extract(self, path: Path) -> str:
        self.extractions += 1
        return f"text v{self.extractions}"


class TestDocumentReader:
    """Test suite for the document cache."""

    async def test_unchanged_file_should_be_served_from_cache(self, session_maker, tmp_path) -> None:
        # Arrange
        pdf = tmp_path / "menu.pdf"
        pdf.write_bytes(b"%PDF-1.4 placeholder")
        reader = CountingReader(session_maker)

        # Act
        first = await reader.fetch(str(pdf))
        second = await reader.fetch(str(pdf))

        # Assert
        assert first == second == "text v1"
        assert reader.extractions == 1

    async def test_modified_file_should_be_extracted_again(self, session_maker, tmp_path) -> None:
        # Arrange
        pdf = tmp_path / "menu.pdf"
        pdf.write_bytes(b"%PDF-1.4 placeholder")
        reader = CountingReader(session_maker)
        await reader.fetch(str(pdf))
        stat = pdf.stat()
        os.utime(pdf, (stat.st_atime, stat.st_mtime + 60))

        # Act
        text = await reader.fetch(str(pdf))

        # Assert
        assert text == "text v2"
        async with session_maker() as db:
            cached = await document_crud.get(db, str(pdf))
        assert cached.content == "text v2"

    async def test_missing_file_should_raise_source_unavailable(self, session_maker, tmp_path) -> None:
        reader = CountingReader(session_maker)

        with pytest.raises(SourceUnavailable):
            await reader.fetch(str(tmp_path / "gone.pdf"))
        assert reader.extractions == 0

    async def test_unsupported_suffix_should_raise_source_unavailable(self, session_maker, tmp_path) -> None:
        doc = tmp_path / "notes.txt"
        doc.write_text("hello")
        reader = CountingReader(session_maker)

        with pytest.raises(SourceUnavailable):
            await reader.fetch(str(doc))

    async def test_unreadable_pdf_should_raise_source_unavailable(self, session_maker, tmp_path) -> None:
        pdf = tmp_path / "broken.pdf"
        pdf.write_bytes(b"not a pdf at all")
        reader = DocumentReader(session_maker)

        with pytest.raises(SourceUnavailable):
            await reader.fetch(str(pdf))

    async def test_concurrent_first_fetches_should_both_return_text(self, session_maker, tmp_path) -> None:
        # Arrange
        pdf = tmp_path / "menu.pdf"
        pdf.write_bytes(b"%PDF-1.4 placeholder")

        class SlowReader(CountingReader):
            def _extract(self, path: Path) -> str:
                time.sleep(0.05)
                return super()._extract(path)

        reader = SlowReader(session_maker)

        # Act
        results = await asyncio.gather(
            reader.fetch(str(pdf)),
            reader.fetch(str(pdf)),
            return_exceptions=True,
        )

        # Assert
        assert results == ["text v1", "text v1"]
        assert reader.extractions == 1

    async def test_separate_readers_should_share_one_cache_row(self, session_maker, tmp_path) -> None:
        # Arrange
        pdf = tmp_path / "menu.pdf"
        pdf.write_bytes(b"%PDF-1.4 placeholder")
        first, second = CountingReader(session_maker), CountingReader(session_maker)

        # Act
        results = await asyncio.gather(first.fetch(str(pdf)), second.fetch(str(pdf)), return_exceptions=True)

        # Assert
        assert results == ["text v1", "text v1"]
        async with session_maker() as db:
            cached = await document_crud.get(db, str(pdf))
        assert cached.content == "text v1"

    async def test_upsert_should_replace_existing_row(self, session_maker) -> None:
        # Arrange
        async with session_maker() as db:
            await document_crud.upsert(db, "/kb/a.pdf", "old", utcnow())

        # Act
        async with session_maker() as db:
            row = await document_crud.upsert(db, "/kb/a.pdf", "new", utcnow())

        # Assert
        assert row.content == "new"

    def test_describe_should_use_file_name(self, session_maker) -> None:
        reader = DocumentReader(session_maker)

        assert reader.describe("/srv/kb/menu.pdf") == "Content from menu.pdf:"

    async def test_prune_should_drop_missing_references(self, session_maker, update_settings, tmp_path) -> None:
        # Arrange
        kept = tmp_path / "kept.pdf"
        kept.write_bytes(b"%PDF-1.4")
        gone = str(tmp_path / "gone.pdf")
        await update_settings(knowledge_base_document_paths=[str(kept), gone])
        async with session_maker() as db:
            await document_crud.upsert(db, gone, "old text", utcnow())

        # Act
        async with session_maker() as db:
            missing = await prune_missing_documents(db)
            snapshot = await global_settings_crud.snapshot(db)
            cached = await document_crud.get(db, gone)

        # Assert
        assert missing == [gone]
        assert snapshot.knowledge_base_document_paths == (str(kept),)
        assert cached is None


