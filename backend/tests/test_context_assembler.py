"""
Test suite for ContextAssembler.

Covers block ordering, per-reference failure omission, empty categories and
the all-settle join over concurrent fetches.
"""

import asyncio
from typing import Dict, List, Set

from kbchat.errors import SourceUnavailable
from kbchat.schemas.settings import GlobalSettingsSnapshot
from kbchat.services.context.assembler import ContextAssembler
from kbchat.services.sources.base import ContextSource
from kbchat.services.sources.spreadsheet_reader import SpreadsheetReader


class StubSource(ContextSource):
    def __init__(self, kind: str, label: str, texts: Dict[str, str], failing: Set[str] = frozenset()) -> None:
        self.kind = kind
        self.label = label
        self.texts = texts
        self.failing = set(failing)
        self.fetched: List[str] = []

    async def fetch(self, reference: str) -> str:
        self.fetched.append(reference)
        if reference in self.failing:
            raise SourceUnavailable(f"unreachable {reference}")
        return self.texts[reference]


def snapshot(**kwargs) -> GlobalSettingsSnapshot:
    return GlobalSettingsSnapshot(prompt=kwargs.pop("prompt", "Be brief."), **kwargs)


class TestContextAssemblerOrdering:
    """Test suite for block order and labels."""

    async def test_assemble_should_order_documents_webpages_sheets_then_prompt(self) -> None:
        # Arrange
        assembler = ContextAssembler(
            spreadsheets=StubSource("spreadsheet", "Knowledge Base Information:", {"sheet": "a: 1"}),
            webpages=StubSource("webpage", "Webpage Knowledge Base:", {"https://x.test": "Title: X\nContent: y"}),
            documents=StubSource("document", "PDF Knowledge Base:", {"/kb/a.pdf": "doc text"}),
        )
        settings = snapshot(
            knowledge_base_sheet_ids=("sheet",),
            knowledge_base_urls=("https://x.test",),
            knowledge_base_document_paths=("/kb/a.pdf",),
        )

        # Act
        blocks = await assembler.assemble(settings)

        # Assert
        assert [b.kind for b in blocks] == ["document", "webpage", "spreadsheet", "prompt"]
        assert blocks[-1].text == "Be brief."
        assert blocks[2].text.startswith("Knowledge Base Information:\n")

    async def test_assemble_should_label_each_source(self) -> None:
        # Arrange
        source = StubSource("webpage", "Webpage Knowledge Base:", {"u1": "one", "u2": "two"})
        assembler = ContextAssembler(webpages=source)

        # Act
        blocks = await assembler.knowledge_blocks(snapshot(knowledge_base_urls=("u1", "u2")))

        # Assert
        assert blocks[0].text == (
            "Webpage Knowledge Base:\n"
            "\nContent from u1:\none\n"
            "\nContent from u2:\ntwo\n"
        )

    async def test_empty_categories_should_contribute_nothing(self) -> None:
        # Arrange
        source = StubSource("webpage", "Webpage Knowledge Base:", {})
        assembler = ContextAssembler(webpages=source)

        # Act
        blocks = await assembler.assemble(snapshot())

        # Assert
        assert [b.kind for b in blocks] == ["prompt"]
        assert source.fetched == []


class TestContextAssemblerFailures:
    """Test suite for partial-failure tolerance."""

    async def test_failed_sheet_should_be_omitted_and_others_kept(self, sheets) -> None:
        # Arrange
        sheets.tables = {
            "s1": [["name", "price"], ["tea", "3"]],
            "s3": [["name", "price"], ["cake", "5"]],
        }
        sheets.unavailable = {"s2"}
        assembler = ContextAssembler(spreadsheets=SpreadsheetReader(sheets))

        # Act
        blocks = await assembler.knowledge_blocks(snapshot(knowledge_base_sheet_ids=("s1", "s2", "s3")))

        # Assert
        text = blocks[0].text
        assert "Data from Sheet s1:\nname: tea, price: 3" in text
        assert "Data from Sheet s3:\nname: cake, price: 5" in text
        assert "s2" not in text

    async def test_category_with_only_failures_should_be_omitted(self) -> None:
        # Arrange
        assembler = ContextAssembler(
            webpages=StubSource("webpage", "Webpage Knowledge Base:", {}, failing={"u1"}),
            documents=StubSource("document", "PDF Knowledge Base:", {"/a.pdf": "text"}),
        )

        # Act
        blocks = await assembler.assemble(
            snapshot(knowledge_base_urls=("u1",), knowledge_base_document_paths=("/a.pdf",))
        )

        # Assert
        assert [b.kind for b in blocks] == ["document", "prompt"]

    async def test_unexpected_errors_should_also_be_contained(self) -> None:
        # Arrange
        class Broken(StubSource):
            async def fetch(self, reference: str) -> str:
                raise KeyError(reference)

        assembler = ContextAssembler(webpages=Broken("webpage", "Webpage Knowledge Base:", {}))

        # Act
        blocks = await assembler.assemble(snapshot(knowledge_base_urls=("u1",)))

        # Assert
        assert [b.kind for b in blocks] == ["prompt"]


class TestContextAssemblerConcurrency:
    """Test suite for the concurrent fan-out and join."""

    async def test_fetches_should_run_concurrently_and_join_before_returning(self) -> None:
        # Arrange
        release = asyncio.Event()
        in_flight: List[str] = []

        class Slow(StubSource):
            async def fetch(self, reference: str) -> str:
                in_flight.append(reference)
                await release.wait()
                return f"text {reference}"

        assembler = ContextAssembler(webpages=Slow("webpage", "Webpage Knowledge Base:", {}))
        task = asyncio.create_task(assembler.knowledge_blocks(snapshot(knowledge_base_urls=("a", "b", "c"))))

        # Act
        for _ in range(20):
            await asyncio.sleep(0)
            if len(in_flight) == 3:
                break
        started_before_release = sorted(in_flight)
        done_before_release = task.done()
        release.set()
        blocks = await task

        # Assert
        assert started_before_release == ["a", "b", "c"]
        assert done_before_release is False
        assert "text a" in blocks[0].text and "text c" in blocks[0].text
