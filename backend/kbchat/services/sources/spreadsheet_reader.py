"""Render knowledge-base sheets as `header: value` lines."""

from __future__ import annotations

from typing import List, Sequence

from kbchat.services.sources.base import ContextSource
from kbchat.services.sources.sheets_client import SheetsClient


def format_rows(values: Sequence[Sequence[str]]) -> str:
    """
    First row is the header row. Each following row becomes
    `header: value, header: value`; missing cells render as empty strings.
    """
    if not values:
        return ""
    headers = list(values[0])
    lines: List[str] = []
    for row in values[1:]:
        cells = [
            f"{header}: {row[index] if index < len(row) and row[index] is not None else ''}"
            for index, header in enumerate(headers)
        ]
        lines.append(", ".join(cells))
    return "\n".join(lines)


class SpreadsheetReader(ContextSource):
    kind = "spreadsheet"
    label = "Knowledge Base Information:"

    def __init__(self, client: SheetsClient, cell_range: str = "A:Z") -> None:
        self.client = client
        self.cell_range = cell_range

    async def fetch(self, reference: str) -> str:
        values = await self.client.read_range(reference, self.cell_range)
        return format_rows(values)

    def describe(self, reference: str) -> str:
        return f"Data from Sheet {reference}:"
