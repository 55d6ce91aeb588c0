"""Write a session's extracted variables as one row of the target sheet."""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kbchat.crud.variable import variable_crud
from kbchat.errors import ExportFailure, SourceUnavailable, TransientFailure
from kbchat.services.sources.sheets_client import SheetsClient

logger = logging.getLogger("uvicorn.error")


def build_row(headers: Sequence[str], latest: Mapping[str, str]) -> List[str]:
    """Columns follow `headers` exactly; unrecorded fields are empty strings."""
    return [latest.get(header, "") for header in headers]


class SpreadsheetExporter:
    def __init__(
        self,
        client: SheetsClient,
        session_maker: async_sessionmaker[AsyncSession],
        cell_range: str = "Sheet1!A:Z",
    ) -> None:
        self.client = client
        self._session_maker = session_maker
        self.cell_range = cell_range

    async def export(
        self,
        session_key: str,
        headers: Sequence[str],
        target_spreadsheet_id: Optional[str],
    ) -> Optional[List[str]]:
        """
        Append the row and return it; None when there was nothing to do.

        Raises ExportFailure if the sheet write fails.
        """
        if not target_spreadsheet_id:
            logger.info("export-skipped reason=no-target session=%s", session_key)
            return None
        if not headers:
            logger.info("export-skipped reason=no-fields session=%s", session_key)
            return None

        async with self._session_maker() as db:
            latest = await variable_crud.latest_values(db, session_key)
        if not latest:
            logger.info("export-skipped reason=no-variables session=%s", session_key)
            return None

        row = build_row(headers, latest)
        try:
            await self.client.append_row(target_spreadsheet_id, row, self.cell_range)
        except (SourceUnavailable, TransientFailure) as exc:
            raise ExportFailure(f"export failed sheet={target_spreadsheet_id}: {exc}") from exc

        logger.info("export-written session=%s sheet=%s columns=%s", session_key, target_spreadsheet_id, len(row))
        return row
