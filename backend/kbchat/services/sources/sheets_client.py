"""Google Sheets v4 REST client.

Review note:
- Only the three calls the service needs: read a range, append a row, check access.
- 400/403/404 mean the sheet is not usable (SourceUnavailable); throttling,
  5xx and transport errors are TransientFailure.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from kbchat.errors import SourceUnavailable, TransientFailure

UNAVAILABLE_STATUS = {400, 401, 403, 404}


class SheetsClient:
    """Async client for spreadsheet values."""

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        api_key: str = "",
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.access_token = access_token or ""
        self.api_key = api_key or ""
        self.timeout_sec = float(timeout_sec)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout_sec,
            transport=self._transport,
        )

    def _params(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        params = dict(extra or {})
        if self.api_key and not self.access_token:
            params["key"] = self.api_key
        return params

    async def _request(self, method: str, path: str, sheet_id: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientFailure(f"sheets request timed out sheet={sheet_id}") from exc
        except httpx.HTTPError as exc:
            raise TransientFailure(f"sheets request failed sheet={sheet_id}: {exc}") from exc

        if resp.status_code in UNAVAILABLE_STATUS:
            raise SourceUnavailable(
                f"sheet not accessible sheet={sheet_id} status={resp.status_code}"
            )
        if resp.status_code >= 400:
            raise TransientFailure(
                f"sheets service error sheet={sheet_id} status={resp.status_code} body={resp.text[:300]}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise TransientFailure(f"sheets returned invalid JSON sheet={sheet_id}") from exc

    async def read_range(self, sheet_id: str, cell_range: str) -> List[List[str]]:
        """Rows of cells; trailing empty cells are omitted by the API."""
        body = await self._request(
            "GET",
            f"/spreadsheets/{quote(sheet_id, safe='')}/values/{quote(cell_range, safe='')}",
            sheet_id,
            params=self._params(),
        )
        values = body.get("values") or []
        return [[("" if cell is None else str(cell)) for cell in row] for row in values]

    async def append_row(self, sheet_id: str, row: List[str], cell_range: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/spreadsheets/{quote(sheet_id, safe='')}/values/{quote(cell_range, safe='')}:append",
            sheet_id,
            params=self._params({"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"}),
            json={"values": [list(row)]},
        )

    async def check_access(self, sheet_id: str) -> None:
        await self._request(
            "GET",
            f"/spreadsheets/{quote(sheet_id, safe='')}",
            sheet_id,
            params=self._params({"fields": "spreadsheetId"}),
        )
