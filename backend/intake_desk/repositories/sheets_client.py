"""
Google Sheets v4 values API client.

A thin httpx wrapper exposing the four calls the spreadsheet backend
needs: read a tab, append rows, overwrite one row, clear one row.
Rows are addressed by 1-based sheet row number (row 1 is the header).
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from ..core.config import Settings
from ..core.errors import BackendError, SheetNotFoundError


logger = logging.getLogger(__name__)

LAST_COLUMN = "AZ"
MISSING_RANGE_MARKER = "Unable to parse range"


class SheetsClient:
    """
    Per-request client for one spreadsheet.

    Example:
        client = SheetsClient.from_settings(settings)
        try:
            rows = client.read_rows("Clients")
        finally:
            client.close()
    """

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        base_url: str = "https://sheets.googleapis.com/v4/spreadsheets",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not spreadsheet_id:
            raise BackendError("Google Sheets spreadsheet id is not configured")
        self.spreadsheet_id = spreadsheet_id
        self._http = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/{spreadsheet_id}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "SheetsClient":
        return cls(
            spreadsheet_id=settings.google_sheets_spreadsheet_id,
            access_token=settings.google_sheets_access_token,
            base_url=settings.google_sheets_api_url,
            timeout=settings.sheets_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _values_path(a1_range: str, verb: str = "") -> str:
        path = f"/values/{quote(a1_range, safe='')}"
        return f"{path}:{verb}" if verb else path

    def _request(self, method: str, path: str, sheet: str, **kwargs: Any) -> dict:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Sheets request failed for '{sheet}': {e}")
            raise BackendError("Spreadsheet backend unavailable") from e

        if response.status_code == 400 and MISSING_RANGE_MARKER in response.text:
            raise SheetNotFoundError(sheet)
        if response.is_error:
            logger.error(
                f"Sheets API returned {response.status_code} for '{sheet}': {response.text[:200]}"
            )
            raise BackendError("Spreadsheet backend request failed")

        try:
            return response.json() if response.content else {}
        except ValueError as e:
            raise BackendError("Spreadsheet backend returned malformed data") from e

    # =========================================================================
    # Values API
    # =========================================================================

    def read_rows(self, sheet: str) -> List[List[str]]:
        """
        All rows of a tab, header included.

        Raises:
            SheetNotFoundError: if the tab does not exist
        """
        data = self._request("GET", self._values_path(f"{sheet}!A:{LAST_COLUMN}"), sheet)
        return [[str(cell) for cell in row] for row in data.get("values", [])]

    def append_rows(self, sheet: str, rows: List[List[str]]) -> None:
        self._request(
            "POST",
            self._values_path(f"{sheet}!A:{LAST_COLUMN}", "append"),
            sheet,
            params={"valueInputOption": "RAW", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )

    def update_row(self, sheet: str, row_number: int, values: List[str]) -> None:
        a1_range = f"{sheet}!A{row_number}:{LAST_COLUMN}{row_number}"
        self._request(
            "PUT",
            self._values_path(a1_range),
            sheet,
            params={"valueInputOption": "RAW"},
            json={"range": a1_range, "majorDimension": "ROWS", "values": [values]},
        )

    def clear_row(self, sheet: str, row_number: int) -> None:
        a1_range = f"{sheet}!A{row_number}:{LAST_COLUMN}{row_number}"
        self._request("POST", self._values_path(a1_range, "clear"), sheet, json={})
