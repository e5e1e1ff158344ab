"""
Google Sheets Record Store

DESIGN DECISION: The finance app keeps its records in Google Sheets, so the
asset lifecycle reads receipt paths and the profile photo field from there:
1. Transactions sheet - one financial record per row; only owner_id and
   receipt_image_path matter to us
2. Profiles sheet - one row per owner with the authoritative photo path

TRADEOFFS:
- Every read fetches the whole sheet (fine for personal volumes)
- Columns are located by header name, so the finance app may add or
  reorder columns without breaking us
- No transactions; a profile write is a single-cell update or an append
"""

from datetime import datetime
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.services.storage.interface import (
    ConnectionError,
    RecordStoreInterface,
    StorageError,
)


TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "type",
    "amount",
    "description",
    "date",
    "receipt_image_path",
]

PROFILE_COLUMNS = [
    "owner_id",
    "photo_path",
    "photo_updated_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=1000,
        )

    def get_profiles_sheet(self) -> gspread.Worksheet:
        """Get or create the Profiles worksheet."""
        return self._get_or_create_sheet(
            self._settings.profiles_sheet_name,
            PROFILE_COLUMNS,
            rows=100,
        )


def _column_index(header: list[str], name: str) -> int:
    """0-based index of a header column."""
    try:
        return header.index(name)
    except ValueError:
        raise StorageError(f"Sheet is missing required column: {name}")


def _cell(row: list, index: int) -> str:
    try:
        return row[index] or ""
    except IndexError:
        return ""


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    Read failures are ALWAYS raised as StorageError - the collector relies
    on that to abort instead of treating an outage as "nothing referenced".
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def list_receipt_paths(self, owner_id: str) -> list[str]:
        """Receipt paths of every record owned by owner_id."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to read transactions: {e}") from e

        if not all_rows:
            return []

        header = all_rows[0]
        owner_col = _column_index(header, "owner_id")
        receipt_col = _column_index(header, "receipt_image_path")

        paths = []
        for row in all_rows[1:]:
            if _cell(row, owner_col) != owner_id:
                continue
            receipt = _cell(row, receipt_col).strip()
            if receipt:
                paths.append(receipt)
        return paths

    def _find_profile_row(
        self,
        all_rows: list[list],
        owner_id: str,
    ) -> Optional[int]:
        """1-based sheet row number of the owner's profile, if any."""
        if not all_rows:
            return None
        owner_col = _column_index(all_rows[0], "owner_id")
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if _cell(row, owner_col) == owner_id:
                return idx
        return None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def get_profile_photo_path(self, owner_id: str) -> Optional[str]:
        try:
            sheet = self._client.get_profiles_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to read profiles: {e}") from e

        row_number = self._find_profile_row(all_rows, owner_id)
        if row_number is None:
            return None

        photo_col = _column_index(all_rows[0], "photo_path")
        return _cell(all_rows[row_number - 1], photo_col).strip() or None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def set_profile_photo_path(
        self,
        owner_id: str,
        path: Optional[str],
    ) -> bool:
        """Update the owner's photo cell, appending a profile row if needed."""
        updated_at = datetime.utcnow().isoformat()
        try:
            sheet = self._client.get_profiles_sheet()
            all_rows = sheet.get_all_values()
            row_number = self._find_profile_row(all_rows, owner_id)

            if row_number is None:
                sheet.append_row(
                    [owner_id, path or "", updated_at],
                    value_input_option="RAW",
                )
                return True

            header = all_rows[0]
            photo_col = _column_index(header, "photo_path") + 1
            updated_col = _column_index(header, "photo_updated_at") + 1
            sheet.update_cell(row_number, photo_col, path or "")
            sheet.update_cell(row_number, updated_col, updated_at)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update profile photo: {e}") from e
