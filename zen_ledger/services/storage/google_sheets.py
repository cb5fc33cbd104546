"""
Google Sheets Storage Implementation

DESIGN DECISION: The ledger state lives in a single worksheet with one
row per slot:

    slot | payload | updated_at

so a user can open the spreadsheet and see (or export) their raw data.
A multi-slot write rewrites the whole table with one batch update, which
the Sheets API applies as a single request.

TRADEOFFS:
- A cell holds at most 50,000 characters, which bounds the size of the
  transaction log this backend can hold.
- No concurrency control; the ledger has exactly one writer.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from zen_ledger.config import get_settings
from zen_ledger.services.storage.interface import (
    ALL_SLOTS,
    ConnectionError,
    LedgerBackend,
    StorageError,
    check_slots,
)


logger = structlog.get_logger(__name__)

STATE_COLUMNS = ["slot", "payload", "updated_at"]


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
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

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

    def get_state_sheet(self) -> gspread.Worksheet:
        """Get or create the ledger state worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.state_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.state_sheet_name,
                rows=len(ALL_SLOTS) + 1,
                cols=len(STATE_COLUMNS),
            )
            sheet.append_row(STATE_COLUMNS)
        return sheet


class GoogleSheetsBackend(LedgerBackend):
    """Google Sheets implementation of the ledger slot store."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_table(self) -> dict[str, list]:
        sheet = self._client.get_state_sheet()
        rows = sheet.get_all_values()[1:]  # Skip header
        return {row[0]: row for row in rows if row and row[0]}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def read_slot(self, slot: str) -> Optional[str]:
        """Read one slot's payload cell."""
        try:
            row = self._read_table().get(slot)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read slot {slot}: {e}")

        if row is None or len(row) < 2 or not row[1]:
            return None
        return row[1]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def write_slots(self, payloads: Mapping[str, str]) -> None:
        """Rewrite the state table with the new payloads in one batch update."""
        check_slots(payloads)
        try:
            table = self._read_table()
            now = datetime.now(timezone.utc).isoformat()
            for slot, payload in payloads.items():
                table[slot] = [slot, payload, now]

            values = [STATE_COLUMNS] + [
                table[slot] for slot in ALL_SLOTS if slot in table
            ]
            sheet = self._client.get_state_sheet()
            sheet.update(range_name="A1", values=values, raw=True)
        except ConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write ledger slots: {e}")

        logger.debug("slots_written", slots=sorted(payloads), backend="google_sheets")
