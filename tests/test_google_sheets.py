"""Tests for the Google Sheets record store (gspread is mocked)."""

import asyncio
from unittest.mock import MagicMock

import pytest
from tenacity import wait_none

from src.services.storage import StorageError
from src.services.storage.google_sheets import (
    PROFILE_COLUMNS,
    TRANSACTION_COLUMNS,
    GoogleSheetsRecordStore,
)

OWNER = "user-1"


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    for name in ("list_receipt_paths", "get_profile_photo_path", "set_profile_photo_path"):
        method = getattr(GoogleSheetsRecordStore, name)
        monkeypatch.setattr(method.retry, "wait", wait_none())


@pytest.fixture
def transactions_sheet():
    sheet = MagicMock()
    sheet.get_all_values.return_value = [
        TRANSACTION_COLUMNS,
        ["t1", OWNER, "expense", "12.50", "Lunch", "2024-01-01", "/data/assets/receipt_1.jpg"],
        ["t2", OWNER, "income", "1000", "Salary", "2024-01-02", ""],
        ["t3", "user-2", "expense", "3", "Coffee", "2024-01-03", "/data/assets/receipt_3.jpg"],
        ["t4", OWNER, "expense", "8"],  # short row
    ]
    return sheet


@pytest.fixture
def profiles_sheet():
    sheet = MagicMock()
    sheet.get_all_values.return_value = [
        PROFILE_COLUMNS,
        ["user-2", "/data/assets/profile_9.jpg", "2024-01-01T00:00:00"],
        [OWNER, "/data/assets/profile_200.jpg", "2024-01-02T00:00:00"],
    ]
    return sheet


@pytest.fixture
def store(transactions_sheet, profiles_sheet):
    client = MagicMock()
    client.get_transactions_sheet.return_value = transactions_sheet
    client.get_profiles_sheet.return_value = profiles_sheet
    return GoogleSheetsRecordStore(client)


class TestReceiptPaths:
    """Tests for reading receipt references."""

    def test_lists_owner_receipts_only(self, store):
        paths = asyncio.run(store.list_receipt_paths(OWNER))
        assert paths == ["/data/assets/receipt_1.jpg"]

    def test_columns_located_by_header(self, store, transactions_sheet):
        transactions_sheet.get_all_values.return_value = [
            ["receipt_image_path", "owner_id"],
            ["/x/receipt_5.jpg", OWNER],
        ]
        assert asyncio.run(store.list_receipt_paths(OWNER)) == ["/x/receipt_5.jpg"]

    def test_empty_sheet(self, store, transactions_sheet):
        transactions_sheet.get_all_values.return_value = []
        assert asyncio.run(store.list_receipt_paths(OWNER)) == []

    def test_missing_column_is_storage_error(self, store, transactions_sheet):
        transactions_sheet.get_all_values.return_value = [["id", "owner_id"]]
        with pytest.raises(StorageError):
            asyncio.run(store.list_receipt_paths(OWNER))

    def test_api_failure_is_storage_error(self, store, transactions_sheet):
        transactions_sheet.get_all_values.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(StorageError):
            asyncio.run(store.list_receipt_paths(OWNER))
        assert transactions_sheet.get_all_values.call_count == 3


class TestProfilePhoto:
    """Tests for the authoritative photo field."""

    def test_get_profile_photo_path(self, store):
        assert asyncio.run(store.get_profile_photo_path(OWNER)) == "/data/assets/profile_200.jpg"

    def test_unknown_owner(self, store):
        assert asyncio.run(store.get_profile_photo_path("nobody")) is None

    def test_update_existing_row(self, store, profiles_sheet):
        assert asyncio.run(store.set_profile_photo_path(OWNER, "/data/assets/profile_300.jpg"))

        profiles_sheet.update_cell.assert_any_call(3, 2, "/data/assets/profile_300.jpg")
        assert profiles_sheet.update_cell.call_count == 2
        profiles_sheet.append_row.assert_not_called()

    def test_clear_photo(self, store, profiles_sheet):
        asyncio.run(store.set_profile_photo_path(OWNER, None))
        profiles_sheet.update_cell.assert_any_call(3, 2, "")

    def test_append_row_for_new_owner(self, store, profiles_sheet):
        asyncio.run(store.set_profile_photo_path("user-3", "/data/assets/profile_1.jpg"))

        row = profiles_sheet.append_row.call_args.args[0]
        assert row[:2] == ["user-3", "/data/assets/profile_1.jpg"]
        profiles_sheet.update_cell.assert_not_called()

    def test_write_failure_is_storage_error(self, store, profiles_sheet):
        profiles_sheet.update_cell.side_effect = RuntimeError("network down")
        with pytest.raises(StorageError):
            asyncio.run(store.set_profile_photo_path(OWNER, "/data/assets/profile_300.jpg"))
