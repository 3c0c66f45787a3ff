import pytest
import os
import sys
import threading
from datetime import datetime
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import gspread

from tools.sync_status import SyncStatusTracker, format_locale_timestamp, format_status
from tools.tabular import GSheetSource, GSheetWorkbook, MemorySheet, MemoryWorkbook, TabularSource

WHEN = datetime(2024, 3, 5, 10, 0, 0)

class TestStatusFormatting:
    """Test the status cell text."""

    def test_morning(self):
        assert format_status("Synced", WHEN) == "Synced - 3/5/2024, 10:00:00 AM"

    def test_afternoon_and_midnight(self):
        assert format_locale_timestamp(datetime(2024, 12, 25, 15, 4, 9)) == "12/25/2024, 3:04:09 PM"
        assert format_locale_timestamp(datetime(2024, 1, 1, 0, 0, 0)) == "1/1/2024, 12:00:00 AM"
        assert format_locale_timestamp(datetime(2024, 1, 1, 12, 0, 0)) == "1/1/2024, 12:00:00 PM"

class TestSyncStatusTracker:
    """Test status column discovery, provisioning and row marking."""

    def setup_method(self):
        self.sheet = MemorySheet(rows=[
            ["Timestamp", "Name", "Email"],
            ["2024-03-05T10:00:00Z", "Ann", "a@x.com"],
            ["2024-03-06T10:00:00Z", "Bob", "b@x.com"],
        ])
        self.tracker = SyncStatusTracker()

    def test_provisions_column_at_end(self):
        self.tracker.mark_synced(self.sheet, 2, "Synced", WHEN)

        assert self.sheet.get_header_row() == ["Timestamp", "Name", "Email", "Sync Status"]
        assert self.sheet.get_cell(2, 4) == "Synced - 3/5/2024, 10:00:00 AM"

    def test_repeated_calls_do_not_duplicate_column(self):
        self.tracker.mark_synced(self.sheet, 2, "Synced", WHEN)
        self.tracker.mark_synced(self.sheet, 3, "Synced", WHEN)
        self.tracker.mark_synced(self.sheet, 2, "Synced", WHEN)

        headers = self.sheet.get_header_row()
        assert headers.count("Sync Status") == 1
        assert len(headers) == 4

    def test_existing_column_is_reused(self):
        sheet = MemorySheet(rows=[["Sync Status", "Name"], ["", "Ann"]])
        column = self.tracker.ensure_status_column(sheet)

        assert column == 1
        assert sheet.get_header_row() == ["Sync Status", "Name"]

    def test_status_is_overwritten(self):
        self.tracker.mark_synced(self.sheet, 2, "Synced", WHEN)
        self.tracker.mark_synced(self.sheet, 2, "Synced", datetime(2024, 3, 6, 9, 30, 0))

        assert self.sheet.get_cell(2, 4) == "Synced - 3/6/2024, 9:30:00 AM"

    def test_only_target_cell_changes(self):
        before = self.sheet.get_all_values()
        self.tracker.mark_synced(self.sheet, 3, "Synced", WHEN)
        after = self.sheet.get_all_values()

        assert [row[:3] for row in after] == before
        assert after[1][3] == ""

    def test_explicit_column(self):
        column = self.tracker.ensure_status_column(self.sheet)
        self.tracker.mark_synced(self.sheet, 3, "Synced", WHEN, column=column)
        assert self.sheet.get_cell(3, column).startswith("Synced - ")

    def test_custom_column_name(self):
        tracker = SyncStatusTracker("CRM Sync")
        tracker.mark_synced(self.sheet, 2, "Synced", WHEN)
        assert self.sheet.get_header_row()[-1] == "CRM Sync"

    def test_concurrent_provisioning_creates_one_column(self):
        barrier = threading.Barrier(8)

        def worker(row):
            barrier.wait()
            self.tracker.mark_synced(self.sheet, row, "Synced", WHEN)

        threads = [threading.Thread(target=worker, args=(2 + i % 2,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert self.sheet.get_header_row().count("Sync Status") == 1

class TestMemorySheet:
    """Test the in-memory tabular source."""

    def test_rows_are_padded_to_last_column(self):
        sheet = MemorySheet(rows=[["A", "B", "C"], ["1"]])
        assert sheet.get_row(2) == ["1", "", ""]
        assert sheet.get_all_values() == [["A", "B", "C"], ["1", "", ""]]

    def test_append_row(self):
        sheet = MemorySheet(rows=[["A", "B"]])
        assert sheet.append_row(["x", "y"]) == 2
        assert sheet.get_row(2) == ["x", "y"]

    def test_set_cell_out_of_range(self):
        with pytest.raises(IndexError):
            MemorySheet().set_cell(0, 1, "x")

    def test_get_cell_out_of_range(self):
        sheet = MemorySheet(rows=[["A", "B"], ["1", "2"]])
        with pytest.raises(IndexError):
            sheet.get_cell(0, 1)
        with pytest.raises(IndexError):
            sheet.get_cell(1, 0)
        assert sheet.get_cell(5, 5) == ""

    def test_incomplete_source_cannot_be_instantiated(self):
        class HeaderOnly(TabularSource):
            def get_row(self, row):
                return ["A"]

        with pytest.raises(TypeError):
            HeaderOnly()

    def test_workbook_get_or_create(self):
        workbook = MemoryWorkbook()
        export = workbook.get_or_create_sheet("Leads Export")
        assert workbook.get_or_create_sheet("Leads Export") is export
        with pytest.raises(KeyError):
            workbook.sheet("Missing")

class TestGSheetSource:
    """Test the gspread adapter against a mocked worksheet."""

    def setup_method(self):
        self.ws = MagicMock()
        self.ws.id = 7
        self.ws.title = "Form Responses 1"
        self.ws.col_count = 3
        self.ws.row_values.side_effect = lambda row: {
            1: ["Timestamp", "Name", "Email"],
            2: ["2024-03-05T10:00:00Z", "Ann"],
        }.get(row, [])
        self.source = GSheetSource(self.ws, "sheet-123")

    def test_reads(self):
        assert self.source.key == "gsheet:sheet-123:7"
        assert self.source.last_column() == 3
        assert self.source.get_row(2) == ["2024-03-05T10:00:00Z", "Ann", ""]

    def test_set_cell_grows_grid(self):
        self.source.set_cell(1, 4, "Sync Status")

        self.ws.add_cols.assert_called_once_with(1)
        self.ws.update_cell.assert_called_once_with(1, 4, "Sync Status")

    def test_tracker_with_gspread_source(self):
        SyncStatusTracker().mark_synced(self.source, 2, "Synced", WHEN)

        self.ws.update_cell.assert_any_call(1, 4, "Sync Status")
        self.ws.update_cell.assert_any_call(2, 4, "Synced - 3/5/2024, 10:00:00 AM")

    def test_workbook_creates_missing_sheet(self):
        client = MagicMock()
        spreadsheet = client.open_by_key.return_value
        spreadsheet.worksheet.side_effect = gspread.WorksheetNotFound("Leads Export")

        workbook = GSheetWorkbook("sheet-123", cred_path="", client=client)
        workbook.get_or_create_sheet("Leads Export")

        spreadsheet.add_worksheet.assert_called_once_with(title="Leads Export", rows=10, cols=2)
