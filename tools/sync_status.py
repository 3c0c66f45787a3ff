import threading
from datetime import datetime
from typing import Dict, Optional
from loguru import logger

from tools.tabular import TabularSource

SYNCED = "Synced"

def format_locale_timestamp(when: datetime) -> str:
    """Render a timestamp like '3/5/2024, 10:00:00 AM'."""
    hour = when.hour % 12 or 12
    meridiem = "AM" if when.hour < 12 else "PM"
    return f"{when.month}/{when.day}/{when.year}, {hour}:{when.minute:02d}:{when.second:02d} {meridiem}"

def format_status(status: str, when: datetime) -> str:
    return f"{status} - {format_locale_timestamp(when)}"

class SyncStatusTracker:
    """Records a per-row sync marker in a reserved column of the sheet."""

    def __init__(self, column_name: str = "Sync Status"):
        self.column_name = column_name
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, source: TabularSource) -> threading.Lock:
        with self._registry_lock:
            if source.key not in self._locks:
                self._locks[source.key] = threading.Lock()
            return self._locks[source.key]

    def find_status_column(self, source: TabularSource) -> Optional[int]:
        """1-based position of the status column, or None if the sheet has none."""
        headers = source.get_header_row()
        for index, header in enumerate(headers):
            if header == self.column_name:
                return index + 1
        return None

    def ensure_status_column(self, source: TabularSource) -> int:
        """
        Locate the status column, appending it after the last header if absent.

        Runs under a per-sheet lock so two overlapping calls cannot both add
        the column.
        """
        with self._lock_for(source):
            column = self.find_status_column(source)
            if column is not None:
                return column
            column = source.last_column() + 1
            source.set_cell(1, column, self.column_name)
            logger.info(f"Added '{self.column_name}' column at position {column} in '{source.title}'")
            return column

    def mark_synced(
        self,
        source: TabularSource,
        row_index: int,
        status: str = SYNCED,
        when: Optional[datetime] = None,
        column: Optional[int] = None,
    ) -> str:
        """
        Overwrite the row's status cell with '<status> - <timestamp>'.

        Pass `column` to reuse a position discovered earlier in the same run;
        otherwise the column is looked up (or created) on every call.
        """
        if column is None:
            column = self.ensure_status_column(source)
        value = format_status(status, when or datetime.now())
        source.set_cell(row_index, column, value)
        logger.debug(f"Row {row_index} of '{source.title}' marked: {value}")
        return value
