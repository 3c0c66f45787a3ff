from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from loguru import logger

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

class TabularSource(ABC):
    """A sheet of rows addressed with 1-based row/column indexes."""

    @property
    @abstractmethod
    def key(self) -> str:
        ...

    @property
    @abstractmethod
    def title(self) -> str:
        ...

    @abstractmethod
    def last_column(self) -> int:
        ...

    def get_header_row(self) -> List[Any]:
        return self.get_row(1)

    @abstractmethod
    def get_row(self, row: int) -> List[Any]:
        ...

    @abstractmethod
    def get_all_values(self) -> List[List[Any]]:
        ...

    @abstractmethod
    def get_cell(self, row: int, col: int) -> Any:
        ...

    @abstractmethod
    def set_cell(self, row: int, col: int, value: Any) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

class MemorySheet(TabularSource):
    """In-memory sheet used in mock mode and in tests."""

    def __init__(self, title: str = "Form Responses 1", rows: Optional[List[List[Any]]] = None):
        self._title = title
        self._rows: List[List[Any]] = [list(r) for r in (rows or [])]

    @property
    def key(self) -> str:
        return f"memory:{self._title}:{id(self)}"

    @property
    def title(self) -> str:
        return self._title

    def last_column(self) -> int:
        width = 0
        for row in self._rows:
            for index, value in enumerate(row):
                if value not in (None, ""):
                    width = max(width, index + 1)
        return width

    def _last_row(self) -> int:
        last = 0
        for index, row in enumerate(self._rows):
            if any(value not in (None, "") for value in row):
                last = index + 1
        return last

    def get_row(self, row: int) -> List[Any]:
        width = self.last_column()
        values = self._rows[row - 1] if 0 < row <= len(self._rows) else []
        return [values[i] if i < len(values) else "" for i in range(width)]

    def get_all_values(self) -> List[List[Any]]:
        return [self.get_row(r) for r in range(1, self._last_row() + 1)]

    def get_cell(self, row: int, col: int) -> Any:
        if row < 1 or col < 1:
            raise IndexError(f"Cell ({row}, {col}) is out of range")
        if row <= len(self._rows) and col <= len(self._rows[row - 1]):
            return self._rows[row - 1][col - 1]
        return ""

    def set_cell(self, row: int, col: int, value: Any) -> None:
        if row < 1 or col < 1:
            raise IndexError(f"Cell ({row}, {col}) is out of range")
        while len(self._rows) < row:
            self._rows.append([])
        cells = self._rows[row - 1]
        while len(cells) < col:
            cells.append("")
        cells[col - 1] = value

    def append_row(self, values: List[Any]) -> int:
        """Append a row after the last non-empty one and return its index."""
        row = self._last_row() + 1
        for col, value in enumerate(values, start=1):
            self.set_cell(row, col, value)
        return row

    def clear(self) -> None:
        self._rows = []

class MemoryWorkbook:
    """A set of named in-memory sheets."""

    def __init__(self, sheets: Optional[Dict[str, MemorySheet]] = None):
        self.sheets: Dict[str, MemorySheet] = dict(sheets or {})

    def sheet(self, name: Optional[str] = None) -> MemorySheet:
        if name is None:
            if not self.sheets:
                return self.get_or_create_sheet("Form Responses 1")
            return next(iter(self.sheets.values()))
        if name not in self.sheets:
            raise KeyError(f"No sheet named '{name}'")
        return self.sheets[name]

    def get_or_create_sheet(self, name: str) -> MemorySheet:
        if name not in self.sheets:
            self.sheets[name] = MemorySheet(title=name)
        return self.sheets[name]

class GSheetSource(TabularSource):
    """Google Sheets worksheet accessed through gspread."""

    def __init__(self, worksheet, spreadsheet_id: str = ""):
        self.ws = worksheet
        self.spreadsheet_id = spreadsheet_id

    @property
    def key(self) -> str:
        return f"gsheet:{self.spreadsheet_id}:{self.ws.id}"

    @property
    def title(self) -> str:
        return self.ws.title

    def last_column(self) -> int:
        return len(self.ws.row_values(1))

    def get_row(self, row: int) -> List[Any]:
        width = self.last_column()
        values = self.ws.row_values(row)
        return [values[i] if i < len(values) else "" for i in range(width)]

    def get_all_values(self) -> List[List[Any]]:
        return self.ws.get_all_values()

    def get_cell(self, row: int, col: int) -> Any:
        return self.ws.cell(row, col).value

    def set_cell(self, row: int, col: int, value: Any) -> None:
        if col > self.ws.col_count:
            self.ws.add_cols(col - self.ws.col_count)
        self.ws.update_cell(row, col, value)

    def clear(self) -> None:
        self.ws.clear()

class GSheetWorkbook:
    """A Google spreadsheet opened with a service account."""

    def __init__(self, spreadsheet_id: str, cred_path: str, client=None):
        import gspread

        self.spreadsheet_id = spreadsheet_id
        if client is None:
            from google.oauth2.service_account import Credentials
            creds = Credentials.from_service_account_file(cred_path, scopes=SCOPES)
            client = gspread.authorize(creds)
        self.ss = client.open_by_key(spreadsheet_id)
        logger.info(f"Opened spreadsheet {spreadsheet_id}")

    def sheet(self, name: Optional[str] = None) -> GSheetSource:
        ws = self.ss.worksheet(name) if name else self.ss.sheet1
        return GSheetSource(ws, self.spreadsheet_id)

    def get_or_create_sheet(self, name: str) -> GSheetSource:
        import gspread

        try:
            ws = self.ss.worksheet(name)
        except gspread.WorksheetNotFound:
            logger.info(f"Creating worksheet '{name}'")
            ws = self.ss.add_worksheet(title=name, rows=10, cols=2)
        return GSheetSource(ws, self.spreadsheet_id)
