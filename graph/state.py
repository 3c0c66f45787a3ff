from typing import TypedDict, Optional, List, Dict, Any

class RowSyncState(TypedDict, total=False):
    """State shape for the single-row sync workflow."""
    source: Any                      # TabularSource the row lives in
    row_index: int                   # 1-based sheet row
    event_id: Optional[str]
    headers: List[Any]
    values: List[Any]
    lead: Optional[Dict[str, Any]]
    dispatched: Optional[bool]       # None when no endpoint is configured
    status: str                      # status cell text written for the row
    errors: List[str]
    error_kind: str                  # "DateParseFailure" | "BuildFailure" | "ReadFailure" | "StatusWriteFailure"
