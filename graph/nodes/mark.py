from datetime import datetime
from graph.state import RowSyncState
from tools.sync_status import SYNCED, SyncStatusTracker
from loguru import logger

def mark(state: RowSyncState, tracker: SyncStatusTracker, when: datetime) -> RowSyncState:
    """Write the Synced marker for the row."""
    row_index = state["row_index"]

    try:
        state["status"] = tracker.mark_synced(state["source"], row_index, SYNCED, when)
    except Exception as e:
        error_msg = f"Writing sync status for row {row_index} failed: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)
        state["error_kind"] = "StatusWriteFailure"

    return state
