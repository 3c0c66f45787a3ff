from graph.state import RowSyncState
from loguru import logger

def capture(state: RowSyncState) -> RowSyncState:
    """Read the header row and the new row's values from the sheet."""
    source = state["source"]
    row_index = state["row_index"]
    logger.info(f"Starting capture for row {row_index} of '{source.title}'")

    try:
        if row_index < 2:
            raise ValueError(f"Row {row_index} is not a data row")
        state["headers"] = source.get_header_row()
        state["values"] = source.get_row(row_index)
    except Exception as e:
        error_msg = f"Reading row {row_index} failed: {e}"
        logger.error(error_msg)
        state.setdefault("errors", []).append(error_msg)
        state["error_kind"] = "ReadFailure"

    return state
