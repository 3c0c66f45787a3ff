import json
from datetime import datetime
from graph.state import RowSyncState
from tools.config import SyncConfig
from tools.lead_builder import BuildContext, event_lead_id, try_build_lead
from loguru import logger

def build(state: RowSyncState, config: SyncConfig, now: datetime) -> RowSyncState:
    """Normalize the captured row into a lead."""
    row_index = state["row_index"]
    context = BuildContext(
        now=now,
        lead_id=event_lead_id(now),
        stage=config.default_stage,
        source=config.default_source,
    )

    result = try_build_lead(
        row_index,
        state.get("headers", []),
        state.get("values", []),
        context,
        config.field_mapping,
        skip_headers=(config.status_column,),
    )

    if result.ok:
        state["lead"] = result.lead
        logger.info(f"New lead: {json.dumps(result.lead, default=str)}")
    else:
        state.setdefault("errors", []).append(f"{result.error_kind}: {result.error}")
        state["error_kind"] = result.error_kind

    return state
