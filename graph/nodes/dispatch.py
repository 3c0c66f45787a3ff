from graph.state import RowSyncState
from tools.gateway import EndpointGateway
from loguru import logger

def dispatch(state: RowSyncState, gateway: EndpointGateway) -> RowSyncState:
    """Forward the lead to the collection endpoint, if one is configured."""
    lead = state.get("lead") or {}

    if not gateway.url:
        state["dispatched"] = None
        return state

    delivered = gateway.send(lead)
    state["dispatched"] = delivered
    if not delivered:
        # the row still counts as processed
        logger.warning(f"Lead {lead.get('id', 'unknown')} was not delivered")

    return state
