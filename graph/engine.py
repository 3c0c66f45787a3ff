import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from langgraph.graph import StateGraph, START, END
from loguru import logger

from graph.state import RowSyncState
from graph.nodes.capture import capture
from graph.nodes.build import build
from graph.nodes.dispatch import dispatch
from graph.nodes.mark import mark
from tools.config import SyncConfig
from tools.gateway import EndpointGateway
from tools.idempotency import Idem
from tools.lead_builder import BuildContext, bulk_lead_id, headers_and_rows, try_build_lead, utc_now
from tools.slack import SlackNotifier
from tools.sync_status import SYNCED, SyncStatusTracker
from tools.tabular import TabularSource

EXPORT_HEADLINE = "Copy this JSON into your lead tracker:"

@dataclass
class BulkSyncResult:
    """Leads built by a bulk run plus the rows that could not be synced."""
    leads: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)
    synced_rows: List[int] = field(default_factory=list)

    def summary(self) -> str:
        text = f"{len(self.leads)} leads exported."
        if self.failed:
            text += f" {len(self.failed)} rows failed: {', '.join(str(f['row']) for f in self.failed)}."
        return text

    def to_response(self) -> Dict[str, Any]:
        response = {"success": True, "leads": self.leads}
        if self.failed:
            response["failed"] = self.failed
        return response

def _has_errors(state: RowSyncState) -> str:
    return "end" if state.get("errors") else "continue"

def build_workflow(engine: "SyncEngine"):
    """Build the single-row sync workflow: capture -> build -> dispatch -> mark."""
    workflow = StateGraph(RowSyncState)

    workflow.add_node("capture", capture)
    workflow.add_node("build", lambda state: build(state, engine.config, engine.clock()))
    workflow.add_node("dispatch", lambda state: dispatch(state, engine.gateway))
    workflow.add_node("mark", lambda state: mark(state, engine.tracker, engine.local_now()))

    workflow.add_edge(START, "capture")
    workflow.add_conditional_edges("capture", _has_errors, {"continue": "build", "end": END})
    workflow.add_conditional_edges("build", _has_errors, {"continue": "dispatch", "end": END})
    # delivery failures never stop the status write
    workflow.add_edge("dispatch", "mark")
    workflow.add_edge("mark", END)

    return workflow.compile()

class SyncEngine:
    """Turns sheet rows into leads, forwards them and records per-row sync status."""

    def __init__(
        self,
        config: SyncConfig,
        tracker: Optional[SyncStatusTracker] = None,
        gateway: Optional[EndpointGateway] = None,
        idem: Optional[Idem] = None,
        notifier: Optional[SlackNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config
        self.tracker = tracker or SyncStatusTracker(config.status_column)
        self.gateway = gateway or EndpointGateway(config.endpoint_url, config.endpoint_timeout)
        self.idem = idem
        self.notifier = notifier
        self.clock = clock or utc_now
        self.workflow = build_workflow(self)

    def local_now(self) -> datetime:
        return self.clock().astimezone()

    def sync_row(self, source: TabularSource, row_index: int, event_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Handle a row-added event.

        Returns the lead, or None when the event was a duplicate or the row
        could not be synced. Failures are logged, never raised.
        """
        if event_id and self.idem is not None and not self.idem.check_and_set(event_id):
            logger.warning(f"Duplicate row event ignored: {event_id}")
            return None

        initial_state: RowSyncState = {
            "source": source,
            "row_index": row_index,
            "event_id": event_id,
            "errors": [],
        }

        try:
            result = self.workflow.invoke(initial_state)
        except Exception as e:
            logger.error(f"Error processing row {row_index}: {e}")
            result = {"errors": [str(e)]}

        if result.get("errors"):
            logger.error(f"Row {row_index} not synced: {'; '.join(result['errors'])}")
            # a lead that already reached the endpoint must not be sent again on redelivery
            if event_id and self.idem is not None and result.get("dispatched") is not True:
                self.idem.clear_key(event_id)
            return None

        return result.get("lead")

    def sync_all(self, source: TabularSource, workbook=None) -> BulkSyncResult:
        """
        Build and mark every data row of the sheet.

        A row that fails is reported in `failed` and left unmarked; the run
        carries on with the next row. When `workbook` is given the leads are
        also written to the export sheet.
        """
        headers, rows = headers_and_rows(source.get_all_values())
        result = BulkSyncResult()
        status_column = None

        for data_index, values in enumerate(rows, start=1):
            row_index = data_index + 1
            now = self.clock()
            context = BuildContext(
                now=now,
                lead_id=bulk_lead_id(now, data_index),
                stage=self.config.default_stage,
                source=self.config.default_source,
            )
            built = try_build_lead(
                row_index, headers, values, context,
                self.config.field_mapping,
                skip_headers=(self.config.status_column,),
            )
            if not built.ok:
                result.failed.append({"row": row_index, "kind": built.error_kind, "error": built.error})
                continue

            try:
                if status_column is None:
                    status_column = self.tracker.ensure_status_column(source)
                self.tracker.mark_synced(source, row_index, SYNCED, self.local_now(), column=status_column)
            except Exception as e:
                logger.error(f"Writing sync status for row {row_index} failed: {e}")
                result.failed.append({"row": row_index, "kind": "StatusWriteFailure", "error": str(e)})
                continue

            result.leads.append(built.lead)
            result.synced_rows.append(row_index)

        logger.info(f"Total leads: {len(result.leads)}")
        logger.info(f"Leads JSON: {json.dumps(result.leads, default=str)}")
        if result.failed:
            logger.warning(f"Rows not synced: {result.failed}")

        if workbook is not None:
            self.publish_export(workbook, result.leads)
        if self.notifier is not None:
            self.notifier.send_sync_summary(result, sheet_title=source.title)

        logger.info(result.summary())
        return result

    def publish_export(self, workbook, leads: List[Dict[str, Any]]) -> TabularSource:
        """Replace the export sheet's contents with the JSON lead collection."""
        export = workbook.get_or_create_sheet(self.config.export_sheet)
        export.clear()
        export.set_cell(1, 1, EXPORT_HEADLINE)
        export.set_cell(2, 1, json.dumps(leads, indent=2, default=str))
        logger.info(f"Wrote {len(leads)} leads to '{self.config.export_sheet}'")
        return export
