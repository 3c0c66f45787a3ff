import os
import time
from functools import lru_cache
from typing import Optional
from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Import our modules
from graph.engine import SyncEngine
from tools.config import SyncConfig
from tools.gateway import EndpointGateway
from tools.idempotency import Idem
from tools.slack import SlackNotifier
from tools.tabular import GSheetWorkbook, MemoryWorkbook

# Load environment variables
load_dotenv()

# Configure logging
logger.add("logs/app.log", rotation="1 day", retention="7 days", level="INFO")

VERSION = "1.0.0"

# Initialize FastAPI app
app = FastAPI(
    title="Form Lead Sync",
    description="Normalizes form-response rows into leads and forwards them to a collection endpoint",
    version=VERSION
)

class RowAddedEvent(BaseModel):
    """A new row was appended to a form-response sheet."""
    row: int = Field(..., ge=1, description="1-based index of the new row")
    sheet: Optional[str] = None
    event_id: Optional[str] = None

@lru_cache()
def get_config() -> SyncConfig:
    return SyncConfig.from_env()

@lru_cache()
def get_workbook():
    """Open the configured spreadsheet, or an empty in-memory one in mock mode."""
    config = get_config()
    if config.sheets_enabled:
        return GSheetWorkbook(config.spreadsheet_id, config.sheets_cred_path)
    logger.warning("No spreadsheet configured, using in-memory mock workbook")
    return MemoryWorkbook()

@lru_cache()
def get_engine() -> SyncEngine:
    config = get_config()
    return SyncEngine(
        config,
        gateway=EndpointGateway(config.endpoint_url, config.endpoint_timeout),
        idem=Idem(),
        notifier=SlackNotifier(),
    )

@app.get("/exec")
def web_app_get(
    action: str = "getLeads",
    engine: SyncEngine = Depends(get_engine),
    workbook=Depends(get_workbook),
):
    """
    Web-app style GET endpoint.

    `getLeads` (the default) runs a bulk sync of the form sheet and returns
    every lead built; any other action is rejected.
    """
    if action == "getLeads":
        source = workbook.sheet(engine.config.form_sheet_name)
        result = engine.sync_all(source, workbook)
        return JSONResponse(status_code=200, content=jsonable_encoder(result.to_response()))

    logger.warning(f"Unknown action requested: {action}")
    return JSONResponse(status_code=200, content={"error": "Unknown action"})

@app.post("/exec")
async def web_app_post(req: Request, engine: SyncEngine = Depends(get_engine)):
    """Accept an inbound JSON payload. Nothing is stored."""
    raw = await req.body()
    parsed = engine.gateway.receive(raw)
    if "error" in parsed:
        return JSONResponse(status_code=200, content={"error": parsed["error"]})
    return JSONResponse(status_code=200, content={"success": True})

@app.post("/events/row-added")
def row_added(
    event: RowAddedEvent,
    engine: SyncEngine = Depends(get_engine),
    workbook=Depends(get_workbook),
):
    """
    Row-added hook for form submissions.

    Expected payload:
    {
        "row": 5,
        "sheet": "Form Responses 1",
        "event_id": "submission-123"
    }
    """
    start_time = time.time()

    try:
        source = workbook.sheet(event.sheet or engine.config.form_sheet_name)
    except Exception as e:
        logger.error(f"Sheet lookup failed for event on row {event.row}: {e}")
        return {"status": "skipped", "row": event.row}

    lead = engine.sync_row(source, event.row, event_id=event.event_id)
    processing_time = time.time() - start_time

    if lead is None:
        return {"status": "skipped", "row": event.row, "processing_time": processing_time}

    logger.info(f"Row {event.row} synced in {processing_time:.2f}s: {lead['id']}")
    return {"status": "synced", "row": event.row, "lead": lead, "processing_time": processing_time}

@app.get("/health")
def health(engine: SyncEngine = Depends(get_engine)):
    """Health check endpoint."""
    config = engine.config
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": VERSION,
        "services": {
            "sheets": "gspread" if config.sheets_enabled else "mock",
            "endpoint": "configured" if config.dispatch_enabled else "disabled",
            "redis": "connected" if engine.idem is not None and engine.idem.r is not None else "disconnected",
            "workflow": "ready"
        }
    }

# Error handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn

    # Create logs directory if it doesn't exist
    os.makedirs("logs", exist_ok=True)

    logger.info("Starting Form Lead Sync")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
