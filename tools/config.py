import os
import json
from dataclasses import dataclass, field
from typing import Dict, Optional
from loguru import logger

DEFAULT_FIELD_MAPPING: Dict[str, str] = {
    "Name": "name",
    "Full Name": "name",
    "Email": "email",
    "Email Address": "email",
    "Phone": "phone",
    "Phone Number": "phone",
    "Message": "notes",
    "How did you hear about us?": "source",
}

@dataclass(frozen=True)
class SyncConfig:
    """Deployment-time settings for the lead sync service."""
    field_mapping: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_MAPPING))
    endpoint_url: str = ""
    endpoint_timeout: float = 10.0
    default_source: str = "Form"
    default_stage: str = "new"
    status_column: str = "Sync Status"
    export_sheet: str = "Leads Export"
    sheets_cred_path: str = ""
    spreadsheet_id: str = ""
    form_sheet_name: Optional[str] = None

    @property
    def dispatch_enabled(self) -> bool:
        return bool(self.endpoint_url)

    @property
    def sheets_enabled(self) -> bool:
        return bool(self.sheets_cred_path and self.spreadsheet_id)

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """Build the config from environment variables (call load_dotenv() first)."""
        return cls(
            field_mapping=_load_field_mapping(os.getenv("SYNC_FIELD_MAPPING", "")),
            endpoint_url=os.getenv("SYNC_ENDPOINT_URL", "").strip(),
            endpoint_timeout=_load_timeout(os.getenv("SYNC_ENDPOINT_TIMEOUT", "")),
            default_source=os.getenv("SYNC_LEAD_SOURCE", "Form"),
            status_column=os.getenv("SYNC_STATUS_COLUMN", "Sync Status"),
            export_sheet=os.getenv("SYNC_EXPORT_SHEET", "Leads Export"),
            sheets_cred_path=os.getenv("GOOGLE_SHEETS_CRED", "").strip(),
            spreadsheet_id=os.getenv("SPREADSHEET_ID", "").strip(),
            form_sheet_name=os.getenv("FORM_SHEET_NAME") or None,
        )

def _load_field_mapping(raw: str) -> Dict[str, str]:
    if not raw.strip():
        return dict(DEFAULT_FIELD_MAPPING)
    try:
        mapping = json.loads(raw)
        if not isinstance(mapping, dict):
            raise ValueError("SYNC_FIELD_MAPPING must be a JSON object")
        return {str(k): str(v) for k, v in mapping.items()}
    except ValueError as e:
        logger.error(f"Invalid SYNC_FIELD_MAPPING, using default mapping: {e}")
        return dict(DEFAULT_FIELD_MAPPING)

def _load_timeout(raw: str) -> float:
    if not raw.strip():
        return 10.0
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid SYNC_ENDPOINT_TIMEOUT '{raw}', using 10s")
        return 10.0
