import pytest
import os
import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app, get_engine, get_workbook
from graph.engine import SyncEngine
from tools.config import SyncConfig
from tools.gateway import EndpointGateway
from tools.idempotency import Idem
from tools.tabular import MemorySheet, MemoryWorkbook

class TestWebApp:
    """Test the HTTP surface against an in-memory workbook."""

    def setup_method(self):
        self.sheet = MemorySheet(title="Form Responses 1", rows=[
            ["Timestamp", "Name", "Email"],
            ["2024-03-05T10:00:00Z", "Ann", "a@x.com"],
            ["2024-03-06T10:00:00Z", "Bob", "b@x.com"],
            ["2024-03-07T10:00:00Z", "Cy", "c@x.com"],
        ])
        self.workbook = MemoryWorkbook({"Form Responses 1": self.sheet})
        self.engine = SyncEngine(
            SyncConfig(),
            gateway=EndpointGateway(""),
            idem=Idem(redis_url=""),
            notifier=MagicMock(),
            clock=lambda: datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc),
        )
        app.dependency_overrides[get_engine] = lambda: self.engine
        app.dependency_overrides[get_workbook] = lambda: self.workbook
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()

    def test_get_leads(self):
        response = self.client.get("/exec", params={"action": "getLeads"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["leads"]) == 3
        assert set(body) == {"success", "leads"}
        for row in (2, 3, 4):
            assert self.sheet.get_cell(row, 4).startswith("Synced")

    def test_get_defaults_to_get_leads(self):
        body = self.client.get("/exec").json()
        assert [lead["name"] for lead in body["leads"]] == ["Ann", "Bob", "Cy"]

    def test_unknown_action(self):
        response = self.client.get("/exec", params={"action": "foo"})

        assert response.status_code == 200
        assert response.json() == {"error": "Unknown action"}
        assert "Sync Status" not in self.sheet.get_header_row()

    def test_get_leads_writes_export_sheet(self):
        self.client.get("/exec")
        assert "Leads Export" in self.workbook.sheets

    def test_post_accepts_json(self):
        response = self.client.post("/exec", json={"event": "lead.updated", "id": "L1"})

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_post_rejects_invalid_json(self):
        response = self.client.post("/exec", content=b"{oops", headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert "error" in response.json()

    def test_row_added_event(self):
        row = self.sheet.append_row(["2024-03-08T10:00:00Z", "Dee", "d@x.com"])

        response = self.client.post("/events/row-added", json={"row": row, "event_id": "evt-9"})

        body = response.json()
        assert body["status"] == "synced"
        assert body["lead"]["name"] == "Dee"
        assert body["lead"]["date"] == "2024-03-08"
        assert self.sheet.get_cell(row, 4).startswith("Synced")

    def test_duplicate_row_added_event(self):
        self.client.post("/events/row-added", json={"row": 2, "event_id": "evt-1"})
        body = self.client.post("/events/row-added", json={"row": 2, "event_id": "evt-1"}).json()

        assert body["status"] == "skipped"

    def test_row_added_unknown_sheet(self):
        body = self.client.post("/events/row-added", json={"row": 2, "sheet": "Nope"}).json()
        assert body["status"] == "skipped"

    def test_row_added_bad_row_is_skipped(self):
        self.sheet.set_cell(3, 1, "garbage")
        body = self.client.post("/events/row-added", json={"row": 3}).json()

        assert body["status"] == "skipped"

    @pytest.mark.parametrize("payload", [{}, {"row": 0}, {"row": "two"}])
    def test_row_added_validation(self, payload):
        response = self.client.post("/events/row-added", json=payload)
        assert response.status_code == 422

    def test_health(self):
        body = self.client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["services"]["sheets"] == "mock"
        assert body["services"]["endpoint"] == "disabled"
        assert body["services"]["redis"] == "disconnected"

class TestPackaging:
    """Test what an install of the project ships."""

    def test_smoke_check_is_not_installed(self):
        tomllib = pytest.importorskip("tomllib")
        root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        with open(os.path.join(root, "pyproject.toml"), "rb") as f:
            pyproject = tomllib.load(f)

        assert pyproject["tool"]["setuptools"]["py-modules"] == ["app"]
        runtime = " ".join(pyproject["project"]["dependencies"])
        assert "requests" not in runtime
