"""
Tests for the Supabase report store; HTTP is replaced with a stub.
"""

from datetime import datetime, timezone

import pytest

from backend.civic_agent.core import config, supabase_client
from backend.civic_agent.core.supabase_client import SupabaseReportStore

ROWS = [
    {"id": 7, "category": "waste", "title": "Overflowing dumpster", "description": "", "severity": "high",
     "status": "pending", "lat": 11.1085, "lon": 77.3411, "address": "Market road",
     "created_at": "2024-05-01T10:00:00Z"},
    {"id": 8, "category": "waste", "title": "No coords", "description": "", "severity": None,
     "status": "pending", "lat": None, "lon": None, "address": None, "created_at": "2024-05-01T09:00:00"},
]


class StubResponse:

    def __init__(self, rows):
        self.rows = rows

    def raise_for_status(self):
        pass

    def json(self):
        return self.rows


@pytest.fixture
def captured(monkeypatch):
    monkeypatch.setattr(config, "_DOTENV_LOADED", True)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co/")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.delenv("SUPABASE_REPORTS_TABLE", raising=False)
    calls = []

    def fake_get(url, headers=None, params=None, timeout=None, verify=None):
        calls.append({"url": url, "headers": headers, "params": params})
        return StubResponse(ROWS)

    monkeypatch.setattr(supabase_client.requests, "get", fake_get)
    return calls


def test_reports_in_box(captured):
    since = datetime(2024, 4, 28, tzinfo=timezone.utc)
    reports = SupabaseReportStore().reports_in_box(11.0, 11.2, 77.3, 77.4, since, ["pending", "resolved"])

    call = captured[0]
    assert call["url"] == "https://example.supabase.co/rest/v1/reports"
    assert call["headers"]["Authorization"] == "Bearer service-key"
    assert ("status", "in.(pending,resolved)") in call["params"]
    assert ("lat", "gte.11.0") in call["params"]

    assert reports[0].id == "7"
    assert reports[0].location.lat == pytest.approx(11.1085)
    assert reports[0].created_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
    assert reports[1].location is None
    assert reports[1].created_at.tzinfo is not None


def test_list_reports_filters(captured):
    SupabaseReportStore().list_reports(["pending"], category="waste")
    assert ("category", "eq.waste") in captured[0]["params"]
    assert not any(k == "created_at" for k, _ in captured[0]["params"])


def test_missing_credentials(monkeypatch):
    monkeypatch.setattr(config, "_DOTENV_LOADED", True)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    with pytest.raises(ValueError, match="SUPABASE_URL"):
        SupabaseReportStore().list_reports(["pending"])
