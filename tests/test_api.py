"""
Tests for the HTTP surface. The model gateway, settings and report store
are swapped out through FastAPI dependency overrides.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from backend.civic_agent.core.config import Settings
from backend.civic_agent.core.dedup_search import InMemoryReportStore
from backend.civic_agent.main import app, get_gateway, get_report_store, get_settings

from conftest import BASE_LAT, BASE_LON, FakeGateway, make_report


@pytest.fixture
def gateway():
    return FakeGateway([None])


@pytest.fixture
def store():
    return InMemoryReportStore()


@pytest.fixture
def client(gateway, store):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: Settings(batch_delay_seconds=0.0)
    app.dependency_overrides[get_report_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def ticket(ticket_id="T-1", **kwargs):
    body = {"id": ticket_id, "category": "waste", "title": "Overflowing dumpster",
            "description": "Bin overflowing at the market"}
    body.update(kwargs)
    return body


POOL = [
    {"id": "W-1", "name": "Asha", "skills": ["waste"], "active_tickets": 2, "max_capacity": 10},
    {"id": "W-2", "name": "Ravi", "skills": ["general"], "active_tickets": 9, "max_capacity": 10},
]


def test_agent_info(client):
    body = client.get("/api/agent_info").json()
    assert "DecisionGate" in body["modules"]


def test_health_reports_unconfigured_gateway():
    app.dependency_overrides[get_settings] = lambda: Settings(api_key=None, base_url=None)
    try:
        body = TestClient(app).get("/api/health").json()
    finally:
        app.dependency_overrides.clear()
    assert body["status"] == "ok"
    assert body["model"]["status"] == "unconfigured"


class TestAssign:

    def test_fallback_assignment(self, client):
        body = client.post("/api/assign", json={"ticket": ticket(), "pool": POOL}).json()
        assert body["status"] == "ok"
        assert body["error"] is None
        out = body["response"]
        assert out["candidate_id"] == "W-1"
        assert out["provenance"] == "heuristic-fallback"
        assert out["confidence"] == pytest.approx(0.74)
        assert "W-1" in out["text"] or "Asha" in out["text"]

    def test_model_assignment(self, client, gateway):
        gateway.replies = [{"recommendedIndex": 1, "confidence": 0.81, "primaryReason": "Has spare capacity"}]
        out = client.post("/api/assign", json={"ticket": ticket(), "pool": POOL}).json()["response"]
        assert out["candidate_id"] == "W-2"
        assert out["provenance"] == "model"
        assert out["rationale"] == "Has spare capacity"

    def test_no_candidates(self, client):
        out = client.post("/api/assign", json={"ticket": ticket(category="electrical"), "pool": POOL[:1]}).json()
        assert out["status"] == "ok"
        assert out["response"]["candidate_id"] is None
        assert out["response"]["provenance"] == "no-candidates"

    def test_invalid_body_is_rejected(self, client):
        assert client.post("/api/assign", json={"ticket": ticket()}).status_code == 422

    def test_batch(self, client):
        body = client.post("/api/assign/batch", json={
            "tickets": [ticket("T-1"), ticket("T-2")],
            "pool": POOL,
        }).json()
        assert body["status"] == "ok"
        assert [r["item_id"] for r in body["response"]["results"]] == ["T-1", "T-2"]
        assert body["response"]["statistics"]["total"] == 2


def located(report_id, hours_ago=0.0, meters_north=0.0):
    created = datetime.now(timezone.utc) - timedelta(hours=hours_ago)
    return ticket(
        report_id,
        location={"lat": BASE_LAT + meters_north / 111_195.0, "lon": BASE_LON},
        created_at=created.isoformat(),
    )


class TestDuplicates:

    def test_check_against_store(self, client, gateway, store):
        store.add(make_report("old", hours_ago=2, created_at=datetime.now(timezone.utc) - timedelta(hours=2)))
        gateway.replies = [{"is_duplicate": True, "confidence_score": 0.94, "merge_recommendation": "Merge",
                            "rationale": "Same dumpster"}]
        body = client.post("/api/duplicates/check", json={"report": located("new", meters_north=6)}).json()
        out = body["response"]
        assert body["status"] == "ok"
        assert out["is_duplicate"] is True
        assert out["duplicate_of"] == "old"
        assert out["merge_recommendation"] == "Merge"
        assert out["status"] == "checked"
        assert len(out["all_matches"]) == 1

    def test_check_with_supplied_candidates(self, client, gateway):
        gateway.replies = [{"is_duplicate": False, "confidence_score": 0.6, "merge_recommendation": "KeepSeparate"}]
        out = client.post("/api/duplicates/check", json={
            "report": located("new"),
            "candidates": [located("c1", hours_ago=1, meters_north=4)],
        }).json()["response"]
        assert out["is_duplicate"] is False
        assert out["candidates_checked"] == 1

    def test_check_without_location(self, client, gateway):
        out = client.post("/api/duplicates/check", json={"report": ticket("new")}).json()["response"]
        assert out["status"] == "not-checked"
        assert gateway.calls == 0

    def test_check_model_down(self, client, store):
        store.add(make_report("old", created_at=datetime.now(timezone.utc) - timedelta(hours=1)))
        out = client.post("/api/duplicates/check", json={"report": located("new", meters_north=2)}).json()["response"]
        assert out["status"] == "model-unavailable"
        assert out["merge_recommendation"] == "KeepSeparate"

    def test_compare(self, client, gateway):
        gateway.replies = [{"is_duplicate": True, "confidence_score": 0.97, "merge_recommendation": "Merge"}]
        out = client.post("/api/duplicates/compare", json={
            "report_a": located("a"),
            "report_b": located("b", hours_ago=3),
        }).json()["response"]
        assert out["duplicate_of"] == "b"

    def test_batch(self, client):
        body = client.post("/api/duplicates/batch", json={"reports": [located("x"), located("y", meters_north=900)]}).json()
        stats = body["response"]["statistics"]
        assert stats["total"] == 2
        assert stats["by_status"] == {"no-candidates": 2}

    def test_scan(self, client, gateway, store):
        recent = datetime.now(timezone.utc) - timedelta(hours=1)
        store.add(make_report("r1", created_at=recent))
        store.add(make_report("r2", meters_north=5, created_at=recent - timedelta(hours=1)))
        gateway.replies = [{"is_duplicate": True, "confidence_score": 0.92, "merge_recommendation": "Merge"}]
        out = client.get("/api/duplicates/scan", params={"limit": 10, "days": 7}).json()["response"]
        assert out["total_scanned"] == 2
        assert out["duplicates_found"] == 2
