"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

import pytest

from backend.civic_agent.core.config import Settings
from backend.civic_agent.core.llm_gateway import GatewayResponse
from backend.civic_agent.core.models import Candidate, Location, WorkItem

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

# Market road, roughly 1 m of latitude is 0.000009 degrees
BASE_LAT = 11.1085
BASE_LON = 77.3411


class FakeGateway:
    """
    Stands in for ModelGateway. Each entry in replies is returned in turn:
    a dict is sent back as JSON text, a str as raw text, None as a failure.
    The last entry repeats once the list runs out.
    """

    def __init__(self, replies: Optional[List[Union[Dict[str, Any], str, None]]] = None):
        self.replies = list(replies or [None])
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt, model=None, temperature=0.3, top_p=0.9):
        self.prompts.append(prompt)
        reply = self.replies[min(len(self.prompts) - 1, len(self.replies) - 1)]
        if reply is None:
            return GatewayResponse(success=False, error="connection refused", attempts=3, model=model)
        text = reply if isinstance(reply, str) else json.dumps(reply)
        return GatewayResponse(success=True, text=text, attempts=1, model=model)


def offset_location(meters_north: float = 0.0, meters_east: float = 0.0) -> Location:
    return Location(
        lat=BASE_LAT + meters_north / 111_195.0,
        lon=BASE_LON + meters_east / (111_195.0 * 0.9812),
    )


def make_report(report_id: str, meters_north: float = 0.0, hours_ago: float = 1.0, **kwargs) -> WorkItem:
    fields = dict(
        id=report_id,
        category="waste",
        title="Overflowing dumpster",
        description="The dumpster near the market is overflowing onto the street.",
        location=offset_location(meters_north),
        created_at=NOW - timedelta(hours=hours_ago),
        status="pending",
    )
    fields.update(kwargs)
    return WorkItem(**fields)


@pytest.fixture
def settings() -> Settings:
    return Settings(batch_delay_seconds=0.0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def waste_ticket() -> WorkItem:
    return WorkItem(id="T-1", category="waste", title="Overflowing dumpster", description="Bin overflowing")


@pytest.fixture
def waste_worker() -> Candidate:
    return Candidate(id="W-1", name="Asha", skills=("waste",), active_tickets=2, max_capacity=10)


@pytest.fixture
def general_worker() -> Candidate:
    return Candidate(id="W-2", name="Ravi", skills=("general",), active_tickets=9, max_capacity=10)
