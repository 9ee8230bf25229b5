"""
Tests for the heuristic scorer.
"""

import pytest

from backend.civic_agent.core.models import Candidate, WorkItem
from backend.civic_agent.core.scoring import WEIGHTS, score_candidate, score_candidates

from conftest import offset_location


def test_weights_sum_to_one():
    assert sum(WEIGHTS.values()) == pytest.approx(1.0)


def test_full_match_no_location():
    ticket = WorkItem(id="T", category="waste")
    c = Candidate(id="a", skills=("waste",), active_tickets=2, max_capacity=10, success_rate=80)
    s = score_candidate(ticket, c, 0)
    assert s.skills_match == 1.0
    assert s.workload_score == pytest.approx(0.8)
    assert s.proximity_score == 0.5  # flat 0.1 of the total
    assert s.performance_score == pytest.approx(0.8)
    assert s.total == pytest.approx(0.4 + 0.24 + 0.1 + 0.08)


def test_wildcard_and_distance():
    ticket = WorkItem(id="T", category="waste", location=offset_location())
    c = Candidate(id="a", skills=("general",), location=offset_location(meters_north=10_000))
    s = score_candidate(ticket, c, 0)
    assert s.skills_match == 0.5
    assert s.proximity_score == pytest.approx(0.5, abs=0.01)
    assert s.distance_km == pytest.approx(10.0, abs=0.05)


def test_no_match_and_missing_success_rate():
    ticket = WorkItem(id="T", category="waste")
    c = Candidate(id="a", skills=("electrical",), active_tickets=0)
    s = score_candidate(ticket, c, 0)
    assert s.skills_match == 0.0
    assert s.performance_score == 0.0


@pytest.mark.parametrize("load,capacity,rate", [(0, 10, 100), (15, 10, 250), (3, 0, -20), (9, 10, None)])
def test_total_always_in_unit_interval(load, capacity, rate):
    ticket = WorkItem(id="T", category="waste", location=offset_location())
    c = Candidate(id="a", skills=("waste", "general"), active_tickets=load, max_capacity=capacity,
                  success_rate=rate, location=offset_location(meters_north=50_000))
    s = score_candidate(ticket, c, 0)
    assert 0.0 <= s.total <= 1.0
    for factor in (s.skills_match, s.proximity_score, s.workload_score, s.performance_score):
        assert 0.0 <= factor <= 1.0


def test_sorted_descending_and_stable_on_ties():
    ticket = WorkItem(id="T", category="waste")
    pool = [
        Candidate(id="tie-1", skills=("waste",), active_tickets=5),
        Candidate(id="best", skills=("waste",), active_tickets=0),
        Candidate(id="tie-2", skills=("waste",), active_tickets=5),
        Candidate(id="tie-3", skills=("waste",), active_tickets=5),
    ]
    ranked = score_candidates(ticket, pool)
    assert [s.candidate.id for s in ranked] == ["best", "tie-1", "tie-2", "tie-3"]
    # index refers back to the input position
    assert [s.index for s in ranked] == [1, 0, 2, 3]
