"""
Deterministic heuristic scoring for assignment candidates.

Used as the fallback when the model path fails and as an explainable
baseline next to the model's own ranking.

    total = 0.4 * skills + 0.3 * workload + 0.2 * proximity + 0.1 * performance

Every factor is in [0, 1] and the weights sum to 1, so the total is too.
"""

from typing import List, Sequence

from .candidate_filter import FULL_MATCH, WILDCARD_MATCH, capability_match
from .geo import distance_between
from .models import Candidate, ScoreBreakdown, WorkItem

WEIGHTS = {
    "skills": 0.4,
    "workload": 0.3,
    "proximity": 0.2,
    "performance": 0.1,
}

# proximity factor when the distance cannot be computed (0.1 of the total)
UNKNOWN_PROXIMITY = 0.5


def _clamp(v: float) -> float:
    return max(0.0, min(1.0, v))


def score_candidate(item: WorkItem, candidate: Candidate, index: int, max_distance_km: float = 20.0) -> ScoreBreakdown:
    match = capability_match(item.category, candidate.skills)
    if match == FULL_MATCH:
        skills = 1.0
    elif match == WILDCARD_MATCH:
        skills = 0.5
    else:
        skills = 0.0

    capacity = candidate.max_capacity if candidate.max_capacity > 0 else 10
    workload = _clamp(1 - candidate.active_tickets / capacity)

    distance = distance_between(item.location, candidate.location)
    if distance is None:
        proximity = UNKNOWN_PROXIMITY
    else:
        proximity = _clamp(1 - distance / max_distance_km)

    performance = _clamp(candidate.success_rate / 100) if candidate.success_rate else 0.0

    total = (
        WEIGHTS["skills"] * skills
        + WEIGHTS["workload"] * workload
        + WEIGHTS["proximity"] * proximity
        + WEIGHTS["performance"] * performance
    )

    return ScoreBreakdown(
        candidate=candidate,
        index=index,
        skills_match=skills,
        proximity_score=proximity,
        workload_score=workload,
        performance_score=performance,
        total=_clamp(total),
        distance_km=distance,
    )


def score_candidates(item: WorkItem, candidates: Sequence[Candidate], max_distance_km: float = 20.0) -> List[ScoreBreakdown]:
    """
    Scores every candidate and returns them best first.
    sorted() is stable, so equal totals keep their input order.
    """
    scored = [score_candidate(item, c, i, max_distance_km) for i, c in enumerate(candidates)]
    return sorted(scored, key=lambda s: s.total, reverse=True)
