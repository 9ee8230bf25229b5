from typing import List, Optional, Sequence

from .geo import distance_between
from .models import WILDCARD_SKILL, Candidate, WorkItem

FULL_MATCH = "full"
WILDCARD_MATCH = "wildcard"


def capability_match(category: Optional[str], skills: Optional[Sequence[str]]) -> Optional[str]:
    """
    Returns "full" when a skill names the category (case-insensitive,
    containment either way), "wildcard" when only the general skill matches,
    else None.
    """
    if not category or skills is None:
        return None
    cat = category.strip().lower()
    lowered = [s.strip().lower() for s in skills if s and s.strip()]
    if cat and any(s in cat or cat in s for s in lowered):
        return FULL_MATCH
    if WILDCARD_SKILL in lowered:
        return WILDCARD_MATCH
    return None


def is_eligible(item: WorkItem, candidate: Candidate, max_distance_km: float = 20.0) -> bool:
    # Availability
    if not candidate.is_available or candidate.status != "active":
        return False

    # Skills (skipped when the ticket has no category or the skill set is unknown)
    if item.category and candidate.skills is not None:
        if capability_match(item.category, candidate.skills) is None:
            return False

    # Distance (skipped when either location is unknown or unusable)
    distance = distance_between(item.location, candidate.location)
    if distance is not None and distance > max_distance_km:
        return False

    # Capacity
    if candidate.active_tickets >= candidate.max_capacity:
        return False

    return True


def filter_candidates(item: WorkItem, pool: Sequence[Candidate], max_distance_km: float = 20.0) -> List[Candidate]:
    """
    Returns the candidates that pass every hard constraint, in input order.
    """
    return [c for c in pool if is_eligible(item, c, max_distance_km)]
