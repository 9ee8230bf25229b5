import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .geo import distance_between
from .models import Candidate, WorkItem

JSON_ONLY_SUFFIX = (
    "\n\nIMPORTANT: Respond ONLY with valid JSON. "
    "No explanations, no markdown, no code blocks. Just pure JSON."
)


def relative_age(created_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    if created_at is None:
        return "at an unknown time"
    now = now or datetime.now(timezone.utc)
    hours = int((now - created_at).total_seconds() // 3600)
    if hours < 1:
        return "less than 1 hour ago"
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"
    days = hours // 24
    return "1 day ago" if days == 1 else f"{days} days ago"


def _candidate_view(item: WorkItem, index: int, c: Candidate) -> Dict[str, Any]:
    # Only the dense index identifies a candidate; internal ids stay out of the prompt.
    distance = distance_between(item.location, c.location)
    return {
        "index": index,
        "skills": list(c.skills or []),
        "activeTickets": c.active_tickets,
        "maxCapacity": c.max_capacity,
        "distanceKm": "unknown" if distance is None else round(distance, 2),
        "averageResolutionHours": "unknown" if c.average_resolution_hours is None else c.average_resolution_hours,
        "successRate": "unknown" if c.success_rate is None else c.success_rate,
        "zone": c.zone or "unknown",
    }


def build_assignment_prompt(item: WorkItem, candidates: Sequence[Candidate], max_distance_km: float = 20.0) -> str:
    last = len(candidates) - 1
    views: List[Dict[str, Any]] = [_candidate_view(item, i, c) for i, c in enumerate(candidates)]
    address = item.location.address if item.location and item.location.address else "Not specified"

    return f"""You are an intelligent assignment system for a civic complaint management platform. Analyze the ticket and the inspector pool and recommend the single best inspector.

**Ticket Details:**
- Category: {item.category or "unknown"}
- Title: {item.title or "N/A"}
- Description: {item.description or "N/A"}
- Severity: {item.severity.value}
- Priority: {item.priority}
- Location: {address}

**Available Inspectors** (all within {max_distance_km:g} km when location is known, each identified ONLY by "index"):
{json.dumps(views, indent=2)}

**Assignment Criteria (in order of importance):**
1. Skills match with ticket category
2. Distance from ticket location (closer is better)
3. Current workload (fewer active tickets is better)
4. Past performance (higher success rate is better)
5. Average resolution time (faster is better)

**Instructions:**
- Recommend the SINGLE best inspector by their "index", an integer from 0 to {last}
- Provide a confidence score between 0 and 1
- Explain your reasoning in one sentence
- Consider workload balance, avoid overloading inspectors
- For high or critical severity, prioritize proximity and availability

**Output Format (valid JSON only):**
{{
  "recommendedIndex": <integer from 0 to {last}>,
  "confidence": <number between 0 and 1>,
  "primaryReason": "<one sentence reason>",
  "factors": {{
    "skillsMatch": <number 0-1>,
    "proximityScore": <number 0-1>,
    "workloadScore": <number 0-1>,
    "performanceScore": <number 0-1>
  }},
  "allScores": [
    {{"index": <integer 0-{last}>, "totalScore": <number 0-1>, "reason": "<brief>"}}
  ]
}}""" + JSON_ONLY_SUFFIX


def format_report(report: WorkItem, now: Optional[datetime] = None) -> str:
    return "\n".join([
        f"Category: {report.category or 'Unknown'}",
        f"Title: {report.title or 'No title'}",
        f"Description: {report.description or 'No description'}",
        f"Submitted: {relative_age(report.created_at, now)}",
    ])


def build_duplicate_prompt(
    existing: WorkItem,
    new: WorkItem,
    radius_m: float = 20.0,
    window_hours: float = 72.0,
    now: Optional[datetime] = None,
) -> str:
    return f"""You are a Semantic Data Deduplication Engine for a Civic Grievance System.

Your Task: Determine if 'Report B (New)' is a duplicate of 'Report A (Existing)'.

Context: These two reports were submitted within a {radius_m:g}-meter GPS radius of each other within the last {window_hours:g} hours.

**Report A (Existing):**
{format_report(existing, now)}

**Report B (New):**
{format_report(new, now)}

**Analysis Criteria (in order of importance):**
1. Entity Match: do they describe the EXACT SAME physical object at the same spot?
   "The big green dumpster" vs "A green trash container" is the same entity;
   "Dumpster at north gate" vs "Dumpster at south gate" is not.
2. Issue Match: is the core complaint identical?
   "Overflowing trash" and "Full garbage bin" match; "Overflowing trash" and "Broken bin lid" do not.
3. Temporal Match: do they describe the same occurrence?
   "Ongoing for months" and "appeared yesterday" suggest different occurrences.

**Rules:**
- Mark as duplicate ONLY if you are 90%+ confident both refer to the same physical issue at the same location
- Different perspectives of the same issue = duplicate
- Same category but different specific issues = NOT duplicate
- When in doubt, answer "KeepSeparate"

**Output Format (valid JSON only):**
{{
  "is_duplicate": <true or false>,
  "confidence_score": <number between 0 and 1>,
  "merge_recommendation": "Merge" or "KeepSeparate",
  "rationale": "<one sentence based on entity/issue/temporal match>"
}}""" + JSON_ONLY_SUFFIX
