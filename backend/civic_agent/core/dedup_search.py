"""
Purpose: Find existing reports that a new report could duplicate.
What it does:
Pulls reports near the new one from a store, then applies the exact rules:
active status, within the radius, inside the trailing time window, not the
report itself. Nearest first, capped.

A store is any object with reports_in_box(...) and list_reports(...), like
InMemoryReportStore below or supabase_client.SupabaseReportStore.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import Settings, load_settings
from .geo import bounding_box, distance_between
from .models import ACTIVE_REPORT_STATUSES, WorkItem, parse_timestamp

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryReportStore:
    """Report store over a plain list. Used by tests, scripts and local runs."""

    def __init__(self, reports: Optional[Iterable[WorkItem]] = None):
        self.reports: List[WorkItem] = list(reports or [])

    def add(self, report: WorkItem) -> None:
        self.reports.append(report)

    def reports_in_box(
        self,
        min_lat: float,
        max_lat: float,
        min_lon: float,
        max_lon: float,
        since: datetime,
        statuses: Sequence[str],
        limit: int = 200,
    ) -> List[WorkItem]:
        out = []
        for r in self.reports:
            if r.location is None or not r.location.is_valid():
                continue
            if not (min_lat <= r.location.lat <= max_lat and min_lon <= r.location.lon <= max_lon):
                continue
            if r.created_at is None or r.created_at < since:
                continue
            if r.status not in statuses:
                continue
            out.append(r)
        return out[:limit]

    def list_reports(
        self,
        statuses: Sequence[str],
        category: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[WorkItem]:
        out = [
            r for r in self.reports
            if r.status in statuses
            and (category is None or r.category == category)
            and (since is None or (r.created_at is not None and r.created_at >= since))
        ]
        out.sort(key=lambda r: r.created_at or _EPOCH, reverse=True)
        return out[:limit]


def _recency_key(report: WorkItem) -> float:
    return -(report.created_at or _EPOCH).timestamp()


def order_by_distance(report: WorkItem, candidates: Sequence[WorkItem]) -> List[Tuple[WorkItem, Optional[float]]]:
    """
    Pairs each candidate with its distance in meters, nearest first, then
    most recent first. Unknown distances go last in their original order.
    """
    paired = []
    for c in candidates:
        km = distance_between(report.location, c.location)
        paired.append((c, None if km is None else km * 1000.0))
    known = sorted((p for p in paired if p[1] is not None), key=lambda p: (p[1], _recency_key(p[0])))
    unknown = [p for p in paired if p[1] is None]
    return known + unknown


def find_duplicate_candidates(
    report: WorkItem,
    store,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> List[WorkItem]:
    """
    Existing active reports within the radius and time window of report,
    nearest first, at most settings.duplicate_max_candidates.
    A report without a usable location yields an empty list.
    """
    settings = settings or load_settings()
    loc = report.location
    if loc is None or not loc.is_valid():
        return []

    reference = report.created_at or parse_timestamp(now) or datetime.now(timezone.utc)
    since = reference - timedelta(hours=settings.duplicate_window_hours)
    min_lat, max_lat, min_lon, max_lon = bounding_box(loc.lat, loc.lon, settings.duplicate_radius_m)

    rows = store.reports_in_box(min_lat, max_lat, min_lon, max_lon, since, ACTIVE_REPORT_STATUSES)

    kept = []
    for r in rows:
        if report.id and r.id == report.id:
            continue
        if r.status not in ACTIVE_REPORT_STATUSES:
            continue
        if r.created_at is None or r.created_at < since:
            continue
        km = distance_between(loc, r.location)
        if km is None or km * 1000.0 > settings.duplicate_radius_m:
            continue
        kept.append(r)

    ordered = order_by_distance(report, kept)
    return [r for r, _ in ordered[:settings.duplicate_max_candidates]]
