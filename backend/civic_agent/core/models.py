"""
Purpose: Core data models for assignment and deduplication decisions.
What it does:
Defines work items, candidate workers and the result objects the pipeline
returns, without relying on any storage or HTTP schema.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .geo import LonLat, is_valid_coordinate

ACTIVE_REPORT_STATUSES = ("pending", "in-progress", "resolved")
WILDCARD_SKILL = "general"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Provenance(str, Enum):
    """Where an assignment Decision came from."""
    MODEL = "model"
    HEURISTIC_FALLBACK = "heuristic-fallback"
    SINGLE_CANDIDATE = "single-candidate"
    NO_CANDIDATES = "no-candidates"


class MergeRecommendation(str, Enum):
    MERGE = "Merge"
    KEEP_SEPARATE = "KeepSeparate"


class VerdictStatus(str, Enum):
    """How far a duplicate check got."""
    CHECKED = "checked"
    NO_CANDIDATES = "no-candidates"
    NOT_CHECKED = "not-checked"
    MODEL_UNAVAILABLE = "model-unavailable"
    DISABLED = "disabled"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accepts datetimes or ISO-8601 strings; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float
    address: Optional[str] = None

    @property
    def coordinates(self) -> LonLat:
        return (self.lon, self.lat)

    def is_valid(self) -> bool:
        return is_valid_coordinate(self.lat, self.lon)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[Location]:
        """
        Accepts {"lat", "lon"} or GeoJSON-style {"coordinates": [lon, lat]}.
        Returns None when no coordinates are given at all.
        """
        if not data:
            return None
        lat = data.get("lat")
        lon = data.get("lon", data.get("lng"))
        coords = data.get("coordinates")
        if (lat is None or lon is None) and isinstance(coords, (list, tuple)) and len(coords) == 2:
            lon, lat = coords
        if lat is None or lon is None:
            return None
        try:
            return cls(lat=float(lat), lon=float(lon), address=data.get("address"))
        except (TypeError, ValueError):
            return cls(lat=float("nan"), lon=float("nan"), address=data.get("address"))


@dataclass(frozen=True)
class WorkItem:
    """
    A ticket to assign or a report to deduplicate.
    Immutable for the duration of one decision.
    """
    id: str
    category: Optional[str] = None
    title: str = ""
    description: str = ""
    severity: Severity = Severity.MEDIUM
    location: Optional[Location] = None
    created_at: Optional[datetime] = None
    status: str = "pending"
    priority: int = 0

    def __post_init__(self):
        # Naive timestamps are taken as UTC so they compare with store rows
        object.__setattr__(self, "created_at", parse_timestamp(self.created_at))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WorkItem:
        severity = data.get("severity") or Severity.MEDIUM
        try:
            severity = Severity(str(getattr(severity, "value", severity)).lower())
        except ValueError:
            severity = Severity.MEDIUM
        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            category=data.get("category"),
            title=data.get("title") or "",
            description=data.get("description") or "",
            severity=severity,
            location=Location.from_dict(data.get("location")),
            created_at=parse_timestamp(data.get("created_at") or data.get("createdAt")),
            status=data.get("status") or "pending",
            priority=int(data.get("priority") or 0),
        )


@dataclass(frozen=True)
class Candidate:
    """
    A field worker at a specific point in time.
    skills=None means the skill set is unknown (the capability check is skipped).
    """
    id: str
    name: str = ""
    skills: Optional[Tuple[str, ...]] = ()
    active_tickets: int = 0
    max_capacity: int = 10
    location: Optional[Location] = None
    success_rate: Optional[float] = None
    average_resolution_hours: Optional[float] = None
    zone: Optional[str] = None
    is_available: bool = True
    status: str = "active"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Candidate:
        skills = data.get("skills")
        if skills is not None:
            skills = tuple(str(s) for s in skills)
        location = data.get("location") or data.get("current_location")
        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            name=data.get("name") or "",
            skills=skills,
            active_tickets=int(data.get("active_tickets") or 0),
            max_capacity=int(data.get("max_capacity") or 10),
            location=Location.from_dict(location),
            success_rate=_optional_float(data.get("success_rate")),
            average_resolution_hours=_optional_float(data.get("average_resolution_hours")),
            zone=data.get("zone"),
            is_available=bool(data.get("is_available", True)),
            status=data.get("status") or "active",
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    candidate: Candidate
    index: int
    skills_match: float
    proximity_score: float
    workload_score: float
    performance_score: float
    total: float
    distance_km: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_id": self.candidate.id,
            "index": self.index,
            "skillsMatch": round(self.skills_match, 4),
            "proximityScore": round(self.proximity_score, 4),
            "workloadScore": round(self.workload_score, 4),
            "performanceScore": round(self.performance_score, 4),
            "total": round(self.total, 4),
            "distance_km": None if self.distance_km is None else round(self.distance_km, 3),
        }


@dataclass
class Decision:
    candidate: Optional[Candidate]
    confidence: float
    rationale: str
    provenance: Provenance
    scores: List[ScoreBreakdown] = field(default_factory=list)
    factors: Dict[str, float] = field(default_factory=dict)
    model_scores: List[Dict[str, Any]] = field(default_factory=list)
    failure: Optional[str] = None
    ticket_id: Optional[str] = None

    @property
    def model_consulted(self) -> bool:
        return self.provenance in (Provenance.MODEL, Provenance.HEURISTIC_FALLBACK)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "candidate_id": self.candidate.id if self.candidate else None,
            "candidate_name": self.candidate.name if self.candidate else None,
            "confidence": round(self.confidence, 4),
            "rationale": self.rationale,
            "provenance": self.provenance.value,
            "scores": [s.to_dict() for s in self.scores],
            "factors": self.factors,
            "model_scores": self.model_scores,
            "failure": self.failure,
        }


@dataclass
class DuplicateAnalysis:
    """One model comparison of the new report against one existing report."""
    existing_report_id: str
    is_duplicate: bool
    confidence: float
    recommendation: MergeRecommendation
    rationale: str
    ok: bool = True
    distance_m: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "existing_report_id": self.existing_report_id,
            "is_duplicate": self.is_duplicate,
            "confidence_score": round(self.confidence, 4),
            "merge_recommendation": self.recommendation.value,
            "rationale": self.rationale,
            "ok": self.ok,
            "distance_m": None if self.distance_m is None else round(self.distance_m, 2),
        }


@dataclass
class DuplicateVerdict:
    is_duplicate: bool
    confidence: float
    recommendation: MergeRecommendation
    rationale: str
    status: VerdictStatus
    duplicate_of: Optional[str] = None
    candidates_checked: int = 0
    analyses: List[DuplicateAnalysis] = field(default_factory=list)
    processing_time_ms: int = 0
    report_id: Optional[str] = None

    @property
    def model_consulted(self) -> bool:
        return bool(self.analyses)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "is_duplicate": self.is_duplicate,
            "confidence_score": round(self.confidence, 4),
            "merge_recommendation": self.recommendation.value,
            "rationale": self.rationale,
            "duplicate_of": self.duplicate_of,
            "status": self.status.value,
            "candidates_checked": self.candidates_checked,
            "all_matches": [a.to_dict() for a in self.analyses],
            "processing_time_ms": self.processing_time_ms,
        }
