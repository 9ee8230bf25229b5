"""
Parse-then-validate for free-text model output.

The model may wrap its JSON in prose or code fences, so we locate the first
balanced {...} object ourselves. Every function here returns Ok(value) or
Err(reason) and never raises, so callers reach the fallback path by checking
the result rather than by catching exceptions.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from .models import MergeRecommendation

T = TypeVar("T")

DEFAULT_CONFIDENCE = 0.7
FACTOR_NAMES = ("skillsMatch", "proximityScore", "workloadScore", "performanceScore")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    reason: str
    ok: bool = False


Result = Union[Ok, Err]


@dataclass(frozen=True)
class AssignmentOutput:
    index: int
    confidence: float
    reason: str
    factors: Dict[str, float] = field(default_factory=dict)
    all_scores: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicateOutput:
    is_duplicate: bool
    confidence: float
    recommendation: MergeRecommendation
    rationale: str


def extract_json_object(text: Optional[str]) -> Result:
    """Finds and decodes the first balanced top-level {...} in text."""
    if not isinstance(text, str) or not text.strip():
        return Err("empty model response")

    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end is None:
            start = text.find("{", start + 1)
            continue
        try:
            value = json.loads(text[start:end + 1])
        except ValueError:
            # Braces in prose before the real payload; try the next one.
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return Ok(value)
        start = text.find("{", end + 1)
    return Err("no JSON object found in model response")


def _balanced_end(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def coerce_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    """Numeric values are clamped to [0, 1]; missing, NaN or junk gives the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        f = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(f):
        return default
    return max(0.0, min(1.0, f))


def coerce_index(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("true", "yes"):
            return True
        if v in ("false", "no"):
            return False
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return None


def normalize_recommendation(value: Any) -> MergeRecommendation:
    if isinstance(value, str):
        v = value.replace(" ", "").replace("_", "").lower()
        if v == "merge":
            return MergeRecommendation.MERGE
    return MergeRecommendation.KEEP_SEPARATE


def validate_assignment_output(text: Optional[str], candidate_count: int) -> Result:
    """
    Validates an assignment answer against a candidate list of the given size.
    An index outside [0, candidate_count - 1] is an Err, never repaired.
    """
    parsed = extract_json_object(text)
    if not parsed.ok:
        return parsed
    out = parsed.value

    raw_index = out.get("recommendedIndex", out.get("recommendedInspectorId"))
    if raw_index is None:
        return Err("missing recommendedIndex")
    index = coerce_index(raw_index)
    if index is None:
        return Err(f"recommendedIndex is not an integer: {raw_index!r}")
    if index < 0 or index >= candidate_count:
        return Err(f"recommendedIndex {index} out of range 0..{candidate_count - 1}")

    factors: Dict[str, float] = {}
    raw_factors = out.get("factors")
    if isinstance(raw_factors, dict):
        for name in FACTOR_NAMES:
            if name in raw_factors:
                factors[name] = coerce_confidence(raw_factors[name], default=0.0)

    all_scores: List[Dict[str, Any]] = []
    raw_scores = out.get("allScores")
    if isinstance(raw_scores, list):
        for entry in raw_scores:
            if not isinstance(entry, dict):
                continue
            i = coerce_index(entry.get("index", entry.get("inspectorId")))
            if i is None or i < 0 or i >= candidate_count:
                continue
            all_scores.append({
                "index": i,
                "totalScore": coerce_confidence(entry.get("totalScore"), default=0.0),
                "reason": str(entry.get("reason") or ""),
            })

    reason = out.get("primaryReason")
    return Ok(AssignmentOutput(
        index=index,
        confidence=coerce_confidence(out.get("confidence")),
        reason=reason.strip() if isinstance(reason, str) and reason.strip() else "Best match based on criteria",
        factors=factors,
        all_scores=all_scores,
    ))


def validate_duplicate_output(text: Optional[str]) -> Result:
    parsed = extract_json_object(text)
    if not parsed.ok:
        return parsed
    out = parsed.value

    if "is_duplicate" not in out:
        return Err("missing required field: is_duplicate")
    is_duplicate = coerce_bool(out["is_duplicate"])
    if is_duplicate is None:
        return Err(f"is_duplicate is not a boolean: {out['is_duplicate']!r}")

    rationale = out.get("rationale")
    return Ok(DuplicateOutput(
        is_duplicate=is_duplicate,
        confidence=coerce_confidence(out.get("confidence_score")),
        recommendation=normalize_recommendation(out.get("merge_recommendation")),
        rationale=rationale.strip() if isinstance(rationale, str) and rationale.strip() else "No rationale provided",
    ))
