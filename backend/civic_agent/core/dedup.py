import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from .config import Settings, load_settings
from .dedup_search import find_duplicate_candidates, order_by_distance
from .llm_gateway import ModelGateway
from .models import (
    DuplicateAnalysis,
    DuplicateVerdict,
    MergeRecommendation,
    VerdictStatus,
    WorkItem,
    parse_timestamp,
)
from .prompts import build_duplicate_prompt
from .validation import validate_duplicate_output

logger = logging.getLogger("civic_agent.dedup")

# Low temperature for consistent similarity judgements
DEDUP_TEMPERATURE = 0.2
DEDUP_TOP_P = 0.9


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _keep_separate(status: VerdictStatus, rationale: str, **kwargs) -> DuplicateVerdict:
    return DuplicateVerdict(
        is_duplicate=False,
        confidence=0.0,
        recommendation=MergeRecommendation.KEEP_SEPARATE,
        rationale=rationale,
        status=status,
        **kwargs,
    )


def analyze_pair(
    new: WorkItem,
    existing: WorkItem,
    gateway: Any,
    settings: Settings,
    now: Optional[datetime] = None,
    distance_m: Optional[float] = None,
) -> DuplicateAnalysis:
    """
    Asks the model whether new duplicates existing. Gateway and validation
    failures come back as a safe not-duplicate analysis with ok=False.
    """
    prompt = build_duplicate_prompt(
        existing,
        new,
        radius_m=settings.duplicate_radius_m,
        window_hours=settings.duplicate_window_hours,
        now=now,
    )
    response = gateway.generate(prompt, model=settings.model, temperature=DEDUP_TEMPERATURE, top_p=DEDUP_TOP_P)

    if response.success:
        result = validate_duplicate_output(response.text)
        if result.ok:
            out = result.value
            return DuplicateAnalysis(
                existing_report_id=existing.id,
                is_duplicate=out.is_duplicate,
                confidence=out.confidence,
                recommendation=out.recommendation,
                rationale=out.rationale,
                distance_m=distance_m,
            )
        failure = f"invalid model output: {result.reason}"
    else:
        failure = f"model unavailable: {response.error}"

    logger.warning("report %s vs %s: semantic analysis failed (%s)", new.id, existing.id, failure)
    return DuplicateAnalysis(
        existing_report_id=existing.id,
        is_duplicate=False,
        confidence=0.0,
        recommendation=MergeRecommendation.KEEP_SEPARATE,
        rationale="Analysis failed - manual review recommended",
        ok=False,
        distance_m=distance_m,
    )


def check_duplicate(
    report: WorkItem,
    candidates: Optional[Sequence[WorkItem]] = None,
    gateway: Any = None,
    store: Any = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> DuplicateVerdict:
    """
    Decides whether report duplicates one of candidates. When candidates is
    None they are looked up in store (nearby, recent, active reports).

    Candidates are analyzed in order and the loop stops at the first
    duplicate whose confidence reaches the threshold. Otherwise the analysis
    with the highest confidence (earliest on ties) is returned.
    """
    settings = settings or load_settings()
    now = parse_timestamp(now)
    start = time.monotonic()

    if not settings.deduplication_enabled:
        return _keep_separate(VerdictStatus.DISABLED, "Deduplication is disabled", report_id=report.id)

    if candidates is None:
        if report.location is None or not report.location.is_valid():
            return _keep_separate(
                VerdictStatus.NOT_CHECKED,
                "No usable location on report, duplicate check not attempted",
                report_id=report.id,
                processing_time_ms=_elapsed_ms(start),
            )
        if store is None:
            return _keep_separate(
                VerdictStatus.NOT_CHECKED,
                "No report store to search, duplicate check not attempted",
                report_id=report.id,
                processing_time_ms=_elapsed_ms(start),
            )
        candidates = find_duplicate_candidates(report, store, settings, now=now)

    candidates = [c for c in candidates if not (report.id and c.id == report.id)]
    if not candidates:
        return _keep_separate(
            VerdictStatus.NO_CANDIDATES,
            "No nearby reports found within proximity radius",
            report_id=report.id,
            processing_time_ms=_elapsed_ms(start),
        )

    if settings.duplicate_sort_by_distance:
        ordered = order_by_distance(report, candidates)
    else:
        ordered = [(c, None) for c in candidates]

    logger.info("report %s: analyzing %d nearby report(s)", report.id, len(ordered))
    gateway = gateway or ModelGateway(settings)

    analyses: List[DuplicateAnalysis] = []
    for existing, distance_m in ordered:
        analysis = analyze_pair(report, existing, gateway, settings, now=now, distance_m=distance_m)
        analyses.append(analysis)
        if analysis.ok and analysis.is_duplicate and analysis.confidence >= settings.duplicate_threshold:
            break

    if not any(a.ok for a in analyses):
        return _keep_separate(
            VerdictStatus.MODEL_UNAVAILABLE,
            "Insufficient evidence, keep separate: semantic analysis failed for every nearby report",
            report_id=report.id,
            candidates_checked=len(ordered),
            analyses=analyses,
            processing_time_ms=_elapsed_ms(start),
        )

    best = analyses[0]
    for a in analyses[1:]:
        if a.confidence > best.confidence:
            best = a

    return DuplicateVerdict(
        is_duplicate=best.is_duplicate,
        confidence=best.confidence,
        recommendation=best.recommendation,
        rationale=best.rationale,
        status=VerdictStatus.CHECKED,
        duplicate_of=best.existing_report_id if best.is_duplicate else None,
        candidates_checked=len(ordered),
        analyses=analyses,
        processing_time_ms=_elapsed_ms(start),
        report_id=report.id,
    )


def compare_reports(
    report_a: WorkItem,
    report_b: WorkItem,
    gateway: Any = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> DuplicateVerdict:
    """Checks report_a against report_b only, skipping the nearby search."""
    return check_duplicate(report_a, [report_b], gateway=gateway, settings=settings, now=now)


def scan_for_duplicates(
    store: Any,
    gateway: Any = None,
    settings: Optional[Settings] = None,
    limit: int = 100,
    category: Optional[str] = None,
    statuses: Sequence[str] = ("pending", "in-progress"),
    since: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Audits recent reports in store and returns the duplicate pairs found.
    Runs sequentially; each report gets a full check_duplicate.
    """
    settings = settings or load_settings()
    gateway = gateway or ModelGateway(settings)
    reports = store.list_reports(statuses, category=category, since=since, limit=limit)
    logger.info("scanning %d report(s) for duplicates", len(reports))

    pairs = []
    for i, report in enumerate(reports):
        verdict = check_duplicate(report, gateway=gateway, store=store, settings=settings, now=now)
        if verdict.is_duplicate and verdict.duplicate_of:
            pairs.append({
                "new_report": report.id,
                "existing_report": verdict.duplicate_of,
                "confidence": round(verdict.confidence, 4),
                "rationale": verdict.rationale,
            })
        if (i + 1) % 10 == 0:
            logger.info("scan progress: %d/%d reports checked", i + 1, len(reports))

    return {
        "total_scanned": len(reports),
        "duplicates_found": len(pairs),
        "duplicate_pairs": pairs,
    }


def default_scan_since(days: int = 30, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)
