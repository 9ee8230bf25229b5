"""
Sequential batch drivers for assignment and deduplication.

Items are processed one at a time, never concurrently, with a fixed pause
before an item whenever the previous one called the model. A failure on one
item is recorded on its BatchItem and the batch carries on.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import Settings, load_settings
from .decision import recommend_assignment
from .dedup import check_duplicate
from .llm_gateway import ModelGateway
from .models import Candidate, MergeRecommendation, WorkItem

logger = logging.getLogger("civic_agent.batch")

HIGH_CONFIDENCE = 0.90
MEDIUM_CONFIDENCE = 0.70


@dataclass
class BatchItem:
    item_id: str
    result: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        body = self.result.to_dict() if self.result is not None else {}
        return {"item_id": self.item_id, "ok": self.ok, "error": self.error, **body}


@dataclass
class BatchResult:
    items: List[BatchItem] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"results": [i.to_dict() for i in self.items], "statistics": self.stats}


def confidence_bucket(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def summarize(items: Sequence[BatchItem], kind: str) -> Dict[str, Any]:
    """
    kind is "assignment" or "deduplication". Confidence figures only cover
    items that produced a result.
    """
    done = [i.result for i in items if i.ok and i.result is not None]
    histogram = {"high": 0, "medium": 0, "low": 0}
    for r in done:
        histogram[confidence_bucket(r.confidence)] += 1

    total = len(items)
    stats: Dict[str, Any] = {
        "total": total,
        "succeeded": len(done),
        "failed": total - len(done),
        "confidence_distribution": histogram,
        "average_confidence": round(sum(r.confidence for r in done) / len(done), 4) if done else 0.0,
    }

    if kind == "assignment":
        assigned = sum(1 for r in done if r.candidate is not None)
        stats["assigned"] = assigned
        stats["assignment_rate"] = round(assigned / total, 4) if total else 0.0
        by_provenance: Dict[str, int] = {}
        for r in done:
            by_provenance[r.provenance.value] = by_provenance.get(r.provenance.value, 0) + 1
        stats["by_provenance"] = by_provenance
    else:
        duplicates = sum(1 for r in done if r.is_duplicate)
        stats["duplicates_found"] = duplicates
        stats["duplicate_rate"] = round(duplicates / total, 4) if total else 0.0
        stats["merge_recommended"] = sum(1 for r in done if r.recommendation == MergeRecommendation.MERGE)
        by_status: Dict[str, int] = {}
        for r in done:
            by_status[r.status.value] = by_status.get(r.status.value, 0) + 1
        stats["by_status"] = by_status

    return stats


def batch_recommend(
    tickets: Sequence[WorkItem],
    pool: Sequence[Candidate],
    gateway: Any = None,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchResult:
    """
    Recommends a worker for every ticket in turn. Each assignment bumps the
    chosen worker's load in a batch-local copy of the pool, so later tickets
    see it; the caller's pool is not modified.
    """
    settings = settings or load_settings()
    gateway = gateway or ModelGateway(settings)
    local_pool = list(pool)

    items: List[BatchItem] = []
    previous_called_model = False
    for n, ticket in enumerate(tickets, start=1):
        if previous_called_model and settings.batch_delay_seconds > 0:
            sleep(settings.batch_delay_seconds)
        logger.info("assigning ticket %d/%d (%s)", n, len(tickets), ticket.id)
        try:
            decision = recommend_assignment(ticket, local_pool, gateway=gateway, settings=settings)
        except Exception as e:
            logger.error("ticket %s failed: %s", ticket.id, e)
            items.append(BatchItem(item_id=ticket.id, error=str(e)))
            previous_called_model = False
            continue

        items.append(BatchItem(item_id=ticket.id, result=decision))
        previous_called_model = decision.model_consulted
        if decision.candidate is not None:
            local_pool = [
                replace(c, active_tickets=c.active_tickets + 1) if c.id == decision.candidate.id else c
                for c in local_pool
            ]

    return BatchResult(items=items, stats=summarize(items, "assignment"))


def batch_check_duplicates(
    reports: Sequence[WorkItem],
    store: Any = None,
    gateway: Any = None,
    settings: Optional[Settings] = None,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[datetime] = None,
) -> BatchResult:
    """Runs check_duplicate for every report in turn against store."""
    settings = settings or load_settings()
    gateway = gateway or ModelGateway(settings)

    items: List[BatchItem] = []
    previous_called_model = False
    for n, report in enumerate(reports, start=1):
        if previous_called_model and settings.batch_delay_seconds > 0:
            sleep(settings.batch_delay_seconds)
        logger.info("checking report %d/%d (%s) for duplicates", n, len(reports), report.id)
        try:
            verdict = check_duplicate(report, gateway=gateway, store=store, settings=settings, now=now)
        except Exception as e:
            logger.error("report %s failed: %s", report.id, e)
            items.append(BatchItem(item_id=report.id, error=str(e)))
            previous_called_model = False
            continue

        items.append(BatchItem(item_id=report.id, result=verdict))
        previous_called_model = verdict.model_consulted

    return BatchResult(items=items, stats=summarize(items, "deduplication"))
