import logging
from typing import Any, Optional, Sequence

from .candidate_filter import filter_candidates
from .config import Settings, load_settings
from .llm_gateway import ModelGateway
from .models import Candidate, Decision, Provenance, WorkItem
from .prompts import build_assignment_prompt
from .scoring import score_candidates
from .validation import validate_assignment_output

logger = logging.getLogger("civic_agent.assignment")

SINGLE_CANDIDATE_CONFIDENCE = 0.95
ASSIGNMENT_TEMPERATURE = 0.3
ASSIGNMENT_TOP_P = 0.9


def recommend_assignment(
    ticket: WorkItem,
    pool: Sequence[Candidate],
    gateway: Any = None,
    settings: Optional[Settings] = None,
) -> Decision:
    """
    Start -> Filtered -> {Empty, Single, Many}.

    Empty returns no candidate. Single accepts the only eligible worker
    without calling the model. Many asks the model and falls back to the
    heuristic top pick when the call or its validation fails.

    gateway is anything with ModelGateway.generate()'s signature.
    """
    settings = settings or load_settings()
    candidates = filter_candidates(ticket, pool, settings.max_distance_km)
    scores = score_candidates(ticket, candidates, settings.max_distance_km)

    # -------- Empty --------
    if not candidates:
        logger.info("ticket %s: no eligible candidates out of %d", ticket.id, len(pool))
        return Decision(
            candidate=None,
            confidence=0.0,
            rationale="No suitable inspectors available",
            provenance=Provenance.NO_CANDIDATES,
            ticket_id=ticket.id,
        )

    # -------- Single --------
    if len(candidates) == 1:
        return Decision(
            candidate=candidates[0],
            confidence=SINGLE_CANDIDATE_CONFIDENCE,
            rationale="Only available inspector matching criteria",
            provenance=Provenance.SINGLE_CANDIDATE,
            scores=scores,
            ticket_id=ticket.id,
        )

    # -------- Many --------
    gateway = gateway or ModelGateway(settings)
    prompt = build_assignment_prompt(ticket, candidates, settings.max_distance_km)
    response = gateway.generate(
        prompt,
        model=settings.model,
        temperature=ASSIGNMENT_TEMPERATURE,
        top_p=ASSIGNMENT_TOP_P,
    )

    if not response.success:
        return _fallback(ticket, scores, f"model unavailable: {response.error}")

    result = validate_assignment_output(response.text, len(candidates))
    if not result.ok:
        return _fallback(ticket, scores, f"invalid model output: {result.reason}")

    out = result.value
    model_scores = [
        {"candidate_id": candidates[s["index"]].id, **s}
        for s in out.all_scores
    ]
    return Decision(
        candidate=candidates[out.index],
        confidence=out.confidence,
        rationale=out.reason,
        provenance=Provenance.MODEL,
        scores=scores,
        factors=out.factors,
        model_scores=model_scores,
        ticket_id=ticket.id,
    )


def _fallback(ticket: WorkItem, scores, failure: str) -> Decision:
    logger.warning("ticket %s: falling back to heuristic scoring (%s)", ticket.id, failure)
    top = scores[0]
    return Decision(
        candidate=top.candidate,
        confidence=top.total,
        rationale="Heuristic-based assignment (AI unavailable)",
        provenance=Provenance.HEURISTIC_FALLBACK,
        scores=scores,
        failure=failure,
        ticket_id=ticket.id,
    )
