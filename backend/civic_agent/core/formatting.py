from .models import Decision, DuplicateVerdict


def format_decision(decision: Decision) -> str:
    worker = "none"
    if decision.candidate is not None:
        worker = decision.candidate.name or decision.candidate.id
    return (
        "Assignment:\n"
        f"- Inspector: {worker}\n"
        f"- Confidence: {decision.confidence:.2f}\n"
        f"- Source: {decision.provenance.value}\n"
        f"- Reason: {decision.rationale}\n"
    )


def format_verdict(verdict: DuplicateVerdict) -> str:
    return (
        "Duplicate check:\n"
        f"- Duplicate: {'yes' if verdict.is_duplicate else 'no'}"
        f"{f' (of {verdict.duplicate_of})' if verdict.duplicate_of else ''}\n"
        f"- Recommendation: {verdict.recommendation.value}\n"
        f"- Confidence: {verdict.confidence:.2f}\n"
        f"- Status: {verdict.status.value}\n"
        f"- Rationale: {verdict.rationale}\n"
    )
