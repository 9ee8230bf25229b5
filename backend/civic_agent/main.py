import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from pydantic import BaseModel, Field

from .core.batch import batch_check_duplicates, batch_recommend
from .core.config import Settings, get_env, load_settings
from .core.decision import recommend_assignment
from .core.dedup import check_duplicate, compare_reports, default_scan_since, scan_for_duplicates
from .core.dedup_search import InMemoryReportStore
from .core.formatting import format_decision, format_verdict
from .core.llm_gateway import ModelGateway
from .core.models import Candidate, WorkItem
from .core.supabase_client import SupabaseReportStore

logging.basicConfig(level=(get_env("LOG_LEVEL") or "INFO").upper())
logger = logging.getLogger("civic_agent")

app = FastAPI(title="Civic Dispatch Agent")


# --- Dependencies ---

def get_settings() -> Settings:
    return load_settings()


def get_gateway(settings: Settings = Depends(get_settings)) -> ModelGateway:
    return ModelGateway(settings)


def get_report_store():
    if get_env("SUPABASE_URL"):
        return SupabaseReportStore()
    return InMemoryReportStore()


# --- Middleware ---

@app.middleware("http")
async def structured_logging_middleware(request: Request, call_next):
    trace_id = str(uuid.uuid4())
    start_time = time.time()
    response = await call_next(request)
    logger.info(json.dumps({
        "trace_id": trace_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "latency_ms": round((time.time() - start_time) * 1000, 2),
    }))
    return response


# --- Schemas ---

class LocationIn(BaseModel):
    lat: float
    lon: float
    address: Optional[str] = None


class TicketIn(BaseModel):
    id: str
    category: Optional[str] = None
    title: str = ""
    description: str = ""
    severity: str = "medium"
    priority: int = 0
    status: str = "pending"
    location: Optional[LocationIn] = None
    created_at: Optional[str] = None


class CandidateIn(BaseModel):
    id: str
    name: str = ""
    skills: Optional[List[str]] = Field(default_factory=list)
    active_tickets: int = 0
    max_capacity: int = 10
    location: Optional[LocationIn] = None
    success_rate: Optional[float] = None
    average_resolution_hours: Optional[float] = None
    zone: Optional[str] = None
    is_available: bool = True
    status: str = "active"


class AssignRequest(BaseModel):
    ticket: TicketIn
    pool: List[CandidateIn]


class BatchAssignRequest(BaseModel):
    tickets: List[TicketIn]
    pool: List[CandidateIn]


class DuplicateCheckRequest(BaseModel):
    report: TicketIn
    candidates: Optional[List[TicketIn]] = None


class CompareRequest(BaseModel):
    report_a: TicketIn
    report_b: TicketIn


class BatchDuplicateRequest(BaseModel):
    reports: List[TicketIn]


def _work_item(payload: TicketIn) -> WorkItem:
    return WorkItem.from_dict(payload.model_dump())


def _candidate(payload: CandidateIn) -> Candidate:
    return Candidate.from_dict(payload.model_dump())


def _ok(response: Dict[str, Any]) -> Dict[str, Any]:
    return {"status": "ok", "error": None, "response": response}


def _error(message: str) -> Dict[str, Any]:
    logger.error(message)
    return {"status": "error", "error": message, "response": None}


# --- Endpoints ---

@app.get("/api/health")
def health(gateway: ModelGateway = Depends(get_gateway)):
    return {"status": "ok", "model": gateway.health_check()}


@app.get("/api/agent_info")
def agent_info():
    return {
        "description": (
            "Decision core for civic complaints: recommends a field inspector for a ticket "
            "and detects duplicate reports, with a deterministic fallback when the model fails."
        ),
        "modules": [
            "CandidateFilter",
            "HeuristicScorer",
            "PromptBuilder",
            "ModelGateway",
            "ResponseValidator",
            "DecisionGate",
            "DuplicateCandidateSearch",
            "DuplicateSemanticAnalyzer",
            "BatchOrchestrator",
        ],
    }


@app.post("/api/assign")
def assign(req: AssignRequest, gateway=Depends(get_gateway), settings: Settings = Depends(get_settings)):
    try:
        decision = recommend_assignment(
            _work_item(req.ticket),
            [_candidate(c) for c in req.pool],
            gateway=gateway,
            settings=settings,
        )
        return _ok({**decision.to_dict(), "text": format_decision(decision)})
    except Exception as e:
        return _error(f"Assignment failed: {str(e)}")


@app.post("/api/assign/batch")
def assign_batch(req: BatchAssignRequest, gateway=Depends(get_gateway), settings: Settings = Depends(get_settings)):
    try:
        result = batch_recommend(
            [_work_item(t) for t in req.tickets],
            [_candidate(c) for c in req.pool],
            gateway=gateway,
            settings=settings,
        )
        return _ok(result.to_dict())
    except Exception as e:
        return _error(f"Batch assignment failed: {str(e)}")


@app.post("/api/duplicates/check")
def duplicates_check(
    req: DuplicateCheckRequest,
    gateway=Depends(get_gateway),
    store=Depends(get_report_store),
    settings: Settings = Depends(get_settings),
):
    try:
        candidates = None
        if req.candidates is not None:
            candidates = [_work_item(c) for c in req.candidates]
        verdict = check_duplicate(
            _work_item(req.report),
            candidates,
            gateway=gateway,
            store=store,
            settings=settings,
        )
        return _ok({**verdict.to_dict(), "text": format_verdict(verdict)})
    except Exception as e:
        return _error(f"Duplicate check failed: {str(e)}")


@app.post("/api/duplicates/compare")
def duplicates_compare(req: CompareRequest, gateway=Depends(get_gateway), settings: Settings = Depends(get_settings)):
    try:
        verdict = compare_reports(_work_item(req.report_a), _work_item(req.report_b), gateway=gateway, settings=settings)
        return _ok({**verdict.to_dict(), "text": format_verdict(verdict)})
    except Exception as e:
        return _error(f"Comparison failed: {str(e)}")


@app.post("/api/duplicates/batch")
def duplicates_batch(
    req: BatchDuplicateRequest,
    gateway=Depends(get_gateway),
    store=Depends(get_report_store),
    settings: Settings = Depends(get_settings),
):
    try:
        result = batch_check_duplicates(
            [_work_item(r) for r in req.reports],
            store=store,
            gateway=gateway,
            settings=settings,
        )
        return _ok(result.to_dict())
    except Exception as e:
        return _error(f"Batch duplicate check failed: {str(e)}")


@app.get("/api/duplicates/scan")
def duplicates_scan(
    limit: int = 100,
    category: Optional[str] = None,
    days: int = 30,
    gateway=Depends(get_gateway),
    store=Depends(get_report_store),
    settings: Settings = Depends(get_settings),
):
    try:
        result = scan_for_duplicates(
            store,
            gateway=gateway,
            settings=settings,
            limit=limit,
            category=category,
            since=default_scan_since(days),
        )
        return _ok(result)
    except Exception as e:
        return _error(f"Duplicate scan failed: {str(e)}")
