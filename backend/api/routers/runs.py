"""
Run router: background cluster, audit and learn runs.

Endpoints:
  POST /runs           Start a cluster or audit run (202)
  POST /runs/learn     Learn a rule from two confirmed duplicates (202)
  GET  /runs/{run_id}  Progress, then result or error

A run reads an immutable snapshot of the session and of the rule set
taken when it starts; persisting a rule afterwards never affects it.
"""
from fastapi import APIRouter, Depends, Query

from mizan.blocking import validate_blocking_keys
from mizan.worker import RunKind

from ..cache import SessionCache
from ..dependencies import get_rule_store, get_run_manager, get_session_cache
from ..middleware.error_handler import NotFoundError
from ..models.resolution import LearnCreate, RunCreate, RunResponse
from ..services.rule_store import RuleStore
from ..services.run_manager import RunManager, RunState
from .sessions import load_session

router = APIRouter(prefix="/runs", tags=["runs"])


def _response(state: RunState) -> RunResponse:
    return RunResponse(
        run_id=state.run_id,
        kind=state.kind,
        session_id=state.session_id,
        status=state.status,
        progress=state.progress,
        result=state.result,
        error=state.error,
        created_at=state.created_at,
        finished_at=state.finished_at,
    )


@router.post("", response_model=RunResponse, status_code=202)
def start_run(
    body: RunCreate,
    sessions: SessionCache = Depends(get_session_cache),
    rules: RuleStore = Depends(get_rule_store),
    runs: RunManager = Depends(get_run_manager),
):
    """Start clustering or auditing a session."""
    snapshot = load_session(body.session_id, sessions)
    validate_blocking_keys(body.blocking_keys)
    state = runs.start(
        RunKind(body.kind),
        snapshot,
        rules.rule_set(),
        blocking_keys=tuple(body.blocking_keys),
    )
    return _response(state)


@router.post("/learn", response_model=RunResponse, status_code=202)
def start_learn_run(
    body: LearnCreate,
    sessions: SessionCache = Depends(get_session_cache),
    rules: RuleStore = Depends(get_rule_store),
    runs: RunManager = Depends(get_run_manager),
):
    """
    Learn a rule from two records a reviewer confirmed as duplicates.

    The learned rule comes back as the run result. It is not stored;
    POST it to /rules to make it part of future runs.
    """
    snapshot = load_session(body.session_id, sessions)
    state = runs.start(RunKind.LEARN, snapshot, rules.rule_set(), record_ids=tuple(body.record_ids))
    return _response(state)


@router.get("/{run_id}", response_model=RunResponse)
def get_run(
    run_id: str,
    wait: float = Query(0.0, ge=0.0, le=30.0, description="Seconds to wait for completion"),
    runs: RunManager = Depends(get_run_manager),
):
    """Poll a run. Results of runs nobody polls expire after the run TTL."""
    state = runs.status(run_id, wait=wait)
    if state is None:
        raise NotFoundError(f"Run '{run_id}' not found or expired", {"run_id": run_id})
    return _response(state)
