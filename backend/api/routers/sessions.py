"""
Session router: mapped uploads.

Endpoints:
  POST /sessions              Store uploaded rows and their field mapping
  GET  /sessions/{session_id} Summary of a stored session
"""
import uuid

import structlog
from fastapi import APIRouter, Depends

from mizan.preprocess import FieldMapping, build_raw_records

from ..cache import SessionCache, SessionSnapshot
from ..dependencies import get_session_cache
from ..middleware.error_handler import NotFoundError
from ..models.resolution import SessionCreate, SessionResponse

logger = structlog.get_logger("mizan.api.sessions")

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _summary(snapshot: SessionSnapshot) -> SessionResponse:
    columns = snapshot.columns()
    return SessionResponse(
        session_id=snapshot.session_id,
        record_count=len(snapshot.records),
        columns=columns,
        mapping=snapshot.mapping.to_dict(),
        missing_fields=snapshot.mapping.missing_fields(columns if snapshot.records else None),
        created_at=snapshot.created_at,
    )


def load_session(session_id: str, sessions: SessionCache) -> SessionSnapshot:
    """Snapshot for a session id, or NotFoundError."""
    snapshot = sessions.get(session_id)
    if snapshot is None:
        raise NotFoundError(f"Session '{session_id}' not found or expired", {"session_id": session_id})
    return snapshot


@router.post("", response_model=SessionResponse, status_code=201)
def create_session(body: SessionCreate, sessions: SessionCache = Depends(get_session_cache)):
    """
    Store an upload. The mapping is checked when a run starts, not here,
    so the response lists any required field still missing a column.
    """
    session_id = uuid.uuid4().hex
    snapshot = SessionSnapshot(
        session_id=session_id,
        records=tuple(build_raw_records(body.rows, id_column=body.id_column)),
        mapping=FieldMapping.from_dict(body.mapping),
    )
    sessions.put(session_id, snapshot)
    logger.info("session_created", session_id=session_id, records=len(snapshot.records))
    return _summary(snapshot)


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, sessions: SessionCache = Depends(get_session_cache)):
    """Summary of a stored session."""
    return _summary(load_session(session_id, sessions))
