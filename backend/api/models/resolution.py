"""Pydantic models for session, run and pairwise endpoints."""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional

from ..config.constants import MAX_PAIRWISE_RECORDS, MAX_UPLOAD_ROWS


class SessionCreate(BaseModel):
    """Mapped upload of beneficiary rows."""

    rows: List[Dict[str, Any]] = Field(
        ..., max_length=MAX_UPLOAD_ROWS, description="Uploaded rows, one dict per spreadsheet row"
    )
    mapping: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Logical field to source column (womanName/woman_name, husbandName, "
                    "nationalId, phone, village, subdistrict, children, beneficiaryId)",
    )
    id_column: Optional[str] = Field(
        None, description="Column holding a stable row id; R1, R2, ... when omitted"
    )


class SessionResponse(BaseModel):
    """Stored session summary."""

    session_id: str = Field(..., description="Opaque session id")
    record_count: int = Field(..., description="Number of stored records")
    columns: List[str] = Field(..., description="Source columns seen in the upload")
    mapping: Dict[str, Optional[str]] = Field(..., description="Normalized field mapping")
    missing_fields: List[str] = Field(
        ..., description="Required fields without a usable column; runs will fail until fixed"
    )
    created_at: str = Field(..., description="When the session was stored (UTC)")


class RunCreate(BaseModel):
    """Start a cluster or audit run."""

    session_id: str = Field(..., description="Session to run against")
    kind: Literal["cluster", "audit"] = Field(..., description="Run kind")
    blocking_keys: List[str] = Field(
        default_factory=list,
        description="Blocking strategies for large uploads (village, subdistrict, phone, "
                    "national_id, name_skeleton)",
    )


class LearnCreate(BaseModel):
    """Learn a rule from two records confirmed as duplicates."""

    session_id: str = Field(..., description="Session holding the records")
    record_ids: List[str] = Field(
        ..., min_length=2, max_length=2, description="Exactly two record ids"
    )


class RunResponse(BaseModel):
    """Run progress and, once finished, its result or error."""

    run_id: str
    kind: str
    session_id: str
    status: Literal["running", "done", "error"]
    progress: int = Field(..., ge=0, le=100, description="Percent complete")
    result: Optional[Any] = Field(None, description="Done payload: clusters, findings or a rule")
    error: Optional[Dict[str, Any]] = Field(None, description="Error code, message and details")
    created_at: str
    finished_at: Optional[str] = None


class PairwiseRequest(BaseModel):
    """Records to compare against each other."""

    session_id: str = Field(..., description="Session holding the records")
    record_ids: List[str] = Field(
        ..., min_length=2, max_length=MAX_PAIRWISE_RECORDS, description="Record ids to compare"
    )


class PairwiseResponse(BaseModel):
    """Full pairwise score breakdown, highest aggregate first."""

    record_ids: List[str]
    pairs: List[Dict[str, Any]]
