# Pydantic models for API request/response
from .resolution import (
    SessionCreate,
    SessionResponse,
    RunCreate,
    LearnCreate,
    RunResponse,
    PairwiseRequest,
    PairwiseResponse,
)
from .rule import ClauseModel, RuleIn, RuleOut, RuleListResponse

__all__ = [
    "SessionCreate",
    "SessionResponse",
    "RunCreate",
    "LearnCreate",
    "RunResponse",
    "PairwiseRequest",
    "PairwiseResponse",
    "ClauseModel",
    "RuleIn",
    "RuleOut",
    "RuleListResponse",
]
