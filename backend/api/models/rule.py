"""Pydantic models for rule endpoints."""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional


class ClauseModel(BaseModel):
    """One {field, operator, threshold} comparison."""

    field: str = Field(..., description="PairScore component, e.g. family_name_score")
    operator: Literal[">=", ">", "<=", "<", "=="] = Field(..., description="Comparison operator")
    threshold: float = Field(..., description="Value the component is compared against")


class RuleIn(BaseModel):
    """A confirmed rule to append to the store."""

    id: str = Field(..., min_length=1, description="Unique rule id")
    name: str = Field("", description="Short human-readable name")
    clauses: List[ClauseModel] = Field(default_factory=list, description="All must hold")
    any_of: List[ClauseModel] = Field(default_factory=list, description="At least one must hold")
    generated_at: Optional[str] = Field(None, description="When the rule was learned (ISO-8601)")
    source: str = Field("learned", description="learned or builtin")


class RuleOut(RuleIn):
    """Stored rule with its rendered predicate."""

    description: str = Field(..., description="Predicate as text")


class RuleListResponse(BaseModel):
    """Rules in evaluation order."""

    data: List[RuleOut]
    total: int
