"""
Rule router: append-only rule persistence.

Endpoints:
  GET  /rules  Built-in and stored rules in evaluation order
  POST /rules  Append one confirmed rule (no update or delete)
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from mizan.rules import Rule

from ..dependencies import get_rule_store
from ..models.rule import RuleIn, RuleListResponse, RuleOut
from ..services.rule_store import RuleStore

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=RuleListResponse)
def list_rules(rules: RuleStore = Depends(get_rule_store)):
    """Every rule the next run will evaluate."""
    data = [RuleOut(**rule.to_dict()) for rule in rules.rule_set().rules]
    return RuleListResponse(data=data, total=len(data))


@router.post("", response_model=RuleOut, status_code=201)
def append_rule(body: RuleIn, rules: RuleStore = Depends(get_rule_store)):
    """
    Persist a confirmed rule.

    Clauses are re-validated against the engine's score fields; an
    unknown field is a 422, an existing id a 409.
    """
    rule = Rule.from_dict({
        **body.model_dump(),
        "source": "learned",
        "generated_at": body.generated_at or datetime.now(timezone.utc).isoformat(),
    })
    stored = rules.append(rule)
    return RuleOut(**stored.to_dict())
