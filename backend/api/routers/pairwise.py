"""
Pairwise router: score breakdown between selected records.

Endpoints:
  POST /pairwise  Every pair among the selected records, best first

Used by the cluster detail view and to check a pair before teaching a
rule. Runs synchronously; the selection size is capped.
"""
from itertools import combinations

from fastapi import APIRouter, Depends

from mizan.comparator import PairwiseComparator
from mizan.preprocess import RecordPreprocessor

from ..cache import SessionCache
from ..dependencies import get_rule_store, get_session_cache
from ..middleware.error_handler import NotFoundError
from ..models.resolution import PairwiseRequest, PairwiseResponse
from ..services.rule_store import RuleStore
from .sessions import load_session

router = APIRouter(prefix="/pairwise", tags=["pairwise"])


@router.post("", response_model=PairwiseResponse)
def pairwise_breakdown(
    body: PairwiseRequest,
    sessions: SessionCache = Depends(get_session_cache),
    rules: RuleStore = Depends(get_rule_store),
):
    """Score every pair among the selected records."""
    snapshot = load_session(body.session_id, sessions)
    by_id = {record.internal_id: record for record in snapshot.records}
    ids = list(dict.fromkeys(body.record_ids))
    unknown = [record_id for record_id in ids if record_id not in by_id]
    if unknown:
        raise NotFoundError(f"Unknown record id(s): {', '.join(unknown)}", {"unknown": unknown})

    selected = [by_id[record_id] for record_id in ids]
    preprocessor = RecordPreprocessor(snapshot.mapping)
    prepared = preprocessor.preprocess_all(selected)

    rule_set = rules.rule_set()
    comparator = PairwiseComparator()
    scores = [comparator.compare(a, b, rule_set) for a, b in combinations(prepared, 2)]
    scores.sort(key=lambda s: (-s.aggregate_score, s.record_a, s.record_b))

    return PairwiseResponse(record_ids=ids, pairs=[score.to_dict() for score in scores])
