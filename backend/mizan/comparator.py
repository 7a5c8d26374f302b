"""
MIZAN Comparator: pair scoring and rule application.

Scores two preprocessed records field by field (woman's name, husband's
name, phone, children, national id, village), combines the components
with the rule set's weights, and decides match by OR-composition: the
aggregate meets the rule set's threshold, or any rule predicate holds.
"""

from .models import PairScore, PreprocessedRecord
from .normalizer import has_placeholder
from .rules import RuleSet
from .similarity import SimilarityScorer, aggregate_score

# Husband name blends positional and whole-string agreement
HUSBAND_POSITIONAL_WEIGHT = 0.6
HUSBAND_FULL_NAME_WEIGHT = 0.4

# first, father, grandfather, family
LINEAGE_POSITIONS = 4


class PairwiseComparator:
    """
    Produces a PairScore for two PreprocessedRecords.

    Example:
        >>> comparator = PairwiseComparator()
        >>> score = comparator.compare(a, b, RuleSet.default())
        >>> score.is_match, score.matched_rules
        (True, ('FULL_WOMAN_LINEAGE',))
    """

    def __init__(self, scorer: SimilarityScorer | None = None):
        self.scorer = scorer or SimilarityScorer()

    def compare(self, a: PreprocessedRecord, b: PreprocessedRecord, rule_set: RuleSet) -> PairScore:
        """
        Score a pair and apply the rule set.

        The pair is put in internal-id order first, so compare(a, b)
        and compare(b, a) return the same PairScore.

        Args:
            a: First record
            b: Second record
            rule_set: Weights, threshold and rules for this run

        Returns:
            PairScore with components, aggregate and decision
        """
        if a.internal_id > b.internal_id:
            a, b = b, a

        s = self.scorer
        woman = s.lineage_scores(list(a.name_parts), list(b.name_parts))
        husband = s.lineage_scores(list(a.husband_name_parts), list(b.husband_name_parts))

        husband_evidence = bool(a.husband_name_parts and b.husband_name_parts)
        husband_name_score = 0.0
        if husband_evidence:
            husband_name_score = (
                HUSBAND_POSITIONAL_WEIGHT * s.positional_name_score(
                    list(a.husband_name_parts), list(b.husband_name_parts))
                + HUSBAND_FULL_NAME_WEIGHT * s.full_name_score(
                    list(a.husband_name_parts), list(b.husband_name_parts))
            )

        components = {
            'woman_name_score': s.positional_name_score(list(a.name_parts), list(b.name_parts)),
            'first_name_score': woman.first,
            'father_name_score': woman.father,
            'grandfather_name_score': woman.grandfather,
            'family_name_score': woman.family,
            'order_free_score': s.order_free_score(list(a.name_parts), list(b.name_parts)),
            'lineage_overlap_score': min(
                1.0, s.shared_token_count(list(a.name_parts), list(b.name_parts)) / LINEAGE_POSITIONS),
            'husband_name_score': husband_name_score,
            'husband_first_name_score': husband.first,
            'husband_father_name_score': husband.father,
            'husband_grandfather_name_score': husband.grandfather,
            'husband_family_name_score': husband.family,
            'husband_order_free_score': s.order_free_score(
                list(a.husband_name_parts), list(b.husband_name_parts)),
            'phone_score': s.phone_match(a.phone_digits, b.phone_digits),
            'children_score': s.token_jaccard(a.children, b.children),
            'national_id_score': _exact(a.national_id, b.national_id),
            'location_score': _exact(a.village, b.village),
            'placeholder_score': 1.0 if any(
                has_placeholder(parts) for parts in
                (a.name_parts, b.name_parts, a.husband_name_parts, b.husband_name_parts)
            ) else 0.0,
        }

        # Two empty children lists carry no evidence either way
        uninformative = frozenset() if (a.children or b.children) else frozenset({'children_score'})
        components['aggregate_score'] = aggregate_score(components, rule_set.weights, uninformative)

        matched = rule_set.matching_rules(components)
        is_match = components['aggregate_score'] >= rule_set.match_threshold or bool(matched)

        return PairScore(
            record_a=a.internal_id,
            record_b=b.internal_id,
            is_match=is_match,
            matched_rules=matched,
            husband_evidence=husband_evidence,
            **components,
        )


def _exact(x: str, y: str) -> float:
    return 1.0 if x and x == y else 0.0


_default = PairwiseComparator()


def compare(a: PreprocessedRecord, b: PreprocessedRecord, rule_set: RuleSet) -> PairScore:
    """Quick pair comparison with the default scorer."""
    return _default.compare(a, b, rule_set)


def score_candidates(
    prepared: list[PreprocessedRecord],
    rule_set: RuleSet,
    candidates: list,
    comparator: PairwiseComparator | None = None,
    progress=None,
    keep=None,
) -> list[PairScore]:
    """
    Score candidate pairs, reporting whole-percent progress.

    Args:
        prepared: Records the candidate ids refer to
        rule_set: Rule set snapshot for this run
        candidates: CandidatePair list in comparison order
        comparator: Comparator to use (default scorer if None)
        progress: Optional callable receiving percent complete (0-100)
        keep: Optional filter; only PairScores it accepts are returned

    Returns:
        Kept PairScores in candidate order
    """
    comparator = comparator or _default
    by_id = {record.internal_id: record for record in prepared}
    total = len(candidates)
    kept = []
    last_percent = -1

    for index, pair in enumerate(candidates, start=1):
        score = comparator.compare(by_id[pair.record1_id], by_id[pair.record2_id], rule_set)
        if keep is None or keep(score):
            kept.append(score)
        if progress is not None:
            percent = index * 100 // total
            if percent != last_percent:
                progress(percent)
                last_percent = percent

    return kept
