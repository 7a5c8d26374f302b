"""
MIZAN Learner: rules from confirmed duplicates.

When a reviewer selects exactly two records and confirms they are the
same person, the learner scores the pair and turns every component that
carried signal into a `>=` clause at the observed value. The resulting
rule matches that pair and nothing strictly weaker on any of those
components.

learn() only builds the rule. It is inert until the caller persists it
through the rule store.
"""

import uuid
from datetime import datetime, timezone

import structlog

from .comparator import PairwiseComparator
from .config import ResolutionConfig
from .errors import NoLearnablePatternError
from .models import COMPONENT_FIELDS, PreprocessedRecord
from .rules import Clause, Rule, RuleSet

logger = structlog.get_logger("mizan.learner")

# Components a learned rule may constrain
LEARNABLE_FIELDS = tuple(f for f in COMPONENT_FIELDS if f != 'aggregate_score')


class RuleLearner:
    """
    Derives a matching rule from two confirmed duplicate records.

    Example:
        >>> learner = RuleLearner()
        >>> rule = learner.learn(a, b)
        >>> rule.describe()
        'first_name_score >= 0.933333 AND order_free_score >= 0.87 AND phone_score >= 1'
    """

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        comparator: PairwiseComparator | None = None,
    ):
        self.config = config or ResolutionConfig()
        self.comparator = comparator or PairwiseComparator()

    def observe(
        self,
        a: PreprocessedRecord,
        b: PreprocessedRecord,
        rule_set: RuleSet | None = None,
    ) -> dict[str, float]:
        """
        The observed pattern: components scoring above the signal floor.

        Args:
            a: First confirmed record
            b: Second confirmed record
            rule_set: Rule set used for scoring weights (default if None)

        Returns:
            Component name to observed score, in component order
        """
        rule_set = rule_set or RuleSet.default(self.config)
        components = self.comparator.compare(a, b, rule_set).components()
        return {
            name: components[name] for name in LEARNABLE_FIELDS
            if components[name] > self.config.learner_min_signal
        }

    def learn(
        self,
        a: PreprocessedRecord,
        b: PreprocessedRecord,
        rule_set: RuleSet | None = None,
        observed: dict[str, float] | None = None,
    ) -> Rule:
        """
        Build a rule that reclassifies this pair as a match.

        Args:
            a: First confirmed record
            b: Second confirmed record
            rule_set: Rule set used for scoring weights (default if None)
            observed: Precomputed pattern from observe(); computed if None

        Returns:
            New Rule with one >= clause per observed component

        Raises:
            NoLearnablePatternError: if no component scored above the floor
        """
        pattern = observed if observed is not None else self.observe(a, b, rule_set)
        if not pattern:
            raise NoLearnablePatternError(
                "No pattern to learn: the selected records share no similar field",
                details={'records': [a.internal_id, b.internal_id]},
            )

        now = datetime.now(timezone.utc)
        rule = Rule(
            id=f"LEARNED_{uuid.uuid4().hex[:12]}",
            name=f"Learned from {a.internal_id} + {b.internal_id}",
            clauses=tuple(Clause(name, '>=', value) for name, value in pattern.items()),
            generated_at=now.isoformat(),
            source='learned',
        )
        logger.info("rule_learned", rule_id=rule.id, clauses=len(rule.clauses),
                    records=[a.internal_id, b.internal_id])
        return rule


def learn(
    a: PreprocessedRecord,
    b: PreprocessedRecord,
    rule_set: RuleSet | None = None,
    observed: dict[str, float] | None = None,
) -> Rule:
    """Quick rule learning with default components."""
    return RuleLearner().learn(a, b, rule_set, observed)
