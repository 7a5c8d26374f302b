"""
MIZAN Rules: declarative match predicates.

A rule is data, not code: an ordered list of {field, operator, threshold}
clauses over PairScore components, all of which must hold, plus an
optional any_of list of which at least one must hold. The interpreter
here is the only thing that evaluates them; persisted rules are
validated on load and nothing read from disk is ever executed.

The RuleSet bundles the aggregate weights, the default match threshold
and the ordered, append-only rule list. Appending returns a new RuleSet
so a run's snapshot can never change under it.
"""

import math
import operator
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .config import ResolutionConfig
from .errors import DuplicateRuleError, InvalidRuleError
from .models import COMPONENT_FIELDS

OPERATORS = {
    '>=': operator.ge,
    '>': operator.gt,
    '<=': operator.le,
    '<': operator.lt,
    '==': operator.eq,
}

# Reason recorded when the aggregate alone crossed the threshold
AGGREGATE_REASON = 'AGGREGATE_THRESHOLD'


@dataclass(frozen=True)
class Clause:
    """One comparison of a PairScore component against a threshold."""
    field: str
    operator: str
    threshold: float

    def __post_init__(self):
        if self.field not in COMPONENT_FIELDS:
            raise InvalidRuleError(
                f"Unknown score field '{self.field}'",
                details={'field': self.field, 'allowed': list(COMPONENT_FIELDS)},
            )
        if self.operator not in OPERATORS:
            raise InvalidRuleError(
                f"Unknown operator '{self.operator}'",
                details={'operator': self.operator, 'allowed': list(OPERATORS)},
            )
        try:
            threshold = float(self.threshold)
        except (TypeError, ValueError):
            raise InvalidRuleError(f"Threshold for '{self.field}' is not a number") from None
        if not math.isfinite(threshold):
            raise InvalidRuleError(f"Threshold for '{self.field}' is not finite")
        object.__setattr__(self, 'threshold', threshold)

    def evaluate(self, components: Mapping[str, float]) -> bool:
        return OPERATORS[self.operator](components.get(self.field, 0.0), self.threshold)

    def describe(self) -> str:
        return f'{self.field} {self.operator} {self.threshold:g}'

    def to_dict(self) -> dict:
        return {'field': self.field, 'operator': self.operator, 'threshold': self.threshold}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Clause':
        try:
            return cls(field=data['field'], operator=data['operator'], threshold=data['threshold'])
        except KeyError as e:
            raise InvalidRuleError(f"Clause is missing '{e.args[0]}'") from None


@dataclass(frozen=True)
class Rule:
    """Named boolean predicate over PairScore components."""
    id: str
    clauses: tuple[Clause, ...] = ()
    any_of: tuple[Clause, ...] = ()
    name: str = ''
    generated_at: str = ''
    source: str = 'learned'

    def __post_init__(self):
        if not self.id or not str(self.id).strip():
            raise InvalidRuleError("Rule id is required")
        object.__setattr__(self, 'clauses', tuple(self.clauses))
        object.__setattr__(self, 'any_of', tuple(self.any_of))
        if not self.clauses and not self.any_of:
            raise InvalidRuleError(f"Rule '{self.id}' has no clauses")

    def matches(self, components: Mapping[str, float]) -> bool:
        """True when every clause holds and, if present, any any_of clause holds."""
        if not all(clause.evaluate(components) for clause in self.clauses):
            return False
        if self.any_of and not any(clause.evaluate(components) for clause in self.any_of):
            return False
        return True

    def describe(self) -> str:
        """Human-readable predicate, e.g. 'phone_score >= 1 AND (a >= 0.9 OR b >= 0.9)'."""
        parts = [clause.describe() for clause in self.clauses]
        if self.any_of:
            parts.append('(' + ' OR '.join(clause.describe() for clause in self.any_of) + ')')
        return ' AND '.join(parts)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'source': self.source,
            'generated_at': self.generated_at,
            'clauses': [clause.to_dict() for clause in self.clauses],
            'any_of': [clause.to_dict() for clause in self.any_of],
            'description': self.describe(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Rule':
        """Rebuild a rule from its JSON form, validating every clause."""
        return cls(
            id=str(data.get('id') or ''),
            clauses=tuple(Clause.from_dict(c) for c in data.get('clauses') or ()),
            any_of=tuple(Clause.from_dict(c) for c in data.get('any_of') or ()),
            name=str(data.get('name') or ''),
            generated_at=str(data.get('generated_at') or ''),
            source=str(data.get('source') or 'learned'),
        )


def _builtin(rule_id: str, name: str, clauses: list[tuple], any_of: list[tuple] = ()) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        clauses=tuple(Clause(*c) for c in clauses),
        any_of=tuple(Clause(*c) for c in any_of),
        source='builtin',
    )


# Tiered matchers shipped with every default rule set
BUILTIN_RULES = (
    _builtin('EXACT_NATIONAL_ID', 'Same national ID', [
        ('national_id_score', '>=', 1.0),
    ]),
    _builtin('FULL_WOMAN_LINEAGE', 'Woman name, father, grandfather and family agree', [
        ('first_name_score', '>=', 0.98),
        ('father_name_score', '>=', 0.98),
        ('grandfather_name_score', '>=', 0.95),
        ('family_name_score', '>=', 0.90),
    ]),
    _builtin('WOMAN_AND_HUSBAND_LINEAGE', 'Woman and husband lineage agree', [
        ('first_name_score', '>=', 0.95),
        ('father_name_score', '>=', 0.90),
        ('grandfather_name_score', '>=', 0.90),
        ('husband_first_name_score', '>=', 0.95),
        ('husband_father_name_score', '>=', 0.93),
    ]),
    _builtin('SAME_HUSBAND_WOMAN_VARIANT', 'Same husband, woman name spelling variant', [
        ('first_name_score', '>=', 0.93),
        ('father_name_score', '>=', 0.93),
        ('husband_order_free_score', '>=', 0.95),
    ]),
    _builtin('SHARED_CHILDREN_HUSBAND_LINEAGE', 'Same husband with shared children', [
        ('first_name_score', '>=', 0.90),
        ('husband_name_score', '>=', 0.90),
        ('children_score', '>=', 0.50),
    ]),
    _builtin('PHONE_WITH_REORDERED_NAME', 'Same phone, name recorded in a different order', [
        ('phone_score', '>=', 1.0),
        ('order_free_score', '>=', 0.85),
    ], any_of=[
        ('father_name_score', '>=', 0.93),
        ('grandfather_name_score', '>=', 0.93),
        ('family_name_score', '>=', 0.93),
    ]),
    # Same husband and the woman's father and grandfather agree: the
    # household was registered again, possibly under a second wife
    _builtin('POLYGAMY_PATTERN', 'Same husband, woman father and grandfather agree', [
        ('husband_order_free_score', '>=', 0.95),
        ('father_name_score', '>=', 0.93),
        ('grandfather_name_score', '>=', 0.90),
    ]),
    _builtin('POLYGAMY_SHARED_HOUSEHOLD', 'Same husband and family, three lineage names shared', [
        ('husband_order_free_score', '>=', 0.95),
        ('family_name_score', '>=', 0.90),
        ('lineage_overlap_score', '>=', 0.75),
    ]),
    # Rows where staff typed "تحت التحقيق" or similar into a name field
    _builtin('INVESTIGATION_PLACEHOLDER', 'Placeholder wording with matching names', [
        ('placeholder_score', '>=', 1.0),
        ('first_name_score', '>=', 0.95),
        ('family_name_score', '>=', 0.90),
        ('husband_order_free_score', '>=', 0.93),
    ]),
)


@dataclass(frozen=True)
class RuleSet:
    """Aggregate weights, default threshold and the ordered rule list."""
    weights: Mapping[str, float] = field(default_factory=dict)
    match_threshold: float = 0.80
    rules: tuple[Rule, ...] = ()

    def __post_init__(self):
        for name, weight in self.weights.items():
            if name not in COMPONENT_FIELDS or name == 'aggregate_score':
                raise InvalidRuleError(f"Cannot weight unknown component '{name}'")
            if weight < 0:
                raise InvalidRuleError(f"Weight for '{name}' is negative")
        object.__setattr__(self, 'weights', MappingProxyType(dict(self.weights)))
        object.__setattr__(self, 'rules', tuple(self.rules))

    @classmethod
    def default(cls, config: ResolutionConfig | None = None, learned: Iterable[Rule] = ()) -> 'RuleSet':
        """Rule set from config, with built-in rules first, then learned rules."""
        config = config or ResolutionConfig()
        rule_set = cls(
            weights=config.weights,
            match_threshold=config.match_threshold,
            rules=BUILTIN_RULES if config.include_builtin_rules else (),
        )
        return rule_set.extend(learned)

    def with_rule(self, rule: Rule) -> 'RuleSet':
        """
        Return a new RuleSet with `rule` appended.

        Raises:
            DuplicateRuleError: if a rule with the same id is present
        """
        if self.get(rule.id) is not None:
            raise DuplicateRuleError(f"Rule '{rule.id}' already exists", details={'id': rule.id})
        return RuleSet(weights=self.weights, match_threshold=self.match_threshold, rules=(*self.rules, rule))

    def extend(self, rules: Iterable[Rule]) -> 'RuleSet':
        result = self
        for rule in rules:
            result = result.with_rule(rule)
        return result

    def get(self, rule_id: str) -> Rule | None:
        return next((rule for rule in self.rules if rule.id == rule_id), None)

    def matching_rules(self, components: Mapping[str, float]) -> tuple[str, ...]:
        """Ids of every rule whose predicate holds, in rule order."""
        return tuple(rule.id for rule in self.rules if rule.matches(components))

    def to_dict(self) -> dict:
        return {
            'weights': dict(self.weights),
            'match_threshold': self.match_threshold,
            'rules': [rule.to_dict() for rule in self.rules],
        }
