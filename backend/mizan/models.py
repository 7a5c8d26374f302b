"""
Data model for MIZAN beneficiary resolution.

RawRecord is the unit everything derives from. PreprocessedRecord,
PairScore and Cluster are recomputed in full on every run; AuditFinding
is recomputed on every audit run, independently of clustering.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class RawRecord:
    """One uploaded row plus its session-stable internal id."""
    internal_id: str
    values: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        object.__setattr__(self, 'values', MappingProxyType(dict(self.values)))

    def get(self, column: str | None, default: Any = None) -> Any:
        if not column:
            return default
        return self.values.get(column, default)

    def to_dict(self) -> dict:
        return {'_internalId': self.internal_id, **self.values}


@dataclass(frozen=True)
class PreprocessedRecord:
    """Normalized view of a RawRecord under a field mapping."""
    internal_id: str
    name_parts: tuple[str, ...] = ()
    husband_name_parts: tuple[str, ...] = ()
    woman_name: str = ''
    husband_name: str = ''
    phone_digits: str = ''
    children: frozenset[str] = frozenset()
    national_id: str = ''
    village: str = ''
    subdistrict: str = ''
    beneficiary_id: str = ''


# PairScore fields a rule clause or aggregate weight may reference
COMPONENT_FIELDS = (
    'woman_name_score',
    'first_name_score',
    'father_name_score',
    'grandfather_name_score',
    'family_name_score',
    'order_free_score',
    'lineage_overlap_score',
    'husband_name_score',
    'husband_first_name_score',
    'husband_father_name_score',
    'husband_grandfather_name_score',
    'husband_family_name_score',
    'husband_order_free_score',
    'phone_score',
    'children_score',
    'national_id_score',
    'location_score',
    'placeholder_score',
    'aggregate_score',
)


@dataclass(frozen=True)
class PairScore:
    """Similarity breakdown and match decision for two records."""
    record_a: str
    record_b: str
    woman_name_score: float = 0.0
    first_name_score: float = 0.0
    father_name_score: float = 0.0
    grandfather_name_score: float = 0.0
    family_name_score: float = 0.0
    order_free_score: float = 0.0
    lineage_overlap_score: float = 0.0
    husband_name_score: float = 0.0
    husband_first_name_score: float = 0.0
    husband_father_name_score: float = 0.0
    husband_grandfather_name_score: float = 0.0
    husband_family_name_score: float = 0.0
    husband_order_free_score: float = 0.0
    phone_score: float = 0.0
    children_score: float = 0.0
    national_id_score: float = 0.0
    location_score: float = 0.0
    placeholder_score: float = 0.0
    aggregate_score: float = 0.0
    is_match: bool = False
    matched_rules: tuple[str, ...] = ()
    husband_evidence: bool = False

    def components(self) -> dict[str, float]:
        """Numeric components by field name."""
        return {name: getattr(self, name) for name in COMPONENT_FIELDS}

    def to_dict(self) -> dict:
        data = asdict(self)
        data['matched_rules'] = list(self.matched_rules)
        return data


@dataclass
class Cluster:
    """Connected component of matching records."""
    cluster_id: str
    records: list[RawRecord]
    pair_scores: list[PairScore]
    confidence: float = 0.0
    decision: str = ''
    reasons: list[str] = field(default_factory=list)
    summary: list[str] = field(default_factory=list)

    @property
    def record_ids(self) -> list[str]:
        return [record.internal_id for record in self.records]

    def to_dict(self) -> dict:
        return {
            'cluster_id': self.cluster_id,
            'record_ids': self.record_ids,
            'records': [record.to_dict() for record in self.records],
            'pair_scores': [score.to_dict() for score in self.pair_scores],
            'confidence': self.confidence,
            'decision': self.decision,
            'reasons': list(self.reasons),
            'summary': list(self.summary),
        }


class AuditType(str, Enum):
    WOMAN_MULTIPLE_HUSBANDS = 'WOMAN_MULTIPLE_HUSBANDS'
    MULTIPLE_NATIONAL_IDS = 'MULTIPLE_NATIONAL_IDS'
    DUPLICATE_ID = 'DUPLICATE_ID'
    DUPLICATE_COUPLE = 'DUPLICATE_COUPLE'
    HUSBAND_TOO_MANY_WIVES = 'HUSBAND_TOO_MANY_WIVES'
    HIGH_SIMILARITY = 'HIGH_SIMILARITY'


class Severity(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


@dataclass
class AuditFinding:
    """One anomaly spanning two or more records."""
    type: AuditType
    severity: Severity
    description: str
    records: list[RawRecord]
    key: str = ''

    @property
    def record_ids(self) -> list[str]:
        return [record.internal_id for record in self.records]

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'severity': self.severity.value,
            'description': self.description,
            'key': self.key,
            'record_ids': self.record_ids,
            'records': [record.to_dict() for record in self.records],
        }
