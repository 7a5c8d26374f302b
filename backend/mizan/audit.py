"""
MIZAN Audit: rule checks over the full record set.

Runs independently of clustering, on normalized identity keys:
- woman key: canonical lineage of the woman's name
- husband key: canonical lineage of the husband's name
- id key: national id with digits unified and whitespace removed

Empty keys never take part, so a blank column cannot produce a match.

Rules (severity):
- WOMAN_MULTIPLE_HUSBANDS (high): one woman, two or more husbands
- MULTIPLE_NATIONAL_IDS (high): one woman, two or more national ids
- DUPLICATE_ID (high): one national id, two or more women
- DUPLICATE_COUPLE (medium): same woman and husband on separate records
- HUSBAND_TOO_MANY_WIVES (medium): one husband, more than four wives
- HIGH_SIMILARITY (medium/low): near-miss pairs left outside any cluster
"""

from collections import defaultdict
from typing import Callable

import structlog

from .clustering import UnionFind, candidate_pairs
from .comparator import PairwiseComparator, score_candidates
from .config import HIGH_SIMILARITY_MEDIUM, HUSBAND_MAX_WIVES, ResolutionConfig
from .models import AuditFinding, AuditType, PreprocessedRecord, RawRecord, Severity
from .preprocess import FieldMapping, RecordPreprocessor
from .rules import RuleSet

logger = structlog.get_logger("mizan.audit")

_TYPE_ORDER = {audit_type: index for index, audit_type in enumerate(AuditType)}


class AuditEngine:
    """
    Flags duplication and fraud patterns across all records.

    Example:
        >>> engine = AuditEngine()
        >>> findings = engine.run(records, mapping, RuleSet.default())
        >>> [(f.type.value, f.record_ids) for f in findings]
        [('DUPLICATE_ID', ['R1', 'R7'])]
    """

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        comparator: PairwiseComparator | None = None,
    ):
        self.config = config or ResolutionConfig()
        self.comparator = comparator or PairwiseComparator()

    def run(
        self,
        records: list[RawRecord],
        mapping: FieldMapping,
        rule_set: RuleSet | None = None,
        blocking_keys: list[str] | None = None,
        progress: Callable[[int], None] | None = None,
    ) -> list[AuditFinding]:
        """
        Audit a record set.

        Args:
            records: Uploaded records
            mapping: Field mapping for preprocessing
            rule_set: Rule set for the near-miss pass (default if None)
            blocking_keys: Named blocking strategies for large inputs
            progress: Optional callable receiving percent complete

        Returns:
            Findings ordered by type, then by record ids

        Raises:
            MissingFieldMappingError: if a required field is unmapped
        """
        rule_set = rule_set or RuleSet.default(self.config)
        ordered = sorted(records, key=lambda r: r.internal_id)
        prepared = RecordPreprocessor(mapping).preprocess_all(ordered)
        by_id = {record.internal_id: record for record in ordered}

        findings = [
            *self.woman_multiple_husbands(prepared, by_id),
            *self.multiple_national_ids(prepared, by_id),
            *self.duplicate_ids(prepared, by_id),
            *self.duplicate_couples(prepared, by_id),
            *self.husband_too_many_wives(prepared, by_id),
            *self.high_similarity(prepared, by_id, rule_set, blocking_keys, progress),
        ]
        findings.sort(key=lambda f: (_TYPE_ORDER[f.type], f.record_ids, f.key))

        logger.info(
            "audit_completed",
            records=len(records),
            findings=len(findings),
            **{t.value.lower(): n for t, n in _count_by_type(findings).items()},
        )
        return findings

    def woman_multiple_husbands(self, prepared, by_id) -> list[AuditFinding]:
        findings = []
        for woman, group in _group(prepared, _woman_key).items():
            husbands = sorted({_husband_key(r) for r in group} - {''})
            if len(husbands) >= 2:
                findings.append(_finding(
                    AuditType.WOMAN_MULTIPLE_HUSBANDS, Severity.HIGH,
                    f"Woman '{woman}' is registered with {len(husbands)} different husbands: "
                    f"{', '.join(husbands)}",
                    group, by_id, key=woman,
                ))
        return findings

    def multiple_national_ids(self, prepared, by_id) -> list[AuditFinding]:
        findings = []
        for woman, group in _group(prepared, _woman_key).items():
            ids = sorted({r.national_id for r in group} - {''})
            if len(ids) >= 2:
                findings.append(_finding(
                    AuditType.MULTIPLE_NATIONAL_IDS, Severity.HIGH,
                    f"Woman '{woman}' appears with {len(ids)} national IDs: {', '.join(ids)}",
                    group, by_id, key=woman,
                ))
        return findings

    def duplicate_ids(self, prepared, by_id) -> list[AuditFinding]:
        findings = []
        for national_id, group in _group(prepared, lambda r: r.national_id).items():
            women = sorted({_woman_key(r) for r in group} - {''})
            if len(women) >= 2:
                findings.append(_finding(
                    AuditType.DUPLICATE_ID, Severity.HIGH,
                    f"National ID {national_id} is used by {len(women)} different women: "
                    f"{', '.join(women)}",
                    group, by_id, key=national_id,
                ))
        return findings

    def duplicate_couples(self, prepared, by_id) -> list[AuditFinding]:
        findings = []
        couples = _group(prepared, lambda r: _couple_key(r))
        for couple, group in couples.items():
            if len(group) >= 2:
                woman, husband = couple.split(' | ')
                findings.append(_finding(
                    AuditType.DUPLICATE_COUPLE, Severity.MEDIUM,
                    f"Couple '{woman}' / '{husband}' is registered {len(group)} times",
                    group, by_id, key=couple,
                ))
        return findings

    def husband_too_many_wives(self, prepared, by_id) -> list[AuditFinding]:
        findings = []
        for husband, group in _group(prepared, _husband_key).items():
            wives = {_woman_key(r) for r in group} - {''}
            if len(wives) > HUSBAND_MAX_WIVES:
                findings.append(_finding(
                    AuditType.HUSBAND_TOO_MANY_WIVES, Severity.MEDIUM,
                    f"Husband '{husband}' is linked to {len(wives)} different wives "
                    f"(more than {HUSBAND_MAX_WIVES})",
                    group, by_id, key=husband,
                ))
        return findings

    def high_similarity(self, prepared, by_id, rule_set, blocking_keys=None, progress=None) -> list[AuditFinding]:
        """
        Near-miss pairs for human review.

        A pair qualifies when its aggregate reaches the high-similarity
        threshold, it is not a match, and its records do not end up in
        the same cluster through other edges.
        """
        threshold = self.config.high_similarity_threshold
        candidates = candidate_pairs(prepared, self.config, blocking_keys)
        scores = score_candidates(
            prepared, rule_set, candidates,
            comparator=self.comparator,
            progress=progress,
            keep=lambda s: s.is_match or s.aggregate_score >= threshold,
        )

        uf = UnionFind()
        for score in scores:
            if score.is_match:
                uf.union(score.record_a, score.record_b)

        findings = []
        for score in scores:
            if score.is_match or uf.find(score.record_a) == uf.find(score.record_b):
                continue
            severity = Severity.MEDIUM if score.aggregate_score >= HIGH_SIMILARITY_MEDIUM else Severity.LOW
            findings.append(AuditFinding(
                type=AuditType.HIGH_SIMILARITY,
                severity=severity,
                description=(
                    f"Records {score.record_a} and {score.record_b} are similar "
                    f"(score {score.aggregate_score:.2f}) but were not matched"
                ),
                records=[by_id[score.record_a], by_id[score.record_b]],
                key=f"{score.aggregate_score:.4f}",
            ))
        return findings


def _woman_key(record: PreprocessedRecord) -> str:
    return ' '.join(record.name_parts)


def _husband_key(record: PreprocessedRecord) -> str:
    return ' '.join(record.husband_name_parts)


def _couple_key(record: PreprocessedRecord) -> str:
    woman, husband = _woman_key(record), _husband_key(record)
    if not woman or not husband:
        return ''
    return f"{woman} | {husband}"


def _group(prepared: list[PreprocessedRecord], key_func) -> dict[str, list[PreprocessedRecord]]:
    groups = defaultdict(list)
    for record in prepared:
        key = key_func(record)
        if key:
            groups[key].append(record)
    return groups


def _finding(audit_type, severity, description, group, by_id, key='') -> AuditFinding:
    ids = sorted(record.internal_id for record in group)
    return AuditFinding(
        type=audit_type,
        severity=severity,
        description=description,
        records=[by_id[record_id] for record_id in ids],
        key=key,
    )


def _count_by_type(findings: list[AuditFinding]) -> dict[AuditType, int]:
    counts = defaultdict(int)
    for finding in findings:
        counts[finding.type] += 1
    return dict(counts)


def findings_by_record(findings: list[AuditFinding]) -> dict[str, list[AuditFinding]]:
    """Group findings under every record id they implicate."""
    grouped = defaultdict(list)
    for finding in findings:
        for record_id in finding.record_ids:
            grouped[record_id].append(finding)
    return dict(grouped)


def summarize(findings: list[AuditFinding]) -> dict:
    """Finding counts by type and by severity."""
    by_severity = defaultdict(int)
    for finding in findings:
        by_severity[finding.severity.value] += 1
    return {
        'total': len(findings),
        'by_type': {t.value: n for t, n in _count_by_type(findings).items()},
        'by_severity': dict(by_severity),
    }


def audit(
    records: list[RawRecord],
    mapping: FieldMapping,
    rule_set: RuleSet | None = None,
    config: ResolutionConfig | None = None,
) -> list[AuditFinding]:
    """Quick audit with default components."""
    return AuditEngine(config).run(records, mapping, rule_set)
