"""
MIZAN Clustering: transitive duplicate clusters.

An edge joins two records when compare() calls the pair a match.
Clusters are the connected components of that graph with two or more
members, found with union-find. Each cluster keeps the PairScore of
every edge inside it, not just a spanning tree, because pairwise
breakdown views and audit sheets need the full edge set.

Records are sorted by internal id before any comparison, so the result
does not depend on upload order.
"""

from collections import defaultdict
from typing import Callable

import structlog

from .blocking import all_pairs, create_beneficiary_blocking, create_blocking_engine
from .comparator import PairwiseComparator, score_candidates
from .confidence import confidence, decision_for
from .config import ResolutionConfig
from .models import Cluster, PairScore, PreprocessedRecord, RawRecord
from .preprocess import FieldMapping, RecordPreprocessor
from .rules import AGGREGATE_REASON, RuleSet
from .summary import cluster_summary

logger = structlog.get_logger("mizan.clustering")


class UnionFind:
    """Union-Find with path compression and union by rank."""

    def __init__(self):
        self.parent = {}
        self.rank = {}

    def find(self, x):
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x, y):
        px, py = self.find(x), self.find(y)
        if px == py:
            return False
        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True

    def get_clusters(self):
        clusters = defaultdict(set)
        for x in self.parent:
            clusters[self.find(x)].add(x)
        return clusters


def candidate_pairs(
    prepared: list[PreprocessedRecord],
    config: ResolutionConfig,
    blocking_keys: list[str] | None = None,
) -> list:
    """
    Candidate pairs for a run.

    Exhaustive while the record count is within config.exhaustive_limit.
    Above it, the caller's blocking keys (or the beneficiary default of
    village, phone, national id and name skeleton) restrict comparisons.
    """
    if blocking_keys:
        engine = create_blocking_engine(blocking_keys, max_block_size=config.max_block_size)
    else:
        engine = create_beneficiary_blocking(max_block_size=config.max_block_size)

    if len(prepared) <= config.exhaustive_limit:
        return list(all_pairs(prepared))

    logger.info(
        "blocking_enabled",
        strategies=[name for name, _, _ in engine.strategies],
        **engine.get_statistics(prepared),
    )
    return list(engine.generate_candidates(prepared))


class ClusterBuilder:
    """
    Builds duplicate clusters for one run.

    Example:
        >>> builder = ClusterBuilder()
        >>> clusters = builder.build(records, RuleSet.default(), mapping)
        >>> clusters[0].record_ids, clusters[0].decision
        (['R1', 'R2'], 'confirmed_duplicate')
    """

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        comparator: PairwiseComparator | None = None,
    ):
        self.config = config or ResolutionConfig()
        self.comparator = comparator or PairwiseComparator()

    def build(
        self,
        records: list[RawRecord],
        rule_set: RuleSet,
        mapping: FieldMapping,
        blocking_keys: list[str] | None = None,
        progress: Callable[[int], None] | None = None,
    ) -> list[Cluster]:
        """
        Cluster records under a rule set.

        Args:
            records: Uploaded records
            rule_set: Rule set snapshot, read-only for the run
            mapping: Field mapping for preprocessing
            blocking_keys: Named blocking strategies for large inputs
            progress: Optional callable receiving percent complete

        Returns:
            Clusters of two or more records, ordered by first member id

        Raises:
            MissingFieldMappingError: if a required field is unmapped
        """
        ordered = sorted(records, key=lambda r: r.internal_id)
        prepared = RecordPreprocessor(mapping).preprocess_all(ordered)
        candidates = candidate_pairs(prepared, self.config, blocking_keys)

        edges = score_candidates(
            prepared, rule_set, candidates,
            comparator=self.comparator,
            progress=progress,
            keep=lambda score: score.is_match,
        )
        clusters = self.assemble(ordered, edges, rule_set)

        logger.info(
            "clusters_built",
            records=len(records),
            comparisons=len(candidates),
            edges=len(edges),
            clusters=len(clusters),
        )
        return clusters

    def assemble(self, records: list[RawRecord], edges: list[PairScore], rule_set: RuleSet) -> list[Cluster]:
        """Connected components over matching edges, with confidence attached."""
        uf = UnionFind()
        for edge in edges:
            uf.union(edge.record_a, edge.record_b)

        by_id = {record.internal_id: record for record in records}
        components = sorted(sorted(members) for members in uf.get_clusters().values() if len(members) > 1)

        edges_by_root = defaultdict(list)
        for edge in edges:
            edges_by_root[uf.find(edge.record_a)].append(edge)

        clusters = []
        for index, members in enumerate(components, start=1):
            pair_scores = sorted(
                edges_by_root[uf.find(members[0])],
                key=lambda e: (e.record_a, e.record_b),
            )
            value = confidence(pair_scores)
            cluster = Cluster(
                cluster_id=f"CL-{index:04d}",
                records=[by_id[record_id] for record_id in members],
                pair_scores=pair_scores,
                confidence=value,
                decision=decision_for(value).value,
                reasons=cluster_reasons(pair_scores, rule_set),
            )
            cluster.summary = cluster_summary(cluster)
            clusters.append(cluster)
        return clusters


def cluster_reasons(pair_scores: list[PairScore], rule_set: RuleSet) -> list[str]:
    """Sorted union of the rules that produced a cluster's edges."""
    reasons = set()
    for score in pair_scores:
        reasons.update(score.matched_rules)
        if score.aggregate_score >= rule_set.match_threshold:
            reasons.add(AGGREGATE_REASON)
    return sorted(reasons)


def build_clusters(
    records: list[RawRecord],
    rule_set: RuleSet,
    mapping: FieldMapping,
    blocking_keys: list[str] | None = None,
    progress: Callable[[int], None] | None = None,
    config: ResolutionConfig | None = None,
) -> list[Cluster]:
    """Quick clustering with default components."""
    return ClusterBuilder(config).build(records, rule_set, mapping, blocking_keys, progress)
