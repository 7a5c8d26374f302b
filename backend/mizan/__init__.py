"""
MIZAN: Beneficiary Resolution & Audit Engine

Entity resolution for aid beneficiary registers: finds rows that describe
the same woman despite Arabic spelling drift, reordered names, partial
phone numbers and data-entry noise.

Components:
- normalizer: Arabic name normalization and compound-name fusion
- phonetic: Arabic consonant skeleton (blocking key)
- similarity: Jaro-Winkler, lineage, order-free and Jaccard scoring
- comparator: pair scoring under a rule set
- rules: declarative match predicates and the rule set
- clustering: union-find duplicate clusters
- confidence: cluster confidence and decision labels
- summary: Arabic explanation lines for cluster cards
- audit: fraud and duplication checks over the full record set
- learner: rules learned from confirmed duplicates
- worker: background runs with progress/done/error messages
"""

__version__ = "1.0.0"
__author__ = "MIZAN Project"

from .audit import AuditEngine
from .clustering import ClusterBuilder, build_clusters
from .comparator import PairwiseComparator, compare
from .confidence import DecisionLabel, confidence, decision_for
from .config import ResolutionConfig
from .learner import RuleLearner, learn
from .models import AuditFinding, Cluster, PairScore, PreprocessedRecord, RawRecord
from .normalizer import ArabicNormalizer
from .preprocess import FieldMapping, build_raw_records
from .rules import Clause, Rule, RuleSet
from .similarity import SimilarityScorer
from .summary import cluster_summary
from .worker import BackgroundRunner, RunKind, RunRequest

__all__ = [
    "ArabicNormalizer",
    "SimilarityScorer",
    "PairwiseComparator",
    "compare",
    "ClusterBuilder",
    "build_clusters",
    "AuditEngine",
    "RuleLearner",
    "learn",
    "DecisionLabel",
    "confidence",
    "decision_for",
    "cluster_summary",
    "ResolutionConfig",
    "RawRecord",
    "PreprocessedRecord",
    "PairScore",
    "Cluster",
    "AuditFinding",
    "FieldMapping",
    "build_raw_records",
    "Clause",
    "Rule",
    "RuleSet",
    "BackgroundRunner",
    "RunKind",
    "RunRequest",
]
