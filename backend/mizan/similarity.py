"""
MIZAN Similarity: Pairwise Scoring Primitives

Provides the pure scoring functions the comparator composes, built on
RapidFuzz and SciPy:
- Jaro-Winkler: per-token string similarity with a prefix boost
- Lineage: position-by-position comparison (first, father, grandfather, family)
- Order-free: optimal one-to-one token alignment for reordered names
- Token Jaccard: overlap of children-name sets
- Phone match: exact equality on trailing digits

Every function is total: empty input scores 0.0, never raises.
"""

from typing import NamedTuple

import numpy as np
from rapidfuzz.distance import JaroWinkler
from scipy.optimize import linear_sum_assignment


class LineageScores(NamedTuple):
    """Position-by-position similarity of two lineage token lists."""
    first: float
    father: float
    grandfather: float
    family: float


class SimilarityScorer:
    """
    Similarity calculator for lineage-structured Arabic names.

    Arabic transliteration variance concentrates in word endings, so the
    Winkler prefix boost rewards agreement at the start of each token.

    Example:
        >>> scorer = SimilarityScorer()
        >>> scorer.jaro_winkler("فاطمه", "فاطمه")
        1.0
        >>> scorer.order_free_score(["علي", "محمد"], ["محمد", "علي"])
        1.0
    """

    def __init__(self, prefix_weight: float = 0.1, exact_alignment_limit: int = 12):
        """
        Initialize scorer.

        Args:
            prefix_weight: Winkler bonus for matching prefixes (0-0.25)
            exact_alignment_limit: Largest token count per side solved
                with optimal assignment; longer lists use greedy alignment
        """
        self.prefix_weight = prefix_weight
        self.exact_alignment_limit = exact_alignment_limit

    def jaro_winkler(self, s1: str, s2: str) -> float:
        """
        Jaro-Winkler similarity (0-1).

        Best for:
        - Single name tokens
        - Spelling drift in suffixes (ه/ة endings, dropped vowels)

        Args:
            s1: First string
            s2: Second string

        Returns:
            Similarity score 0-1; 0.0 if either string is empty
        """
        if not s1 or not s2:
            return 0.0
        if s1 == s2:
            return 1.0

        return JaroWinkler.similarity(s1, s2, prefix_weight=self.prefix_weight)

    def lineage_scores(self, a: list[str], b: list[str]) -> LineageScores:
        """
        Compare two lineage token lists position by position.

        The family position is the last token of each list and is only
        compared when both lists hold at least two tokens; otherwise the
        last token is the first name and is already scored.

        Args:
            a: First token list
            b: Second token list

        Returns:
            LineageScores with 0.0 for absent positions
        """
        def at(position: int) -> float:
            if position < len(a) and position < len(b):
                return self.jaro_winkler(a[position], b[position])
            return 0.0

        family = 0.0
        if len(a) >= 2 and len(b) >= 2:
            family = self.jaro_winkler(a[-1], b[-1])

        return LineageScores(first=at(0), father=at(1), grandfather=at(2), family=family)

    def positional_name_score(self, a: list[str], b: list[str]) -> float:
        """Mean Jaro-Winkler over the positions both lists have."""
        overlap = min(len(a), len(b))
        if overlap == 0:
            return 0.0
        return sum(self.jaro_winkler(a[i], b[i]) for i in range(overlap)) / overlap

    def full_name_score(self, a: list[str], b: list[str]) -> float:
        """Jaro-Winkler over the joined token lists."""
        return self.jaro_winkler(' '.join(a), ' '.join(b))

    def order_free_score(self, a: list[str], b: list[str]) -> float:
        """
        Order-free name score via best one-to-one token alignment.

        Treats both lists as multisets, finds the alignment maximizing
        total Jaro-Winkler, and divides by the longer list's length so
        unmatched tokens count against the score.

        Optimal assignment (Hungarian, via SciPy) is used up to
        exact_alignment_limit tokens per side. Beyond that a greedy
        best-edge-first alignment is used; it may under-score by picking
        a locally best edge that blocks a better global assignment.

        Args:
            a: First token list
            b: Second token list

        Returns:
            Alignment average 0-1
        """
        if not a or not b:
            return 0.0

        # Canonical argument order makes the result exactly symmetric
        if (len(a), a) > (len(b), b):
            a, b = b, a

        matrix = np.array([[self.jaro_winkler(x, y) for y in b] for x in a])

        if max(len(a), len(b)) <= self.exact_alignment_limit:
            total = self._exact_alignment(matrix)
        else:
            total = self._greedy_alignment(matrix)

        return min(1.0, total / max(len(a), len(b)))

    @staticmethod
    def _exact_alignment(matrix: np.ndarray) -> float:
        rows, cols = linear_sum_assignment(matrix, maximize=True)
        return float(matrix[rows, cols].sum())

    @staticmethod
    def _greedy_alignment(matrix: np.ndarray) -> float:
        edges = sorted(
            ((matrix[i, j], i, j) for i in range(matrix.shape[0]) for j in range(matrix.shape[1])),
            key=lambda edge: (-edge[0], edge[1], edge[2]),
        )
        used_rows: set[int] = set()
        used_cols: set[int] = set()
        total = 0.0
        for score, i, j in edges:
            if i in used_rows or j in used_cols:
                continue
            used_rows.add(i)
            used_cols.add(j)
            total += float(score)
        return total

    def shared_token_count(self, a: list[str], b: list[str], threshold: float = 0.93) -> int:
        """
        Tokens the two names have in common, at any position.

        Counts the tokens of each list that have a counterpart in the other
        at Jaro-Winkler >= threshold and returns the smaller of the two
        counts, so a token repeated on one side is not counted twice.
        """
        if not a or not b:
            return 0
        a_in_b = sum(1 for x in a if any(self.jaro_winkler(x, y) >= threshold for y in b))
        b_in_a = sum(1 for y in b if any(self.jaro_winkler(x, y) >= threshold for x in a))
        return min(a_in_b, b_in_a)

    @staticmethod
    def token_jaccard(a: frozenset[str], b: frozenset[str]) -> float:
        """
        Jaccard similarity on token sets.

        |intersection| / |union|. Two empty sets score 0.0: no evidence,
        which callers treat as uninformative rather than distinct.
        """
        if not a and not b:
            return 0.0

        union = len(a | b)
        return len(a & b) / union if union > 0 else 0.0

    @staticmethod
    def phone_match(a: str, b: str) -> float:
        """Binary match on trailing phone digits; 0.0 if either is empty."""
        if not a or not b:
            return 0.0
        return 1.0 if a == b else 0.0


def aggregate_score(
    components: dict[str, float],
    weights: dict[str, float],
    uninformative: frozenset[str] = frozenset(),
) -> float:
    """
    Weighted combination of PairScore components.

    Components listed in `uninformative` (no evidence on either side)
    are dropped from the weighting instead of counting as zero, so a
    missing field never suppresses a match.

    Args:
        components: Component name to score (0-1)
        weights: Component name to weight, supplied by the rule set
        uninformative: Component names to leave out

    Returns:
        Aggregate score 0-1
    """
    active = {
        name: weight for name, weight in weights.items()
        if weight > 0 and name not in uninformative
    }
    total_weight = sum(active.values())
    if total_weight <= 0:
        return 0.0

    weighted_sum = sum(components.get(name, 0.0) * weight for name, weight in active.items())
    return min(1.0, max(0.0, weighted_sum / total_weight))


_default = SimilarityScorer()


# Module-level convenience functions
def jaro_winkler(s1: str, s2: str) -> float:
    """Quick Jaro-Winkler similarity."""
    return _default.jaro_winkler(s1, s2)


def lineage_scores(a: list[str], b: list[str]) -> LineageScores:
    """Quick lineage comparison."""
    return _default.lineage_scores(a, b)


def order_free_score(a: list[str], b: list[str]) -> float:
    """Quick order-free name score."""
    return _default.order_free_score(a, b)


def shared_token_count(a: list[str], b: list[str], threshold: float = 0.93) -> int:
    """Quick shared lineage token count."""
    return _default.shared_token_count(a, b, threshold)


def token_jaccard(a: frozenset[str], b: frozenset[str]) -> float:
    """Quick token Jaccard."""
    return SimilarityScorer.token_jaccard(a, b)


def phone_match(a: str, b: str) -> float:
    """Quick phone match."""
    return SimilarityScorer.phone_match(a, b)
