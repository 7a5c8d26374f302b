"""
Tests for cluster confidence and decision labels.
"""
import pytest

from mizan.confidence import (
    ARABIC_LABELS,
    DecisionLabel,
    combine_scores,
    confidence,
    decision_for,
)
from mizan.models import PairScore


def _pair(woman, husband=0.0, evidence=True, a="R1", b="R2"):
    return PairScore(record_a=a, record_b=b, woman_name_score=woman,
                     husband_name_score=husband, husband_evidence=evidence)


class TestCombineScores:
    def test_woman_only(self):
        """Test woman score stands alone without husband evidence."""
        assert combine_scores(0.9, None) == 90.0

    def test_weighted_toward_lower(self):
        """Test the lower score carries more weight."""
        assert combine_scores(1.0, 0.5) == pytest.approx(67.5)
        assert combine_scores(0.5, 1.0) == combine_scores(1.0, 0.5)

    def test_perfect(self):
        """Test perfect scores give 100."""
        assert combine_scores(1.0, 1.0) == pytest.approx(100.0)

    def test_rounded(self):
        """Test confidence is rounded to two places."""
        value = combine_scores(0.123456, None)
        assert value == 12.35


class TestConfidence:
    def test_empty(self):
        """Test no pairs give zero confidence."""
        assert confidence([]) == 0.0

    def test_husband_without_evidence_ignored(self):
        """Test pairs without husbands are left out of the husband mean."""
        assert confidence([_pair(0.8, husband=0.0, evidence=False)]) == 80.0

    def test_means_over_pairs(self):
        """Test confidence uses means over all pairs."""
        scores = [
            _pair(1.0, husband=1.0),
            _pair(0.8, husband=0.0, evidence=False, b="R3"),
        ]
        # woman mean 0.9, husband mean 1.0 over the one pair with evidence
        assert confidence(scores) == pytest.approx(100 * (0.65 * 0.9 + 0.35 * 1.0))

    def test_different_husband_not_confirmed(self):
        """Test a different husband keeps the cluster below confirmed."""
        value = confidence([_pair(1.0, husband=0.3)])
        assert decision_for(value) is not DecisionLabel.CONFIRMED


class TestDecisionFor:
    """Confidence bands and labels."""

    @pytest.mark.parametrize("value,label", [
        (100.0, DecisionLabel.CONFIRMED),
        (90.0, DecisionLabel.CONFIRMED),
        (89.99, DecisionLabel.SUSPECTED_CONFIRMED),
        (85.0, DecisionLabel.SUSPECTED_CONFIRMED),
        (84.99, DecisionLabel.SUSPECTED),
        (70.0, DecisionLabel.SUSPECTED),
        (69.99, DecisionLabel.POSSIBLE),
        (0.0, DecisionLabel.POSSIBLE),
    ])
    def test_boundaries(self, value, label):
        """Test band boundaries are inclusive at the lower end."""
        assert decision_for(value) is label

    def test_every_label_has_arabic_name(self):
        """Test every label has an Arabic display name."""
        assert set(ARABIC_LABELS) == set(DecisionLabel)

    def test_label_values(self):
        """Test label wire values."""
        assert DecisionLabel.CONFIRMED.value == "confirmed_duplicate"
