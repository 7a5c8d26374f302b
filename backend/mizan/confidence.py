"""
Cluster confidence and decision labels.

decision_for() is the one mapping from a confidence value to a decision
label. Cluster cards, report charts and the CLI summary all call it, so
the boundaries below are defined nowhere else.
"""

from enum import Enum
from statistics import fmean
from typing import Iterable

from .models import PairScore


class DecisionLabel(str, Enum):
    CONFIRMED = 'confirmed_duplicate'
    SUSPECTED_CONFIRMED = 'suspected_confirmed_duplicate'
    SUSPECTED = 'suspected_duplicate'
    POSSIBLE = 'possible_duplicate'


# Lower bound of each label, highest certainty first
DECISION_THRESHOLDS = {
    DecisionLabel.CONFIRMED: 90.0,
    DecisionLabel.SUSPECTED_CONFIRMED: 85.0,
    DecisionLabel.SUSPECTED: 70.0,
    DecisionLabel.POSSIBLE: 0.0,
}

# Display names used on Arabic cluster cards
ARABIC_LABELS = {
    DecisionLabel.CONFIRMED: 'تكرار مؤكد',
    DecisionLabel.SUSPECTED_CONFIRMED: 'اشتباه تكرار مؤكد',
    DecisionLabel.SUSPECTED: 'اشتباه تكرار',
    DecisionLabel.POSSIBLE: 'تكرار محتمل',
}

# Weight on the lower of the woman/husband means
LOWER_SCORE_WEIGHT = 0.65


def combine_scores(woman: float, husband: float | None) -> float:
    """
    Combine mean woman and husband scores into a 0-100 confidence.

    Weighted toward the lower score, so a strong woman-name match with a
    different husband stays well below the confirmed band. With no
    husband evidence the woman score stands alone.
    """
    if husband is None:
        return round(100.0 * woman, 2)
    low, high = min(woman, husband), max(woman, husband)
    return round(100.0 * (LOWER_SCORE_WEIGHT * low + (1 - LOWER_SCORE_WEIGHT) * high), 2)


def confidence(pair_scores: Iterable[PairScore]) -> float:
    """
    Confidence (0-100) for a cluster's pair scores.

    The husband mean only covers pairs where both husbands are named;
    a cluster with no such pair is scored on the woman's name alone.
    """
    scores = list(pair_scores)
    if not scores:
        return 0.0

    woman = fmean(score.woman_name_score for score in scores)
    husband_scores = [score.husband_name_score for score in scores if score.husband_evidence]
    husband = fmean(husband_scores) if husband_scores else None
    return combine_scores(woman, husband)


def decision_for(value: float) -> DecisionLabel:
    """Decision label for a confidence value."""
    for label, threshold in DECISION_THRESHOLDS.items():
        if value >= threshold:
            return label
    return DecisionLabel.POSSIBLE
