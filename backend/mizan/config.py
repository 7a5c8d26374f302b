"""
Configuration dataclasses for MIZAN beneficiary resolution.

Defaults here are the shipped baseline. Every numeric knob can be
overridden through a MIZAN_* environment variable via
ResolutionConfig.from_env().
"""

import os
from dataclasses import dataclass, field


# =============================================================================
# Aggregate weights over PairScore components.
# Family name and order-free name carry the identity signal; phone and
# children corroborate. Components not listed weigh 0.
# =============================================================================
DEFAULT_WEIGHTS = {
    'family_name_score': 0.35,
    'order_free_score': 0.35,
    'phone_score': 0.15,
    'children_score': 0.15,
}

# Audit thresholds
HUSBAND_MAX_WIVES = 4             # more distinct wives than this is flagged
HIGH_SIMILARITY_MEDIUM = 0.75     # near-miss at or above this is medium severity


@dataclass
class ResolutionConfig:
    """Thresholds and limits for comparison, clustering and audit."""

    # Aggregate score at or above which a pair is a match
    match_threshold: float = 0.80

    # Aggregate weights, see DEFAULT_WEIGHTS
    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    # Near-miss floor for HIGH_SIMILARITY audit findings
    high_similarity_threshold: float = 0.65

    # Compare every pair while record count is at or below this
    exhaustive_limit: int = 3000

    # Largest token count per side solved with exact assignment
    exact_alignment_limit: int = 12

    # Skip blocks larger than this when blocking is active
    max_block_size: int = 2000

    # Learner keeps components scoring strictly above this value
    learner_min_signal: float = 0.0

    # Include the shipped tiered rules in the default rule set
    include_builtin_rules: bool = True

    @classmethod
    def from_env(cls) -> 'ResolutionConfig':
        """Build a config, applying MIZAN_* environment overrides."""
        config = cls()
        config.match_threshold = float(
            os.environ.get("MIZAN_MATCH_THRESHOLD", config.match_threshold)
        )
        config.high_similarity_threshold = float(
            os.environ.get("MIZAN_HIGH_SIMILARITY_THRESHOLD", config.high_similarity_threshold)
        )
        config.exhaustive_limit = int(
            os.environ.get("MIZAN_EXHAUSTIVE_LIMIT", config.exhaustive_limit)
        )
        config.exact_alignment_limit = int(
            os.environ.get("MIZAN_EXACT_ALIGNMENT_LIMIT", config.exact_alignment_limit)
        )
        config.max_block_size = int(
            os.environ.get("MIZAN_MAX_BLOCK_SIZE", config.max_block_size)
        )
        config.learner_min_signal = float(
            os.environ.get("MIZAN_LEARNER_MIN_SIGNAL", config.learner_min_signal)
        )
        config.include_builtin_rules = os.environ.get(
            "MIZAN_BUILTIN_RULES", "true"
        ).lower() == "true"
        return config
