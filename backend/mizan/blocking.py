"""
MIZAN Blocking: candidate pairs for large registers.

Registers above the exhaustive limit are only compared within blocks of
records sharing a key value. Available keys:

- village / subdistrict: administrative location as typed
- phone: trailing six digits, only when all six are present
- national_id: whitespace-stripped ID
- name_skeleton: consonant skeleton of first and family name

A block larger than max_block_size is skipped: at that size the key
carries no identity signal (a whole village, a shared placeholder ID).
"""

from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from typing import Callable, Iterator

from .errors import InvalidBlockingKeyError
from .models import PreprocessedRecord
from .phonetic import ArabicSkeleton

KeyFunc = Callable[[PreprocessedRecord], 'str | list[str] | None']


@dataclass
class CandidatePair:
    """Two record ids to compare and the block keys that paired them."""
    record1_id: str
    record2_id: str
    blocking_keys: list[str] = field(default_factory=list)
    priority: float = 0.0


class BlockingEngine:
    """Weighted key strategies over preprocessed records."""

    def __init__(self, max_block_size: int = 2000):
        self.max_block_size = max_block_size
        self.strategies: list[tuple[str, KeyFunc, float]] = []

    def add_strategy(self, name: str, key_func: KeyFunc, weight: float = 1.0) -> 'BlockingEngine':
        self.strategies.append((name, key_func, weight))
        return self

    def _keys_for(self, record: PreprocessedRecord) -> Iterator[tuple[str, float]]:
        for name, key_func, weight in self.strategies:
            value = key_func(record)
            for item in value if isinstance(value, (list, tuple)) else [value]:
                if item:
                    yield f"{name}:{item}", weight

    def index(self, records: list[PreprocessedRecord]) -> tuple[dict[str, list[str]], dict[str, float]]:
        """Block key -> sorted member ids, plus each key's strategy weight."""
        members: dict[str, list[str]] = defaultdict(list)
        weights: dict[str, float] = {}
        for record in records:
            for key, weight in self._keys_for(record):
                members[key].append(record.internal_id)
                weights[key] = weight
        return {key: sorted(ids) for key, ids in members.items()}, weights

    def _usable(self, ids: list[str]) -> bool:
        return 2 <= len(ids) <= self.max_block_size

    def generate_candidates(self, records: list[PreprocessedRecord]) -> Iterator[CandidatePair]:
        """
        Deduplicated pairs in sorted id order.

        A pair found through several keys is yielded once, with every key
        listed and the key weights summed into its priority.
        """
        blocks, weights = self.index(records)
        shared: dict[tuple[str, str], list[str]] = defaultdict(list)
        for key, ids in blocks.items():
            if self._usable(ids):
                for pair in combinations(ids, 2):
                    shared[pair].append(key)

        for id1, id2 in sorted(shared):
            keys = shared[(id1, id2)]
            yield CandidatePair(id1, id2, keys, priority=sum(weights[k] for k in keys))

    def get_statistics(self, records: list[PreprocessedRecord]) -> dict:
        """Block counts and the comparison reduction, for the run log."""
        blocks, _ = self.index(records)
        n = len(records)
        exhaustive = n * (n - 1) // 2
        usable = [len(ids) for ids in blocks.values() if self._usable(ids)]
        blocked = sum(size * (size - 1) // 2 for size in usable)
        return {
            'total_records': n,
            'total_pairs_without_blocking': exhaustive,
            'total_blocks': len(blocks),
            'valid_blocks': len(usable),
            'skipped_oversized_blocks': sum(1 for ids in blocks.values() if len(ids) > self.max_block_size),
            'estimated_pairs_with_blocking': blocked,
            'reduction_ratio': 1 - blocked / exhaustive if exhaustive else 0,
        }


_skeleton = ArabicSkeleton()


def _name_skeleton(record: PreprocessedRecord) -> str | None:
    parts = record.name_parts
    if not parts:
        return None
    first = _skeleton.encode(parts[0])
    family = _skeleton.encode(parts[-1]) if len(parts) > 1 else ''
    return f"{first}-{family}" if first else None


BLOCKING_KEYS: dict[str, KeyFunc] = {
    'village': lambda r: r.village or None,
    'subdistrict': lambda r: r.subdistrict or None,
    'phone': lambda r: r.phone_digits if len(r.phone_digits) == 6 else None,
    'national_id': lambda r: r.national_id or None,
    'name_skeleton': _name_skeleton,
}

# Weights used when the caller names no keys
DEFAULT_STRATEGY_WEIGHTS = {
    'national_id': 10.0,
    'phone': 5.0,
    'village': 3.0,
    'name_skeleton': 2.0,
}


def validate_blocking_keys(key_names) -> None:
    """
    Reject blocking key names the engine does not have.

    Raises:
        InvalidBlockingKeyError: listing the unknown and the allowed names
    """
    unknown = [name for name in key_names if name not in BLOCKING_KEYS]
    if unknown:
        raise InvalidBlockingKeyError(
            f"Unknown blocking key(s) {', '.join(unknown)}. Choose from: {', '.join(BLOCKING_KEYS)}",
            details={'unknown': unknown, 'allowed': list(BLOCKING_KEYS)},
        )


def create_blocking_engine(key_names: list[str], max_block_size: int = 2000) -> BlockingEngine:
    """
    Engine over the named keys, each at weight 1.

    Raises:
        InvalidBlockingKeyError: on a key not in BLOCKING_KEYS
    """
    validate_blocking_keys(key_names)
    engine = BlockingEngine(max_block_size=max_block_size)
    for name in key_names:
        engine.add_strategy(name, BLOCKING_KEYS[name])
    return engine


def create_beneficiary_blocking(max_block_size: int = 2000) -> BlockingEngine:
    engine = BlockingEngine(max_block_size=max_block_size)
    for name, weight in DEFAULT_STRATEGY_WEIGHTS.items():
        engine.add_strategy(name, BLOCKING_KEYS[name], weight=weight)
    return engine


def all_pairs(records: list[PreprocessedRecord]) -> Iterator[CandidatePair]:
    """Every pair in sorted id order."""
    ids = sorted(record.internal_id for record in records)
    for id1, id2 in combinations(ids, 2):
        yield CandidatePair(id1, id2)
