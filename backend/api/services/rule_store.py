"""
Append-only rule persistence.

Rules live in a single JSON array on disk. The store only lists and
appends: there is no update or delete, and an id may be stored once.
Every entry is validated through Rule.from_dict on load, so a tampered
file can only ever yield declarative clauses, never code.
"""
import json
import os
import threading
from pathlib import Path

import structlog

from mizan.config import ResolutionConfig
from mizan.errors import DuplicateRuleError
from mizan.rules import BUILTIN_RULES, Rule, RuleSet

logger = structlog.get_logger("mizan.api.rules")


class RuleStore:
    """JSON-file rule store. Thread-safe within one process."""

    def __init__(self, path: Path | str, config: ResolutionConfig | None = None):
        self.path = Path(path)
        self.config = config or ResolutionConfig()
        self._lock = threading.Lock()

    def list_rules(self) -> list[Rule]:
        """Stored rules in append order."""
        with self._lock:
            return self._load()

    def append(self, rule: Rule) -> Rule:
        """
        Persist one confirmed rule.

        Raises:
            DuplicateRuleError: if the id is already stored or built in
        """
        with self._lock:
            rules = self._load()
            taken = {r.id for r in rules} | {r.id for r in BUILTIN_RULES}
            if rule.id in taken:
                raise DuplicateRuleError(f"Rule '{rule.id}' already exists", details={'id': rule.id})
            rules.append(rule)
            self._write(rules)

        logger.info("rule_persisted", rule_id=rule.id, clauses=len(rule.clauses), total=len(rules))
        return rule

    def rule_set(self) -> RuleSet:
        """Default rule set extended with every stored rule."""
        return RuleSet.default(self.config, learned=self.list_rules())

    def _load(self) -> list[Rule]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        return [Rule.from_dict(entry) for entry in data]

    def _write(self, rules: list[Rule]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([rule.to_dict() for rule in rules], f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
