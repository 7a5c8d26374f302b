"""Shared service instances and environment configuration for the API."""
import os
from functools import lru_cache
from pathlib import Path

from mizan.config import ResolutionConfig

from .cache import SessionCache
from .services.rule_store import RuleStore
from .services.run_manager import RunManager

# Rule store path - configurable via env var, defaults to backend/data/rules.json
RULES_PATH = Path(os.environ.get(
    "MIZAN_RULES_PATH", str(Path(__file__).parent.parent / "data" / "rules.json")
))

# Session snapshots expire after this many seconds of no writes
SESSION_TTL = int(os.environ.get("MIZAN_SESSION_TTL", "7200"))
SESSION_MAXSIZE = int(os.environ.get("MIZAN_SESSION_MAXSIZE", "64"))

# Background run pool
RUN_WORKERS = int(os.environ.get("MIZAN_RUN_WORKERS", "2"))
RUN_TTL = int(os.environ.get("MIZAN_RUN_TTL", "3600"))


@lru_cache
def get_config() -> ResolutionConfig:
    """Resolution config with MIZAN_* environment overrides."""
    return ResolutionConfig.from_env()


@lru_cache
def get_rule_store() -> RuleStore:
    """Process-wide rule store."""
    return RuleStore(RULES_PATH, get_config())


@lru_cache
def get_session_cache() -> SessionCache:
    """Process-wide session snapshot cache."""
    return SessionCache(maxsize=SESSION_MAXSIZE, ttl=SESSION_TTL)


@lru_cache
def get_run_manager() -> RunManager:
    """Process-wide background run manager."""
    return RunManager(max_workers=RUN_WORKERS, ttl=RUN_TTL, config=get_config())
