"""
Service layer for the MIZAN API.

Routers stay thin: parse request, call a service, return the response.
"""
from .rule_store import RuleStore
from .run_manager import RunManager, RunState

__all__ = ["RuleStore", "RunManager", "RunState"]
