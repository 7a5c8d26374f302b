"""
Background run bookkeeping for the API.

Runs execute on the engine's BackgroundRunner; this service keeps each
run's handle and folds the messages it drains into a RunState the
routers can return. States live in a bounded TTLCache, so runs nobody
polls again expire instead of accumulating.
"""
import queue
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from cachetools import TTLCache

from mizan.audit import findings_by_record, summarize
from mizan.config import ResolutionConfig
from mizan.rules import RuleSet
from mizan.worker import BackgroundRunner, MessageType, RunHandle, RunKind, RunMessage, RunRequest

from ..cache import SessionSnapshot
from ..config.constants import RUN_STATUS_DONE, RUN_STATUS_ERROR, RUN_STATUS_RUNNING

logger = structlog.get_logger("mizan.api.runs")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class RunState:
    """Caller-visible state of one run."""
    run_id: str
    kind: str
    session_id: str
    status: str = RUN_STATUS_RUNNING
    progress: int = 0
    result: Any = None
    error: dict | None = None
    created_at: str = field(default_factory=_now)
    finished_at: str | None = None

    def apply(self, message: RunMessage) -> None:
        """Fold one message into the state. Nothing changes after a terminal message."""
        if self.status != RUN_STATUS_RUNNING:
            return
        if message.type is MessageType.PROGRESS:
            self.progress = max(self.progress, int(message.payload))
            return
        self.finished_at = _now()
        if message.type is MessageType.DONE:
            self.status = RUN_STATUS_DONE
            self.progress = 100
            self.result = serialize_result(RunKind(self.kind), message.payload)
        else:
            self.status = RUN_STATUS_ERROR
            self.error = message.payload


def serialize_result(kind: RunKind, payload: Any) -> Any:
    """JSON-ready form of a done payload."""
    if kind is RunKind.CLUSTER:
        decisions = Counter(cluster.decision for cluster in payload)
        return {
            'clusters': [cluster.to_dict() for cluster in payload],
            'summary': {
                'clusters': len(payload),
                'records_in_clusters': sum(len(cluster.records) for cluster in payload),
                'by_decision': dict(decisions),
            },
        }
    if kind is RunKind.AUDIT:
        return {
            'findings': [finding.to_dict() for finding in payload],
            'summary': summarize(payload),
            'by_record': {
                record_id: [f.type.value for f in findings]
                for record_id, findings in findings_by_record(payload).items()
            },
        }
    return payload.to_dict()


class RunManager:
    """Starts runs and tracks their state by run id."""

    def __init__(self, max_workers: int = 2, ttl: int = 3600, config: ResolutionConfig | None = None):
        self._runner = BackgroundRunner(max_workers=max_workers, config=config)
        self._lock = threading.Lock()
        self._runs: TTLCache = TTLCache(maxsize=256, ttl=ttl)

    def start(
        self,
        kind: RunKind,
        snapshot: SessionSnapshot,
        rule_set: RuleSet,
        record_ids: tuple[str, ...] = (),
        blocking_keys: tuple[str, ...] = (),
    ) -> RunState:
        """Submit a run against a session snapshot."""
        handle = self._runner.submit(RunRequest(
            kind=kind,
            records=snapshot.records,
            rule_set=rule_set,
            mapping=snapshot.mapping,
            record_ids=record_ids,
            blocking_keys=blocking_keys,
        ))
        state = RunState(run_id=handle.run_id, kind=kind.value, session_id=snapshot.session_id)
        with self._lock:
            self._runs[handle.run_id] = (handle, state)
        return state

    def status(self, run_id: str, wait: float = 0.0) -> RunState | None:
        """
        Current state of a run, or None if unknown or expired.

        Args:
            run_id: Id returned by start()
            wait: Seconds to block for the terminal message (0 = poll)
        """
        with self._lock:
            entry = self._runs.get(run_id)
        if entry is None:
            return None

        handle, state = entry
        messages = handle.drain()
        if wait > 0 and state.status == RUN_STATUS_RUNNING and not any(m.terminal for m in messages):
            try:
                for message in handle.iter_messages(timeout=wait):
                    messages.append(message)
            except queue.Empty:
                # still running; report what arrived
                pass

        with self._lock:
            for message in messages:
                state.apply(message)
        return state

    def stats(self) -> dict:
        """Tracked runs by last reported status."""
        with self._lock:
            states = [state for _, state in self._runs.values()]
        counts: dict[str, int] = {}
        for state in states:
            counts[state.status] = counts.get(state.status, 0) + 1
        return {"tracked": len(states), "by_status": counts}

    def shutdown(self) -> None:
        self._runner.shutdown(wait=False)
