"""
MIZAN Worker: background execution by message passing.

Each run (cluster, audit or learn) executes on a pool thread and talks
to its caller only through its own queue of RunMessages:

    {run_id, type: progress | done | error, payload}

Within a run, progress percentages strictly increase and exactly one
terminal message (done or error) is sent, always last. Runs share no
mutable state: the rule set snapshot is immutable and each RunHandle
owns its queue, so an abandoned handle is simply garbage collected.
"""

import queue
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

import structlog

from .audit import AuditEngine
from .clustering import ClusterBuilder
from .comparator import PairwiseComparator
from .config import ResolutionConfig
from .errors import MizanError, PatternAlreadyCoveredError, RecordSelectionError
from .learner import RuleLearner
from .models import RawRecord
from .preprocess import FieldMapping, RecordPreprocessor
from .rules import RuleSet

logger = structlog.get_logger("mizan.worker")


class RunKind(str, Enum):
    CLUSTER = 'cluster'
    AUDIT = 'audit'
    LEARN = 'learn'


class MessageType(str, Enum):
    PROGRESS = 'progress'
    DONE = 'done'
    ERROR = 'error'


@dataclass(frozen=True)
class RunMessage:
    """One message from a run to its caller."""
    run_id: str
    type: MessageType
    payload: Any = None

    @property
    def terminal(self) -> bool:
        return self.type is not MessageType.PROGRESS


@dataclass(frozen=True)
class RunRequest:
    """The single input message of a run."""
    kind: RunKind
    records: tuple[RawRecord, ...]
    rule_set: RuleSet
    mapping: FieldMapping | None = None
    record_ids: tuple[str, ...] = ()
    blocking_keys: tuple[str, ...] = ()


class RunChannel:
    """
    Sending side of a run's queue.

    Drops progress that does not advance and anything after the
    terminal message.
    """

    def __init__(self, run_id: str, messages: queue.Queue):
        self.run_id = run_id
        self._messages = messages
        self._last_progress = -1
        self._closed = False
        self._lock = threading.Lock()

    def progress(self, percent: int) -> None:
        with self._lock:
            if self._closed or percent <= self._last_progress:
                return
            self._last_progress = percent
            self._messages.put(RunMessage(self.run_id, MessageType.PROGRESS, percent))

    def done(self, payload: Any) -> None:
        self._finish(MessageType.DONE, payload)

    def error(self, payload: dict) -> None:
        self._finish(MessageType.ERROR, payload)

    def _finish(self, message_type: MessageType, payload: Any) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._messages.put(RunMessage(self.run_id, message_type, payload))


@dataclass
class RunHandle:
    """Receiving side of a run, owned by the caller."""
    run_id: str
    kind: RunKind
    messages: queue.Queue = field(default_factory=queue.Queue)

    def drain(self) -> list[RunMessage]:
        """Every message available right now, without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.messages.get_nowait())
            except queue.Empty:
                return drained

    def iter_messages(self, timeout: float | None = None) -> Iterator[RunMessage]:
        """
        Yield messages until the terminal one.

        `timeout` bounds the whole wait, not each message, so a run that
        keeps reporting progress cannot hold the caller past it.

        Raises:
            queue.Empty: if the terminal message has not arrived within
                `timeout` seconds
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            message = self.messages.get(timeout=remaining)
            yield message
            if message.terminal:
                return

    def wait(self, timeout: float | None = None) -> RunMessage:
        """Block until the terminal message and return it."""
        message = None
        for message in self.iter_messages(timeout):
            pass
        return message


class BackgroundRunner:
    """
    Thread-pool executor for cluster, audit and learn runs.

    Example:
        >>> runner = BackgroundRunner()
        >>> handle = runner.submit(RunRequest(RunKind.CLUSTER, records, rule_set, mapping))
        >>> result = handle.wait(timeout=60)
        >>> result.type, len(result.payload)
        (<MessageType.DONE: 'done'>, 3)
    """

    def __init__(self, max_workers: int = 2, config: ResolutionConfig | None = None):
        self.config = config or ResolutionConfig()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mizan-run")

    def submit(self, request: RunRequest) -> RunHandle:
        """Start a run and return its handle immediately."""
        handle = RunHandle(run_id=uuid.uuid4().hex, kind=request.kind)
        channel = RunChannel(handle.run_id, handle.messages)
        self._executor.submit(self._execute, channel, request)
        logger.info("run_submitted", run_id=handle.run_id, kind=request.kind.value,
                    records=len(request.records))
        return handle

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _execute(self, channel: RunChannel, request: RunRequest) -> None:
        log = logger.bind(run_id=channel.run_id, kind=request.kind.value)
        try:
            channel.progress(0)
            result = execute(request, self.config, progress=channel.progress)
        except MizanError as e:
            log.warning("run_failed", error_code=e.error_code, error=e.message)
            channel.error({'code': e.error_code, 'message': e.message, 'details': e.details or None})
        except Exception as e:
            log.exception("run_crashed")
            channel.error({'code': 'INTERNAL_ERROR', 'message': f"{type(e).__name__}: {e}", 'details': None})
        else:
            channel.progress(100)
            channel.done(result)
            log.info("run_completed")


def execute(request: RunRequest, config: ResolutionConfig, progress=None) -> Any:
    """
    Run one request synchronously.

    Returns:
        list[Cluster] for cluster runs, list[AuditFinding] for audit
        runs, a Rule for learn runs

    Raises:
        MissingFieldMappingError: if the mapping lacks a required field
        RecordSelectionError: if a learn run does not name two records
        NoLearnablePatternError: if the pair shares no signal
        PatternAlreadyCoveredError: if the rule set already matches the pair
    """
    mapping = request.mapping or FieldMapping()
    records = list(request.records)
    blocking_keys = list(request.blocking_keys) or None

    if request.kind is RunKind.CLUSTER:
        return ClusterBuilder(config).build(records, request.rule_set, mapping, blocking_keys, progress)

    if request.kind is RunKind.AUDIT:
        return AuditEngine(config).run(records, mapping, request.rule_set, blocking_keys, progress)

    return _learn(request, records, mapping, config)


def _learn(request: RunRequest, records: list[RawRecord], mapping: FieldMapping, config: ResolutionConfig):
    ids = list(dict.fromkeys(request.record_ids))
    if len(ids) != 2:
        raise RecordSelectionError(
            "Select exactly two records to learn a rule",
            details={'record_ids': list(request.record_ids)},
        )
    by_id = {record.internal_id: record for record in records}
    unknown = [record_id for record_id in ids if record_id not in by_id]
    if unknown:
        raise RecordSelectionError(f"Unknown record id(s): {', '.join(unknown)}", details={'unknown': unknown})

    selected = [by_id[record_id] for record_id in ids]
    mapping.validate(selected)
    preprocessor = RecordPreprocessor(mapping)
    a, b = (preprocessor.preprocess(record) for record in selected)

    comparator = PairwiseComparator()
    current = comparator.compare(a, b, request.rule_set)
    if current.is_match:
        raise PatternAlreadyCoveredError(
            "The current rules already match these records",
            details={'matched_rules': list(current.matched_rules),
                     'aggregate_score': current.aggregate_score},
        )

    return RuleLearner(config, comparator).learn(a, b, request.rule_set)
