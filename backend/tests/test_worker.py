"""
Tests for background runs and their message protocol.
"""
import queue
import threading
import time

import pytest

from conftest import MAPPING, REGISTER_ROWS, make_records, row
from mizan.config import ResolutionConfig
from mizan.models import AuditFinding, Cluster
from mizan.preprocess import FieldMapping
from mizan.rules import Rule, RuleSet
from mizan.worker import (
    BackgroundRunner,
    MessageType,
    RunChannel,
    RunHandle,
    RunKind,
    RunRequest,
    execute,
)

TIMEOUT = 30


@pytest.fixture
def runner():
    background = BackgroundRunner(max_workers=2)
    yield background
    background.shutdown()


def _request(kind, rows=REGISTER_ROWS, mapping=None, record_ids=(), rule_set=None):
    return RunRequest(
        kind=kind,
        records=tuple(make_records(rows)),
        rule_set=rule_set or RuleSet.default(),
        mapping=mapping or FieldMapping.from_dict(MAPPING),
        record_ids=record_ids,
    )


def _messages(handle):
    return list(handle.iter_messages(timeout=TIMEOUT))


class TestRunChannel:
    """Message protocol on the sending side."""

    def test_progress_must_advance(self):
        """Test stale progress values are dropped."""
        handle = RunHandle(run_id="r", kind=RunKind.CLUSTER)
        channel = RunChannel("r", handle.messages)
        channel.progress(5)
        channel.progress(5)
        channel.progress(3)
        channel.progress(40)
        assert [m.payload for m in handle.drain()] == [5, 40]

    def test_single_terminal_message(self):
        """Test only the first terminal message is sent."""
        handle = RunHandle(run_id="r", kind=RunKind.CLUSTER)
        channel = RunChannel("r", handle.messages)
        channel.progress(10)
        channel.done(["result"])
        channel.progress(90)
        channel.error({"code": "LATE"})
        channel.done(["again"])
        messages = handle.drain()
        assert [m.type for m in messages] == [MessageType.PROGRESS, MessageType.DONE]
        assert messages[-1].terminal
        assert messages[-1].payload == ["result"]

    def test_wait_times_out(self):
        """Test wait raises queue.Empty on timeout."""
        handle = RunHandle(run_id="r", kind=RunKind.AUDIT)
        with pytest.raises(queue.Empty):
            handle.wait(timeout=0.01)

    def test_timeout_covers_whole_wait(self):
        """Steady progress does not restart the timeout."""
        handle = RunHandle(run_id="r", kind=RunKind.CLUSTER)
        channel = RunChannel("r", handle.messages)
        stop = threading.Event()

        def feed():
            percent = 0
            while not stop.wait(0.05) and percent < 99:
                percent += 1
                channel.progress(percent)

        threading.Thread(target=feed, daemon=True).start()
        started = time.monotonic()
        try:
            with pytest.raises(queue.Empty):
                handle.wait(timeout=0.3)
        finally:
            stop.set()
        assert time.monotonic() - started < 1.0


class TestBackgroundRunner:
    """Runs on the thread pool."""

    def test_cluster_run(self, runner):
        """Test cluster run messages end in one done message."""
        handle = runner.submit(_request(RunKind.CLUSTER))
        messages = _messages(handle)

        assert all(m.run_id == handle.run_id for m in messages)
        progress = [m.payload for m in messages if m.type is MessageType.PROGRESS]
        assert progress == sorted(set(progress))
        assert progress[0] == 0 and progress[-1] == 100
        assert [m.terminal for m in messages].count(True) == 1

        done = messages[-1]
        assert done.type is MessageType.DONE
        assert all(isinstance(c, Cluster) for c in done.payload)
        assert [c.record_ids for c in done.payload] == [["R1", "R2"]]

    def test_audit_run(self, runner):
        """Test audit run returns findings."""
        result = runner.submit(_request(RunKind.AUDIT)).wait(timeout=TIMEOUT)
        assert result.type is MessageType.DONE
        assert all(isinstance(f, AuditFinding) for f in result.payload)

    def test_learn_run(self, runner):
        """Test learn run returns a rule."""
        result = runner.submit(_request(RunKind.LEARN, record_ids=("R1", "R3"))).wait(timeout=TIMEOUT)
        assert result.type is MessageType.DONE
        assert isinstance(result.payload, Rule)
        assert result.payload.id.startswith("LEARNED_")

    def test_missing_mapping_is_error_message(self, runner):
        """Test engine errors become an error message with their code."""
        mapping = FieldMapping(woman_name="name", husband_name="husband")
        result = runner.submit(_request(RunKind.CLUSTER, mapping=mapping)).wait(timeout=TIMEOUT)
        assert result.type is MessageType.ERROR
        assert result.payload["code"] == "MISSING_FIELD_MAPPING"
        assert result.payload["details"]["missing_fields"] == ["national_id", "phone"]

    def test_learn_needs_two_records(self, runner):
        """Test learning one record is an invalid selection."""
        result = runner.submit(_request(RunKind.LEARN, record_ids=("R1",))).wait(timeout=TIMEOUT)
        assert result.type is MessageType.ERROR
        assert result.payload["code"] == "INVALID_SELECTION"

    def test_learn_unknown_record(self, runner):
        """Test unknown record ids are reported."""
        result = runner.submit(_request(RunKind.LEARN, record_ids=("R1", "R99"))).wait(timeout=TIMEOUT)
        assert result.payload["code"] == "INVALID_SELECTION"
        assert result.payload["details"]["unknown"] == ["R99"]

    def test_learn_already_covered(self, runner):
        """Test a pair the rules already match is not learned."""
        result = runner.submit(_request(RunKind.LEARN, record_ids=("R1", "R2"))).wait(timeout=TIMEOUT)
        assert result.type is MessageType.ERROR
        assert result.payload["code"] == "PATTERN_ALREADY_COVERED"
        assert "FULL_WOMAN_LINEAGE" in result.payload["details"]["matched_rules"]

    def test_learn_nothing_in_common(self, runner):
        """Test a pair with no signal cannot be learned."""
        rows = [
            row("علي", "بكر", nid="1", phone="711111111"),
            row("ناصر", "زيد", nid="2", phone="722222222"),
        ]
        result = runner.submit(_request(RunKind.LEARN, rows=rows, record_ids=("R1", "R2"))).wait(timeout=TIMEOUT)
        assert result.payload["code"] == "NO_PATTERN_TO_LEARN"

    def test_concurrent_runs_are_independent(self, runner):
        """Test concurrent runs give identical results."""
        handles = [runner.submit(_request(RunKind.CLUSTER)) for _ in range(4)]
        results = [handle.wait(timeout=TIMEOUT) for handle in handles]
        assert len({handle.run_id for handle in handles}) == 4
        assert all(r.type is MessageType.DONE for r in results)
        assert len({repr([c.to_dict() for c in r.payload]) for r in results}) == 1


class TestExecute:
    def test_synchronous_cluster(self):
        """Test execute() runs a request inline."""
        clusters = execute(_request(RunKind.CLUSTER), ResolutionConfig())
        assert [c.cluster_id for c in clusters] == ["CL-0001"]
