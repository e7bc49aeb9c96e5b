"""
Unit Tests for TransformEngine
==============================

Drives the engine with the stub stages in helpers.py and checks which
records reach which stage, how failures escalate and how the run is
reported.
"""

import json
from pathlib import Path

import pytest

from framebatch.core.base import ContextListener, FrameWriter
from framebatch.core.context import TransformContext
from framebatch.core.engine import TransformEngine, sanitize_name
from framebatch.core.enums import EngineState, FailureScope
from framebatch.core.persistent import PersistentContext
from framebatch.core.symbols import Symbols
from helpers import (
    CountingValidator,
    DropRowFilter,
    ExplodingListener,
    RecordingMapper,
    RecordingTask,
    RecordingTransform,
    RecordingWriter,
    StopFilter,
    TrackingReader,
    records,
)


def ids(writer):
    return [frame["id"] for frame in writer.frames]


class TestEngineRun:
    """Happy-path runs."""

    def test_every_record_reaches_writer(self, engine, recording_writer):
        """Test all records are written in read order."""
        engine.set_reader(TrackingReader(records(3)))
        engine.add_writer(recording_writer)

        engine.run()

        assert ids(recording_writer) == [1, 2, 3]
        assert engine.state == EngineState.CLOSED
        assert engine.context.is_not_in_error()
        assert engine.stats["frames_read"] == 3
        assert engine.stats["frames_written"] == 3

    def test_every_writer_receives_the_record(self, engine):
        """Test fan-out to several writers."""
        first = RecordingWriter("first")
        second = RecordingWriter("second")
        engine.set_reader(TrackingReader(records(2)))
        engine.add_writer(first)
        engine.add_writer(second)

        engine.run()

        assert ids(first) == [1, 2]
        assert ids(second) == [1, 2]
        assert first.frames_written == 2

    def test_event_order(self, engine, recording_listener, recording_writer):
        """Test listener events arrive in lifecycle order."""
        engine.set_reader(TrackingReader(records(2)))
        engine.add_writer(recording_writer)

        engine.run()

        assert recording_listener.events == [
            ("open",),
            ("start", "job"),
            ("start", "txn"),
            ("read", 1),
            ("write", 1, "writer"),
            ("end", "txn"),
            ("start", "txn"),
            ("read", 2),
            ("write", 2, "writer"),
            ("end", "txn"),
            ("end", "job"),
            ("close",),
        ]

    def test_source_frame_is_not_mutated(self, engine, recording_listener, recording_writer):
        """Test transformers work on a deep copy of the record read."""

        def mutate(frame):
            frame["id"] = frame["id"] * 10
            frame["nested"]["flag"] = False

        engine.set_reader(TrackingReader([{"id": 1, "nested": {"flag": True}}]))
        engine.add_transformer(RecordingTransform(mutate=mutate))
        engine.add_writer(recording_writer)

        engine.run()

        assert recording_writer.frames == [{"id": 10, "nested": {"flag": False}}]
        assert recording_listener.source_frames == [{"id": 1, "nested": {"flag": True}}]

    def test_none_reads_are_skipped(self, engine, recording_listener, recording_writer):
        """Test a None read is not a record but still gets a transaction."""
        engine.set_reader(TrackingReader([{"id": 1}, None, {"id": 2}]))
        engine.add_writer(recording_writer)

        engine.run()

        assert ids(recording_writer) == [1, 2]
        assert recording_listener.count("read") == 2
        assert recording_listener.events.count(("start", "txn")) == 3
        assert engine.context.row == 2

    def test_no_reader_runs_tasks_only(self, engine):
        """Test a job with tasks and no reader or writers completes."""
        log = []
        engine.add_preprocess_task(RecordingTask("pre", log))
        engine.add_postprocess_task(RecordingTask("post", log))

        engine.run()

        assert engine.state == EngineState.CLOSED
        assert ("pre", "execute") in log
        assert ("post", "execute") in log

    def test_symbols_published(self, engine, temp_dir):
        """Test job symbols are available after opening."""
        engine.run()

        assert engine.symbols[Symbols.JOB_NAME] == "test-job"
        assert engine.symbols[Symbols.JOB_ID] == engine.job_id
        assert engine.symbols[Symbols.RUN_COUNT] == 1
        assert engine.symbols[Symbols.JOB_DIRECTORY] == str(temp_dir / "wrk" / "test-job")
        assert Symbols.DATE in engine.symbols

    def test_current_frame_symbols(self, engine):
        """Test CurrentFrame and LastFrame track the record being processed."""
        seen = []

        def capture(frame):
            seen.append((engine.symbols[Symbols.CURRENT_FRAME], engine.symbols[Symbols.LAST_FRAME]))

        engine.set_reader(TrackingReader(records(2)))
        engine.add_transformer(RecordingTransform(mutate=capture))

        engine.run()

        assert seen == [(1, False), (2, True)]

    def test_context_fields_resolved(self, engine):
        """Test configured context fields see the job symbols."""
        engine.context = TransformContext(fields={"Output": "${JobName}.csv"})

        engine.run()

        assert engine.context.get("Output") == "test-job.csv"

    def test_add_methods_return_index(self):
        """Test add_* return the position of the stage, -1 for None."""
        engine = TransformEngine(name="indexes")

        assert engine.add_filter(DropRowFilter()) == 0
        assert engine.add_filter(DropRowFilter()) == 1
        assert engine.add_filter(None) == -1
        assert engine.add_writer(RecordingWriter()) == 0
        assert len(engine.filters) == 2


class TestEngineStates:
    """Engine state machine."""

    def test_states_through_a_run(self, engine):
        """Test the state seen from pre-process, read loop and post-process."""
        observed = {}

        def remember(key):
            return lambda task: observed.setdefault(key, engine.state)

        engine.add_preprocess_task(RecordingTask("pre", [], action=remember("pre")))
        engine.add_postprocess_task(RecordingTask("post", [], action=remember("post")))
        engine.set_reader(TrackingReader(records(1)))
        engine.add_transformer(
            RecordingTransform(mutate=lambda frame: observed.setdefault("loop", engine.state))
        )

        assert engine.state == EngineState.CREATED
        engine.run()

        assert observed == {
            "pre": EngineState.OPENING,
            "loop": EngineState.RUNNING,
            "post": EngineState.DRAINING,
        }
        assert engine.state == EngineState.CLOSED

    def test_reentrant_run_is_ignored(self, engine, recording_writer):
        """Test run() called during a run does nothing."""
        engine.add_preprocess_task(RecordingTask("again", [], action=lambda task: engine.run()))
        engine.set_reader(TrackingReader(records(2)))
        engine.add_writer(recording_writer)

        engine.run()

        assert engine.run_count == 1
        assert ids(recording_writer) == [1, 2]
        assert engine.state == EngineState.CLOSED

    def test_rerun(self, engine, recording_writer):
        """Test an engine can run again after completing."""
        reader = TrackingReader(records(2))
        engine.set_reader(reader)
        engine.add_writer(recording_writer)

        engine.run()
        engine.run()

        assert engine.run_count == 2
        assert reader.opened == 2
        assert reader.closed == 2
        assert ids(recording_writer) == [1, 2, 1, 2]
        assert engine.context.run_count == 2
        assert engine.symbols[Symbols.RUN_COUNT] == 2

    def test_rerun_after_error(self, engine):
        """Test an error does not stick to the next run."""
        writer = RecordingWriter(fail_on_open=True)
        engine.set_reader(TrackingReader(records(1)))
        engine.add_writer(writer)

        engine.run()
        assert engine.state == EngineState.ERROR

        writer.fail_on_open = False
        engine.run()

        assert engine.state == EngineState.CLOSED
        assert engine.context.is_not_in_error()
        assert ids(writer) == [1]

    def test_unexpected_failure_is_contained(self, engine):
        """Test an exception outside any stage boundary does not escape run()."""

        class BrokenReader(TrackingReader):
            def eof(self):
                raise RuntimeError("eof exploded")

        engine.set_reader(BrokenReader(records(1)))

        engine.run()

        assert engine.state == EngineState.ERROR
        assert "eof exploded" in engine.context.error_message


class TestEngineDirectories:
    """Work and job directory resolution."""

    def test_named_job_directory(self, temp_dir):
        """Test the job directory is the work directory plus the sanitized name."""
        engine = TransformEngine(name="daily orders/v2", work_directory=str(temp_dir / "w"))

        engine.run()

        assert engine.work_directory == temp_dir / "w"
        assert engine.job_directory == temp_dir / "w" / "daily_orders_v2"

    def test_work_directory_from_environment(self, temp_dir, monkeypatch):
        """Test $FRAMEBATCH_WORK is used when no work directory is given."""
        monkeypatch.setenv("FRAMEBATCH_WORK", str(temp_dir / "env"))
        engine = TransformEngine(name="job")

        engine.run()

        assert engine.work_directory == temp_dir / "env"
        assert engine.job_directory == temp_dir / "env" / "job"

    def test_default_work_directory(self):
        """Test ./wrk is the fallback work directory."""
        engine = TransformEngine(name="job")

        engine.run()

        assert engine.work_directory == Path.cwd() / "wrk"

    def test_unnamed_job(self):
        """Test an unnamed job gets a generated name and runs in the current directory."""
        engine = TransformEngine()

        engine.run()

        assert type(engine.context) is TransformContext
        assert engine.state == EngineState.CLOSED
        assert engine.name == f"TransformEngine-{engine.instance_id}"
        assert engine.job_directory == Path.cwd()
        assert engine.work_directory == Path.cwd()

    def test_explicit_job_directory(self, temp_dir):
        """Test an explicit job directory wins over the derived one."""
        engine = TransformEngine(name="job", job_directory=str(temp_dir / "here"))

        engine.run()

        assert engine.job_directory == temp_dir / "here"

    def test_sanitize_name(self):
        """Test unsafe characters are replaced."""
        assert sanitize_name("a b/c:d") == "a_b_c_d"
        assert sanitize_name("orders-v1.2") == "orders-v1.2"


class TestFilteringAndValidation:
    """Filter and validator chains."""

    def test_dropped_record_skips_later_stages(self, engine, recording_writer):
        """Test a filter dropping a record hides it from everything after it."""
        later = DropRowFilter(name="later")
        transform = RecordingTransform()
        engine.set_reader(TrackingReader(records(3)))
        engine.add_filter(DropRowFilter(rows=[2]))
        engine.add_filter(later)
        engine.add_transformer(transform)
        engine.add_writer(recording_writer)

        engine.run()

        assert later.seen == [1, 3]
        assert transform.seen == [1, 3]
        assert ids(recording_writer) == [1, 3]
        assert engine.context.transaction_errors == 0

    def test_filtered_record_counts(self, engine, recording_listener, recording_writer):
        """Test three reads and two writes when the middle record is filtered."""
        engine.set_reader(TrackingReader(records(3)))
        engine.add_filter(DropRowFilter(rows=[2]))
        engine.add_writer(recording_writer)

        engine.run()

        assert recording_listener.count("read") == 3
        assert recording_listener.count("write") == 2
        assert recording_writer.frames_written == 2

    def test_false_return_stops_filters_only(self, engine, recording_writer):
        """Test returning False skips remaining filters but keeps the record."""
        stop = StopFilter()
        after = DropRowFilter(rows=[1, 2], name="after")
        engine.set_reader(TrackingReader(records(2)))
        engine.add_filter(stop)
        engine.add_filter(after)
        engine.add_writer(recording_writer)

        engine.run()

        assert stop.seen == [1, 2]
        assert after.seen == []
        assert ids(recording_writer) == [1, 2]

    def test_validation_messages_aggregated(self, engine, recording_listener, recording_writer):
        """Test failed rules are reported once per record with joined messages."""
        engine.set_reader(TrackingReader(records(1)))
        engine.add_validator(CountingValidator("rule a", result=False))
        engine.add_validator(CountingValidator("rule b", result=True))
        engine.add_validator(CountingValidator("rule c", result=False))
        engine.add_writer(recording_writer)

        engine.run()

        failures = [e for e in recording_listener.events if e[0] == "validation_failed"]
        assert failures == [("validation_failed", 1, "rule a, rule c")]
        assert ids(recording_writer) == [1]

    def test_validator_default_message(self, engine, recording_listener):
        """Test a validator without description reports its class name."""
        engine.set_reader(TrackingReader(records(1)))
        engine.add_validator(CountingValidator(result=False))

        engine.run()

        assert ("validation_failed", 1, "CountingValidator") in recording_listener.events

    def test_raising_validator_fails_record(self, engine, recording_listener, recording_writer):
        """Test a validator exception puts only that record in error."""
        second = CountingValidator("second")
        engine.set_reader(TrackingReader(records(2)))
        engine.add_validator(CountingValidator("first", raise_on=[1]))
        engine.add_validator(second)
        engine.add_writer(recording_writer)

        engine.run()

        assert second.seen == [2]
        assert ids(recording_writer) == [2]
        assert engine.context.transaction_errors == 1
        assert engine.context.is_not_in_error()
        failure = recording_listener.transaction_failures[0]
        assert failure.scope == FailureScope.RECORD
        assert failure.row == 1
        assert failure.message == "cannot evaluate rule"

    def test_disabled_stages_are_skipped(self, engine, recording_writer):
        """Test disabled filters, validators and transformers never run."""
        dropper = DropRowFilter(rows=[1])
        dropper.enabled = False
        validator = CountingValidator("off", result=False)
        validator.enabled = False
        transform = RecordingTransform(fail_on=[1])
        transform.enabled = False
        engine.set_reader(TrackingReader(records(1)))
        engine.add_filter(dropper)
        engine.add_validator(validator)
        engine.add_transformer(transform)
        engine.add_writer(recording_writer)

        engine.run()

        assert dropper.seen == []
        assert validator.seen == []
        assert transform.seen == []
        assert not dropper.is_open
        assert ids(recording_writer) == [1]


class TestTransformAndMap:
    """Transformer and mapper behaviour."""

    def test_transform_failure_fails_record(self, engine, recording_listener, recording_writer):
        """Test a transformer exception skips that record's later stages."""
        after = RecordingTransform(name="after")
        engine.set_reader(TrackingReader(records(3)))
        engine.add_transformer(RecordingTransform(fail_on=[2]))
        engine.add_transformer(after)
        engine.add_writer(recording_writer)

        engine.run()

        assert after.seen == [1, 3]
        assert ids(recording_writer) == [1, 3]
        assert engine.context.transaction_errors == 1
        assert engine.state == EngineState.CLOSED
        assert ("error", "txn") in recording_listener.events
        assert recording_listener.transaction_failures[0].describe() == "transform: bad value"

    def test_transformer_returning_none_drops(self, engine, recording_writer):
        """Test a transformer can drop a record without an error."""
        after = RecordingTransform(name="after")
        engine.set_reader(TrackingReader(records(2)))
        engine.add_transformer(RecordingTransform(drop_on=[1]))
        engine.add_transformer(after)
        engine.add_writer(recording_writer)

        engine.run()

        assert after.seen == [2]
        assert ids(recording_writer) == [2]
        assert engine.context.transaction_errors == 0

    def test_custom_mapper(self, engine, recording_writer):
        """Test a configured mapper replaces the default one."""
        mapper = RecordingMapper(fail_on=[2])
        engine.set_reader(TrackingReader(records(3)))
        engine.set_mapper(mapper)
        engine.add_writer(recording_writer)

        engine.run()

        assert mapper.seen == [1, 2, 3]
        assert ids(recording_writer) == [1, 3]
        assert engine.context.transaction_errors == 1

    def test_disabled_mapper_uses_default(self, engine, recording_writer):
        """Test a disabled mapper falls back to copying the working frame."""
        mapper = RecordingMapper(fail_on=[1])
        mapper.enabled = False
        engine.set_reader(TrackingReader(records(1)))
        engine.set_mapper(mapper)
        engine.add_writer(recording_writer)

        engine.run()

        assert mapper.seen == []
        assert ids(recording_writer) == [1]


class TestWriters:
    """Writer failures and drain behaviour."""

    def test_writer_failure_is_logged_only(self, engine, recording_listener):
        """Test a failing writer neither fails the record nor stops other writers."""
        broken = RecordingWriter("broken", fail=True)
        healthy = RecordingWriter("healthy")
        engine.set_reader(TrackingReader(records(2)))
        engine.add_writer(broken)
        engine.add_writer(healthy)

        engine.run()

        assert ids(healthy) == [1, 2]
        assert engine.context.transaction_errors == 0
        assert engine.state == EngineState.CLOSED
        assert [f.scope for f in recording_listener.transaction_failures] == [
            FailureScope.NONE,
            FailureScope.NONE,
        ]
        writes = [e for e in recording_listener.events if e[0] == "write"]
        assert writes == [("write", 1, "healthy"), ("write", 2, "healthy")]

    def test_writers_without_reader(self, engine):
        """Test enabled writers with no reader is a job error."""
        engine.add_writer(RecordingWriter())

        engine.run()

        assert engine.state == EngineState.ERROR
        assert engine.context.error_message == "Writers are configured but there is no reader"

    def test_disabled_reader_counts_as_missing(self, engine):
        """Test a disabled reader does not satisfy the writers."""
        reader = TrackingReader(records(1))
        reader.enabled = False
        engine.set_reader(reader)
        engine.add_writer(RecordingWriter())

        engine.run()

        assert engine.context.is_in_error()
        assert reader.opened == 0

    def test_writers_closed_before_postprocess(self, engine, recording_writer):
        """Test post-process tasks see closed writers."""
        observed = []
        engine.set_reader(TrackingReader(records(1)))
        engine.add_writer(recording_writer)
        engine.add_postprocess_task(
            RecordingTask("check", [], action=lambda task: observed.append(recording_writer.closed))
        )

        engine.run()

        assert observed == [1]
        assert recording_writer.closed == 1


class TestJobFailures:
    """Failures that put the whole job in error."""

    def test_open_failure_aborts(self, engine, recording_listener):
        """Test a stage failing to open stops the job before any read."""
        reader = TrackingReader(records(3))
        log = []
        engine.set_reader(reader)
        engine.add_writer(RecordingWriter(fail_on_open=True))
        engine.add_postprocess_task(RecordingTask("post", log))

        engine.run()

        assert engine.state == EngineState.ERROR
        assert engine.context.state == "Writer Init"
        assert engine.context.error_message == "writer: writer cannot open"
        assert recording_listener.count("read") == 0
        assert log == []
        assert reader.closed == 1
        assert engine.context.failures[0].scope == FailureScope.JOB

    def test_set_error_during_open_aborts(self, engine):
        """Test a stage calling set_error while opening aborts the run."""

        class RefusingWriter(FrameWriter):
            def setup(self):
                self.context.set_error("target unavailable")

            def write(self, frame):
                pass

        reader = TrackingReader(records(1))
        filt = DropRowFilter()
        engine.set_reader(reader)
        engine.add_writer(RefusingWriter())
        engine.add_filter(filt)

        engine.run()

        assert engine.context.error_message == "target unavailable"
        assert not filt.is_open
        assert filt.seen == []

    def test_reader_failure(self, engine, recording_writer):
        """Test a reader exception ends the read loop with a job error."""
        log = []
        engine.set_reader(TrackingReader(records(5), fail_on=3))
        engine.add_writer(recording_writer)
        engine.add_postprocess_task(RecordingTask("post", log))

        engine.run()

        assert ids(recording_writer) == [1, 2]
        assert engine.state == EngineState.ERROR
        assert engine.context.state == "Read"
        assert engine.context.error_message == "TrackingReader: connection reset"
        assert log == []
        assert recording_writer.closed == 1

    def test_preprocess_failure(self, engine):
        """Test a failing pre-process task stops the remaining tasks and the read loop."""
        log = []
        reader = TrackingReader(records(1))
        engine.set_reader(reader)
        engine.add_preprocess_task(RecordingTask("a", log, fail=True))
        engine.add_preprocess_task(RecordingTask("b", log))

        engine.run()

        assert log == [("a", "open"), ("a", "execute"), ("a", "close")]
        assert reader.opened == 0
        assert engine.context.state == "Pre-Process"
        assert engine.context.error_message == "a: a exploded"

    def test_second_preprocess_task_fails(self, engine):
        """Test both tasks are closed and no reader or writer is opened."""
        log = []
        reader = TrackingReader(records(2))
        writer = RecordingWriter()
        engine.set_reader(reader)
        engine.add_writer(writer)
        engine.add_preprocess_task(RecordingTask("first", log))
        engine.add_preprocess_task(RecordingTask("second", log, fail=True))

        engine.run()

        assert ("first", "close") in log
        assert ("second", "close") in log
        assert engine.context.is_in_error()
        assert reader.opened == 0
        assert writer.opened == 0

    def test_tasks_run_in_order_and_close(self, engine):
        """Test tasks are opened and executed in order, then all closed."""
        log = []
        engine.add_preprocess_task(RecordingTask("a", log))
        engine.add_preprocess_task(RecordingTask("off", log, enabled=False))
        engine.add_preprocess_task(RecordingTask("b", log))

        engine.run()

        assert log == [
            ("a", "open"),
            ("a", "execute"),
            ("b", "open"),
            ("b", "execute"),
            ("a", "close"),
            ("b", "close"),
        ]

    def test_listener_open_failure(self, engine):
        """Test a listener that cannot open fails the job before pre-processing."""

        class BadListener(ContextListener):
            def setup(self):
                raise RuntimeError("no socket")

        log = []
        engine.add_listener(BadListener())
        engine.add_preprocess_task(RecordingTask("pre", log))

        engine.run()

        assert engine.context.state == "Listener Init"
        assert log == []

    def test_listener_exceptions_do_not_fail_job(self, engine, recording_writer):
        """Test listener callbacks that raise are ignored."""
        engine.add_listener(ExplodingListener())
        engine.set_reader(TrackingReader(records(2)))
        engine.add_writer(recording_writer)

        engine.run()

        assert engine.state == EngineState.CLOSED
        assert ids(recording_writer) == [1, 2]

    def test_error_event_fired_once_for_job(self, engine, recording_listener):
        """Test the job error is delivered to listeners."""
        engine.set_reader(TrackingReader(records(2), fail_on=1))

        engine.run()

        assert recording_listener.events.count(("error", "job")) == 1


class TestEnginePersistence:
    """Engine driving a persistent context."""

    def test_context_file_in_job_directory(self, engine, temp_dir):
        """Test RunCount increments across runs and is saved in the job directory."""
        engine.context = PersistentContext()

        engine.run()
        engine.close()
        engine.run()
        engine.close()

        path = temp_dir / "wrk" / "test-job" / "context.json"
        assert json.loads(path.read_text())["RunCount"] == 2
        assert engine.symbols[Symbols.RUN_COUNT] == 2

    def test_previous_run_published_on_next_run(self, engine):
        """Test the second run sees the start of the first as PreviousRunDateTime."""
        engine.context = PersistentContext()

        engine.run()
        engine.close()
        first_start = engine.context.start_time
        assert Symbols.PREVIOUS_RUN_DATETIME not in engine.symbols

        engine.run()
        engine.close()

        assert engine.symbols[Symbols.PREVIOUS_RUN_DATETIME] == first_start.strftime("%Y-%m-%d %H:%M:%S")
        assert engine.symbols[Symbols.PREVIOUS_RUN_DATE] == first_start.strftime("%Y-%m-%d")

    def test_saved_after_failed_run(self, engine, temp_dir):
        """Test the bag is persisted even when the job fails."""
        engine.context = PersistentContext(fields={"Region": "north"})
        engine.add_writer(RecordingWriter())

        engine.run()
        engine.close()

        saved = json.loads((temp_dir / "wrk" / "test-job" / "context.json").read_text())
        assert saved["Region"] == "north"
        assert saved["RunCount"] == 1

    def test_context_manager_closes(self, engine, temp_dir):
        """Test leaving the with-block closes the context."""
        engine.context = PersistentContext()

        with engine:
            engine.run()

        assert engine.context.is_closed
        assert (temp_dir / "wrk" / "test-job" / "context.json").exists()

    def test_cannot_replace_context_while_running(self, engine):
        """Test the context setter refuses during a run."""
        errors = []

        def swap(task):
            try:
                engine.context = TransformContext()
            except RuntimeError as e:
                errors.append(str(e))

        engine.add_preprocess_task(RecordingTask("swap", [], action=swap))

        engine.run()

        assert errors == ["Cannot replace the context while a run is in progress"]


@pytest.mark.parametrize("count", [0, 1, 25])
def test_frame_counts(engine, recording_writer, count):
    """Test reader and writer counters for various batch sizes."""
    reader = TrackingReader(records(count))
    engine.set_reader(reader)
    engine.add_writer(recording_writer)

    engine.run()

    assert reader.frames_read == count
    assert recording_writer.frames_written == count
    assert engine.frame_count == 0
