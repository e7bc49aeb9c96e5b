"""
Stub pipeline stages used across the test modules.

Each stub records what it saw so tests can assert which records reached
which stage.
"""
from framebatch.core.base import (
    ContextListener,
    FrameFilter,
    FrameMapper,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from framebatch.core.context import TransactionContext
from framebatch.core.errors import (
    ConfigurationError,
    MappingError,
    TaskError,
    TransformError,
    ValidationError,
    WriteError,
)
from framebatch.core.frame import Frame
from framebatch.readers.memory import ListReader


def records(count):
    """[{"id": 1}, {"id": 2}, ...]"""
    return [{"id": i} for i in range(1, count + 1)]


def _scope(context):
    return "txn" if isinstance(context, TransactionContext) else "job"


class TrackingReader(ListReader):
    """ListReader that counts opens and can fail on a given row."""

    def __init__(self, rows, fail_on=None, config=None):
        super().__init__({**(config or {}), "records": rows})
        self.fail_on = fail_on
        self.opened = 0
        self.closed = 0

    def setup(self):
        self.opened += 1
        super().setup()

    def teardown(self):
        self.closed += 1

    def read(self, transaction):
        if self.fail_on is not None and self._index + 1 == self.fail_on:
            raise IOError("connection reset")
        return super().read(transaction)


class RecordingWriter(FrameWriter):
    def __init__(self, name="writer", fail=False, fail_on_open=False):
        super().__init__({"name": name})
        self.fail = fail
        self.fail_on_open = fail_on_open
        self.frames = []
        self.opened = 0
        self.closed = 0

    def setup(self):
        self.opened += 1
        if self.fail_on_open:
            raise ConfigurationError(f"{self.name} cannot open")

    def teardown(self):
        self.closed += 1

    def write(self, frame):
        if self.fail:
            raise WriteError("disk full")
        self.frames.append(frame.to_dict())


class DropRowFilter(FrameFilter):
    """Drops the listed rows by nulling the working frame."""

    def __init__(self, rows=(), name="drop"):
        super().__init__({"name": name})
        self.rows = set(rows)
        self.seen = []

    def process(self, transaction):
        self.seen.append(transaction.row)
        if transaction.row in self.rows:
            transaction.working_frame = None
        return True


class StopFilter(FrameFilter):
    """Always asks the engine to skip the remaining filters."""

    def __init__(self, name="stop"):
        super().__init__({"name": name})
        self.seen = []

    def process(self, transaction):
        self.seen.append(transaction.row)
        return False


class CountingValidator(FrameValidator):
    def __init__(self, description=None, result=True, raise_on=()):
        config = {"description": description} if description else {}
        super().__init__(config)
        self.result = result
        self.raise_on = set(raise_on)
        self.seen = []

    def process(self, transaction):
        self.seen.append(transaction.row)
        if transaction.row in self.raise_on:
            raise ValidationError("cannot evaluate rule")
        return self.result


class RecordingTransform(FrameTransform):
    def __init__(self, name="transform", fail_on=(), drop_on=(), mutate=None):
        super().__init__({"name": name})
        self.fail_on = set(fail_on)
        self.drop_on = set(drop_on)
        self.mutate = mutate
        self.seen = []

    def process(self, frame):
        row = self.context.transaction.row
        self.seen.append(row)
        if row in self.fail_on:
            raise TransformError("bad value")
        if row in self.drop_on:
            return None
        if self.mutate is not None:
            self.mutate(frame)
        return frame


class RecordingMapper(FrameMapper):
    def __init__(self, fail_on=()):
        super().__init__({"name": "mapper"})
        self.fail_on = set(fail_on)
        self.seen = []

    def process(self, transaction):
        self.seen.append(transaction.row)
        if transaction.row in self.fail_on:
            raise MappingError("no target field")
        for name, value in transaction.working_frame.items():
            transaction.target_frame[name] = value


class RecordingTask(TransformTask):
    """Appends (name, event) tuples to a shared log."""

    def __init__(self, name, log, fail=False, action=None, enabled=True):
        super().__init__({"name": name, "enabled": enabled})
        self.log = log
        self.fail = fail
        self.action = action

    def setup(self):
        self.log.append((self.name, "open"))

    def execute(self):
        self.log.append((self.name, "execute"))
        if self.action is not None:
            self.action(self)
        if self.fail:
            raise TaskError(f"{self.name} exploded")

    def teardown(self):
        self.log.append((self.name, "close"))


class RecordingListener(ContextListener):
    def __init__(self, name="recorder"):
        super().__init__({"name": name})
        self.events = []
        self.transaction_failures = []
        self.source_frames = []

    def setup(self):
        self.events.append(("open",))

    def teardown(self):
        self.events.append(("close",))

    def on_start(self, context):
        self.events.append(("start", _scope(context)))

    def on_end(self, context):
        self.events.append(("end", _scope(context)))
        if isinstance(context, TransactionContext):
            self.transaction_failures.extend(context.failures)
            if context.source_frame is not None:
                self.source_frames.append(context.source_frame.to_dict())

    def on_read(self, transaction, reader):
        self.events.append(("read", transaction.row))

    def on_write(self, transaction, writer):
        self.events.append(("write", transaction.row, writer.name))

    def on_error(self, context):
        self.events.append(("error", _scope(context)))

    def on_validation_failed(self, transaction, message):
        self.events.append(("validation_failed", transaction.row, message))

    def count(self, event):
        return sum(1 for e in self.events if e[0] == event)


class ExplodingListener(ContextListener):
    """Raises from every callback."""

    def on_start(self, context):
        raise RuntimeError("listener bug")

    def on_read(self, transaction, reader):
        raise RuntimeError("listener bug")

    def on_end(self, context):
        raise RuntimeError("listener bug")


class ClosableStore:
    def __init__(self, name):
        self.name = name
        self.closed = 0

    def close(self):
        self.closed += 1


def frame(**fields):
    return Frame.from_dict(fields)
