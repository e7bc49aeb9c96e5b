"""
Execution Contexts
==================

OperationalContext is the common base: error flag, timing, a property bag
and listener dispatch. TransformContext is the job-level context of one
engine run; TransactionContext is the per-record context and always points
back at its owning TransformContext.
"""

import copy
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from framebatch.core.enums import RunPhase
from framebatch.core.errors import StageFailure
from framebatch.core.frame import Frame
from framebatch.core.symbols import SymbolTable, Symbols

if TYPE_CHECKING:
    from framebatch.core.base import ContextListener, DataStore, FrameReader, FrameWriter
    from framebatch.core.engine import TransformEngine

logger = logging.getLogger(__name__)

ERROR_STATUS = "Error"
DISPOSITION = "TransformDisposition"

# Field token prefixes understood by TransformContext.resolve_field
WORKING = "Working."
SOURCE = "Source."
TARGET = "Target."
CONTEXT = "Context."
TRANSFORM = "Transform."


class OperationalContext:
    """
    Base context: sticky error flag, start/end timing and a property bag.

    Events raised on the context are delivered to its listeners; a listener
    that raises is logged and otherwise ignored.
    """

    def __init__(self):
        self.error = False
        self.status: Optional[str] = None
        self.error_message: Optional[str] = None
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.properties: dict[str, Any] = {}
        self.row = 0
        self.state: Optional[str] = None
        self.failures: list[StageFailure] = []
        self._listeners: list["ContextListener"] = []
        self._symbols: Optional[SymbolTable] = None
        self._ended = False

    @property
    def listeners(self) -> list["ContextListener"]:
        return self._listeners

    @listeners.setter
    def listeners(self, listeners: list["ContextListener"]) -> None:
        self._listeners = listeners

    @property
    def symbols(self) -> SymbolTable:
        if self._symbols is None:
            self._symbols = SymbolTable()
        return self._symbols

    @symbols.setter
    def symbols(self, symbols: SymbolTable) -> None:
        self._symbols = symbols

    # =========================================================================
    # Property bag
    # =========================================================================

    def get(self, key: str, case_sensitive: bool = True) -> Any:
        """
        Look up a property.

        Args:
            key: Property name.
            case_sensitive: When False, the first key matching regardless of
                case is returned.
        """
        if key is None:
            return None
        if case_sensitive or key in self.properties:
            return self.properties.get(key)
        lowered = key.lower()
        for name, value in self.properties.items():
            if name.lower() == lowered:
                return value
        return None

    def get_as_string(self, key: str, case_sensitive: bool = True) -> Optional[str]:
        value = self.get(key, case_sensitive)
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)

    def set(self, key: str, value: Any) -> None:
        """Set a property; a None value removes it."""
        if value is None:
            self.properties.pop(key, None)
        else:
            self.properties[key] = value

    def contains(self, key: str) -> bool:
        return key in self.properties

    def merge(self, other: "OperationalContext") -> None:
        """Copy every property of another context into this one."""
        if other is not None:
            self.properties.update(copy.deepcopy(other.properties))

    # =========================================================================
    # Error state
    # =========================================================================

    def set_error(self, message: Optional[str] = None) -> None:
        """Put the context in error. The flag stays set for its lifetime."""
        self.error = True
        self.status = ERROR_STATUS
        self.error_message = message
        self._fire("on_error", self)

    def is_in_error(self) -> bool:
        return self.error

    def is_not_in_error(self) -> bool:
        return not self.error

    def add_failure(self, failure: StageFailure) -> None:
        self.failures.append(failure)

    # =========================================================================
    # Timing
    # =========================================================================

    def start(self) -> None:
        """Record the start time and fire on_start."""
        self.start_time = datetime.now()
        self._fire("on_start", self)

    def end(self) -> None:
        """
        Record the end time and fire on_end.

        Only the first call has any effect. A context that was never started
        is started first.
        """
        if self._ended:
            return
        if self.start_time is None:
            self.start()
        self.end_time = datetime.now()
        self._ended = True
        self._fire("on_end", self)

    @property
    def is_ended(self) -> bool:
        return self._ended

    def elapsed(self) -> float:
        """Seconds between start and end (or now, while still running)."""
        if self.start_time is None:
            return 0.0
        finish = self.end_time if self.end_time is not None else datetime.now()
        return (finish - self.start_time).total_seconds()

    # =========================================================================
    # Listener dispatch
    # =========================================================================

    def _fire(self, callback: str, *args: Any) -> None:
        for listener in list(self.listeners):
            if not getattr(listener, "enabled", True):
                continue
            try:
                getattr(listener, callback)(*args)
            except Exception as e:
                logger.warning(
                    f"[{self.__class__.__name__}] Listener "
                    f"{getattr(listener, 'name', listener)} failed in {callback}: {e}"
                )

    def dump(self) -> str:
        lines = [f"{self.__class__.__name__}:"]
        if self.error:
            lines.append(f"  status = {self.status}")
            lines.append(f"  message = {self.error_message}")
        lines.append(f"  row = {self.row}")
        lines.append(f"  elapsed = {self.elapsed():.3f}s")
        for key, value in sorted(self.properties.items()):
            lines.append(f"  '{key}' = {value!r}")
        return "\n".join(lines)


class TransactionContext(OperationalContext):
    """
    Context for processing a single record.

    Holds the three frame slots a record moves through. Setting the working
    frame to None drops the record: no further filter, validator,
    transformer, mapper or writer sees it.
    """

    def __init__(self, context: "TransformContext"):
        super().__init__()
        self.context = context
        self.source_frame: Optional[Frame] = None
        self.working_frame: Optional[Frame] = None
        self.target_frame: Optional[Frame] = None
        self.last_frame = False

    @property
    def listeners(self) -> list["ContextListener"]:
        return self.context.listeners

    @listeners.setter
    def listeners(self, listeners: list["ContextListener"]) -> None:
        raise AttributeError("Transaction listeners belong to the job context")

    @property
    def symbols(self) -> SymbolTable:
        return self.context.symbols

    @symbols.setter
    def symbols(self, symbols: SymbolTable) -> None:
        raise AttributeError("Transaction symbols belong to the job context")

    def get(self, key: str, case_sensitive: bool = True) -> Any:
        """Transaction properties first, then the job context."""
        value = super().get(key, case_sensitive)
        if value is None:
            value = self.context.get(key, case_sensitive)
        return value

    def fire_read(self, reader: "FrameReader") -> None:
        self._fire("on_read", self, reader)

    def fire_write(self, writer: "FrameWriter") -> None:
        self._fire("on_write", self, writer)

    def fire_validation_failed(self, message: str) -> None:
        self._fire("on_validation_failed", self, message)

    def __repr__(self) -> str:
        return f"TransactionContext(row={self.row}, error={self.error})"


class TransformContext(OperationalContext):
    """
    Job-level context for one engine run.

    Owns the data-store handles opened during the run, the current
    TransactionContext and the link back to the engine. The symbol table is
    injected by the engine and shared with every transaction of the run.

    Example:
        context = TransformContext(fields={"Region": "north"})
        engine.context = context
        engine.run()
        context.get("Region")  # "north"
    """

    def __init__(self, fields: Optional[dict[str, Any]] = None):
        super().__init__()
        self.fields: dict[str, Any] = dict(fields or {})
        self.engine: Optional["TransformEngine"] = None
        self.transaction: Optional[TransactionContext] = None
        self.transaction_errors = 0
        self.open_count = 0
        self._databases: dict[str, "DataStore"] = {}
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def run_count(self) -> int:
        """Number of times this context has been opened."""
        return self.open_count

    def open(self) -> None:
        """
        Prepare the context for a run.

        Publishes the run count and copies configured fields into the
        property bag (where not already present) and the symbol table.
        """
        self._closed = False
        self.open_count += 1
        self.symbols[Symbols.RUN_COUNT] = self.run_count

        for key, value in self.fields.items():
            if isinstance(value, str):
                value = self.symbols.resolve(value)
            if key not in self.properties:
                self.properties[key] = value
            self.symbols.put(key, self.properties[key])

        logger.debug(
            f"[{self.__class__.__name__}] Opened (run {self.run_count}, "
            f"{len(self.properties)} properties)"
        )

    def close(self) -> None:
        """Close data stores and record the run disposition. Idempotent."""
        if self._closed:
            return
        self._closed = True

        for name, store in list(self._databases.items()):
            try:
                store.close()
            except Exception as e:
                logger.warning(f"[{self.__class__.__name__}] Failed to close data store {name}: {e}")
        self._databases.clear()

        self.properties[DISPOSITION] = self.disposition()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def reset(self) -> None:
        """
        Clear run state so the context can be reused by another run.

        The property bag survives; errors, timing, failures and the current
        transaction do not.
        """
        self.error = False
        self.status = None
        self.error_message = None
        self.start_time = None
        self.end_time = None
        self.row = 0
        self.state = None
        self.failures = []
        self.transaction = None
        self.transaction_errors = 0
        self._ended = False
        self._closed = False
        self.properties.pop(DISPOSITION, None)

    def disposition(self) -> dict[str, Any]:
        """Summary of how the run ended."""
        return {
            "status": ERROR_STATUS if self.error else "Success",
            "message": self.error_message,
            "rows": self.row,
            "transaction_errors": self.transaction_errors,
            "failures": len(self.failures),
            "elapsed_seconds": round(self.elapsed(), 3),
        }

    # =========================================================================
    # Data stores
    # =========================================================================

    def add_database(self, name: str, handle: "DataStore") -> None:
        """Register a named data store; it is closed when the context closes."""
        if name in self._databases and self._databases[name] is not handle:
            logger.warning(f"[{self.__class__.__name__}] Replacing data store {name}")
        self._databases[name] = handle

    def get_database(self, name: str) -> Optional["DataStore"]:
        return self._databases.get(name)

    @property
    def databases(self) -> dict[str, "DataStore"]:
        return dict(self._databases)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_argument(self, value: Optional[str]) -> Optional[str]:
        """
        Resolve a configuration argument.

        A value naming a context property is replaced by that property,
        anything else is taken literally. Either way "${name}" references
        in the result are then substituted from the symbol table.
        """
        if value is None:
            return None
        looked_up = self.get_as_string(value)
        return self.symbols.resolve(looked_up if looked_up else value)

    def resolve_field(self, token: str) -> Any:
        """
        Resolve a prefixed field token against the current transaction.

        "Working.x", "Source.x" and "Target.x" read the matching frame slot,
        "Context.x" reads the property bag and "Transform.x" the symbol
        table. An unprefixed token reads the working frame, then the context.
        """
        if token is None:
            return None
        txn = self.transaction
        if token.startswith(WORKING):
            return _frame_value(txn.working_frame if txn else None, token[len(WORKING):])
        if token.startswith(SOURCE):
            return _frame_value(txn.source_frame if txn else None, token[len(SOURCE):])
        if token.startswith(TARGET):
            return _frame_value(txn.target_frame if txn else None, token[len(TARGET):])
        if token.startswith(CONTEXT):
            return self.get(token[len(CONTEXT):])
        if token.startswith(TRANSFORM):
            return self.symbols.get(token[len(TRANSFORM):])

        value = _frame_value(txn.working_frame if txn else None, token)
        if value is None:
            value = self.get(token)
        return value

    def set_phase(self, phase: RunPhase) -> None:
        """Record the current phase; frozen once the context is in error."""
        if not self.error:
            self.state = str(phase)


def _frame_value(frame: Optional[Frame], path: str) -> Any:
    if frame is None:
        return None
    return frame.get_path(path)
