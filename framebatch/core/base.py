"""
Stage Contracts
===============

Abstract base classes for every pluggable pipeline component.

All stages share the Component lifecycle: built from an options mapping,
opened with the job context, closed once. Subclasses put their own setup in
``setup()`` and cleanup in ``teardown()``; the base class guarantees that
teardown runs at most once per open.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from framebatch.core.errors import ConfigurationError
from framebatch.core.frame import Frame

if TYPE_CHECKING:
    from framebatch.core.context import TransactionContext, TransformContext

# Type alias for component options
OptionsDict = dict[str, Any]


class Component(ABC):
    """
    Base class for all pipeline components.

    Reserved options: ``name``, ``description`` and ``enabled``. Everything
    else is available to the subclass through ``get_option``.
    """

    def __init__(self, config: Optional[OptionsDict] = None):
        """
        Initialize component with configuration.

        Args:
            config: Options mapping (usually the component's config section)
        """
        self.config: OptionsDict = dict(config or {})
        self.name: str = self.config.get("name") or self.__class__.__name__
        self.description: Optional[str] = self.config.get("description")
        self.enabled: bool = bool(self.config.get("enabled", True))
        self.context: Optional["TransformContext"] = None
        self._is_open = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self, context: "TransformContext") -> None:
        """
        Open the component for a run.

        May raise ConfigurationError or call ``context.set_error``.
        """
        self.context = context
        self._is_open = True
        self.setup()

    def close(self) -> None:
        """Release resources. Calling it again, or before open, does nothing."""
        if not self._is_open:
            return
        self._is_open = False
        self.teardown()

    @property
    def is_open(self) -> bool:
        return self._is_open

    def setup(self) -> None:
        """Hook for subclasses; called at the end of open()."""
        pass

    def teardown(self) -> None:
        """Hook for subclasses; called once by close()."""
        pass

    # =========================================================================
    # Options
    # =========================================================================

    def get_option(self, key: str, default: Any = None) -> Any:
        """
        Read an option, resolving "${name}" references in string values
        against the symbol table of the open context.
        """
        value = self.config.get(key, default)
        if isinstance(value, str) and self.context is not None:
            return self.context.symbols.resolve(value)
        return value

    def require_option(self, key: str) -> Any:
        value = self.get_option(key)
        if value is None or value == "":
            raise ConfigurationError(
                f"{self.name} requires the '{key}' option",
                context={"component": self.__class__.__name__},
            )
        return value

    def get_stats(self) -> dict[str, Any]:
        return {"name": self.name, "enabled": self.enabled, "open": self._is_open}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class FrameReader(Component):
    """
    Source of frames.

    ``read`` returns None for input that is not a record (a blank line, say)
    without signalling end of input; ``eof`` reports when the source is
    exhausted. A reader may set ``transaction.last_frame``.
    """

    def __init__(self, config: Optional[OptionsDict] = None):
        super().__init__(config)
        self.frames_read = 0

    @abstractmethod
    def read(self, transaction: "TransactionContext") -> Optional[Frame]:
        pass

    @abstractmethod
    def eof(self) -> bool:
        pass

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), "frames_read": self.frames_read}


class FrameFilter(Component):
    """
    Decides whether a record continues.

    Returning False stops the remaining filters (early exit) without
    dropping the record. Dropping is done by setting
    ``transaction.working_frame = None``.
    """

    @abstractmethod
    def process(self, transaction: "TransactionContext") -> bool:
        pass


class FrameValidator(Component):
    """
    Checks one rule against a record.

    Returning False reports a failed rule; the remaining validators still
    run. Raising ValidationError puts the record in error.
    """

    @abstractmethod
    def process(self, transaction: "TransactionContext") -> bool:
        pass

    @property
    def failure_message(self) -> str:
        return self.description or self.__class__.__name__


class FrameTransform(Component):
    """
    Transforms the working frame.

    Returns the new working frame; returning None drops the record.
    """

    @abstractmethod
    def process(self, frame: Frame) -> Optional[Frame]:
        pass


class FrameMapper(Component):
    """Moves fields from the working frame into the target frame."""

    @abstractmethod
    def process(self, transaction: "TransactionContext") -> None:
        pass


class FrameWriter(Component):
    """Sink for target frames."""

    def __init__(self, config: Optional[OptionsDict] = None):
        super().__init__(config)
        self.frames_written = 0

    @abstractmethod
    def write(self, frame: Frame) -> None:
        pass

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), "frames_written": self.frames_written}


class TransformTask(Component):
    """A unit of work run before or after the read loop."""

    @abstractmethod
    def execute(self) -> None:
        pass


class ContextListener(Component):
    """
    Receives lifecycle events from the job and transaction contexts.

    All callbacks are no-ops; override the ones of interest. ``on_start``
    and ``on_end`` receive either the job context or a transaction context.
    """

    def on_start(self, context) -> None:
        pass

    def on_end(self, context) -> None:
        pass

    def on_read(self, transaction: "TransactionContext", reader: FrameReader) -> None:
        pass

    def on_write(self, transaction: "TransactionContext", writer: FrameWriter) -> None:
        pass

    def on_error(self, context) -> None:
        pass

    def on_validation_failed(self, transaction: "TransactionContext", message: str) -> None:
        pass


@runtime_checkable
class DataStore(Protocol):
    """Handle to an external store owned by the job context."""

    name: str

    def close(self) -> None:
        ...
