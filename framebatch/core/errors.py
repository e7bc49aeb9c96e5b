"""
Exceptions and failure records for the pipeline engine.

Exception Hierarchy:
    FrameBatchError (base)
    ├── ConfigurationError   (job scope)
    ├── TaskError            (job scope)
    ├── JobError             (job scope)
    ├── ValidationError      (record scope)
    ├── TransformError       (record scope)
    ├── MappingError         (record scope)
    └── WriteError           (logged only)

Stages raise these exceptions; the engine catches them at the stage
boundary and turns each one into a StageFailure value that is stored on
the owning context and escalated according to its scope.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from framebatch.core.enums import FailureScope


class FrameBatchError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (stage, row, path, etc.)
        original_exception: The original exception that was caught (if any)
    """

    scope: FailureScope = FailureScope.RECORD

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        base_msg = self.message

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: "
                f"{self.original_exception}"
            )

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "scope": str(self.scope),
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


class ConfigurationError(FrameBatchError):
    """
    A stage could not be constructed or opened.

    Fatal to the run; surfaced before any record is processed.
    """
    scope = FailureScope.JOB


class TaskError(FrameBatchError):
    """
    A pre- or post-process task failed.

    Stops the current task phase and puts the job in error. Tasks that were
    already opened are still closed.
    """
    scope = FailureScope.JOB


class JobError(FrameBatchError):
    """Raised by callers that want a failed job surfaced as an exception."""
    scope = FailureScope.JOB


class ValidationError(FrameBatchError):
    """
    A validator could not evaluate a record.

    Returning False from a validator is the normal, non-fatal way to report
    a failed rule; raising this puts the current record in error.
    """
    scope = FailureScope.RECORD


class TransformError(FrameBatchError):
    """A transformer failed; fatal to the current record only."""
    scope = FailureScope.RECORD


class MappingError(FrameBatchError):
    """The mapper failed; fatal to the current record only."""
    scope = FailureScope.RECORD


class WriteError(FrameBatchError):
    """A writer failed; logged, never escalated."""
    scope = FailureScope.NONE


@dataclass
class StageFailure:
    """
    Explicit record of a failure raised by a stage.

    Stored on the context that owns the failure (transaction for record
    scope, job context otherwise).
    """
    stage: str
    phase: str
    scope: FailureScope
    message: str
    row: int = 0
    error_type: str = "Exception"
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_exception(
        cls,
        stage: str,
        phase: str,
        error: BaseException,
        scope: FailureScope,
        row: int = 0,
    ) -> "StageFailure":
        """
        Build a failure record from a caught exception.

        The scope comes from the phase the exception was raised in, not from
        the exception class: a transformer raising WriteError still fails
        its record.
        """
        if isinstance(error, FrameBatchError):
            message = error.message
        else:
            message = str(error) or error.__class__.__name__
        return cls(
            stage=stage,
            phase=phase,
            scope=scope,
            message=message,
            row=row,
            error_type=error.__class__.__name__,
        )

    def describe(self) -> str:
        return f"{self.stage}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "phase": self.phase,
            "scope": str(self.scope),
            "message": self.message,
            "row": self.row,
            "error_type": self.error_type,
            "occurred_at": self.occurred_at.isoformat(),
        }
