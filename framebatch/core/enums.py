"""
Enums for the Pipeline Engine
=============================

Type-safe enumerations for engine states, run phases, component kinds and
failure scopes. Eliminates hardcoded strings throughout the codebase.
"""

from enum import Enum


class EngineState(str, Enum):
    """
    Lifecycle states of a TransformEngine run.

    - CREATED: Engine built, never run
    - OPENING: Context, listeners and pre-process tasks being prepared
    - RUNNING: Per-record read loop
    - DRAINING: Reader/writers closed, post-process tasks executing
    - CLOSED: Run finished without a job error
    - ERROR: Run finished (or is finishing) with a job error
    """
    CREATED = "created"
    OPENING = "opening"
    RUNNING = "running"
    DRAINING = "draining"
    CLOSED = "closed"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def is_active(self) -> bool:
        """True while a run is in progress."""
        return self in (EngineState.OPENING, EngineState.RUNNING, EngineState.DRAINING)


class RunPhase(str, Enum):
    """
    Fine-grained phase labels recorded on contexts.

    Used in error reports ("<phase> Error - <message>") and by listeners
    that want to know where a transaction currently is.
    """
    INITIALIZE = "Initialize"
    LISTENER_INIT = "Listener Init"
    PRE_PROCESS = "Pre-Process"
    READER_INIT = "Reader Init"
    MAPPER_INIT = "Mapper Init"
    WRITER_INIT = "Writer Init"
    FILTER_INIT = "Filter Init"
    VALIDATOR_INIT = "Validator Init"
    TRANSFORM_INIT = "Transform Init"
    PROCESS = "Process"
    READ = "Read"
    FILTER = "Filter"
    VALIDATE = "Validate"
    TRANSFORM = "Transform"
    MAP = "Map"
    WRITE = "Write"
    POST_PROCESS = "Post-Process"
    COMPLETE = "Complete"

    def __str__(self) -> str:
        return self.value


class ComponentKind(str, Enum):
    """
    Kinds of pluggable pipeline components.

    Each kind maps to a section of the job configuration and to a
    namespace in the ComponentRegistry.
    """
    READER = "reader"
    FILTER = "filter"
    VALIDATOR = "validator"
    TRANSFORM = "transform"
    MAPPER = "mapper"
    WRITER = "writer"
    TASK = "task"
    LISTENER = "listener"

    def __str__(self) -> str:
        return self.value


class FailureScope(str, Enum):
    """
    How far a stage failure escalates.

    - RECORD: Current transaction is put in error, the batch continues
    - JOB: The job context is put in error, no more records are read
    - NONE: Logged only (best-effort output fan-out)
    """
    RECORD = "record"
    JOB = "job"
    NONE = "none"

    def __str__(self) -> str:
        return self.value
