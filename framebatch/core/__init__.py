"""
Pipeline Core
=============

The orchestration engine and the contracts stages implement. Provides:
- Frame: the record type
- TransformEngine: runs a job from open to close
- TransformContext/TransactionContext/PersistentContext: execution contexts
- Stage base classes (FrameReader, FrameFilter, ... ContextListener)
- ComponentRegistry: type tag -> component constructor

EngineFactory lives in framebatch.core.factory; it depends on the
configuration models and is imported from there.
"""

from framebatch.core.enums import ComponentKind, EngineState, FailureScope, RunPhase
from framebatch.core.errors import (
    ConfigurationError,
    FrameBatchError,
    JobError,
    MappingError,
    StageFailure,
    TaskError,
    TransformError,
    ValidationError,
    WriteError,
)
from framebatch.core.frame import Frame
from framebatch.core.symbols import SymbolTable, Symbols
from framebatch.core.context import OperationalContext, TransactionContext, TransformContext
from framebatch.core.persistent import PersistentContext
from framebatch.core.base import (
    Component,
    ContextListener,
    DataStore,
    FrameFilter,
    FrameMapper,
    FrameReader,
    FrameTransform,
    FrameValidator,
    FrameWriter,
    TransformTask,
)
from framebatch.core.mapper import DefaultFrameMapper
from framebatch.core.engine import TransformEngine
from framebatch.core.registry import (
    ComponentRegistry,
    get_registry,
    load_builtin_components,
    register_component,
)

__all__ = [
    # Enums
    "ComponentKind",
    "EngineState",
    "FailureScope",
    "RunPhase",
    # Errors
    "FrameBatchError",
    "ConfigurationError",
    "TaskError",
    "JobError",
    "ValidationError",
    "TransformError",
    "MappingError",
    "WriteError",
    "StageFailure",
    # Data
    "Frame",
    "SymbolTable",
    "Symbols",
    # Contexts
    "OperationalContext",
    "TransactionContext",
    "TransformContext",
    "PersistentContext",
    # Stages
    "Component",
    "ContextListener",
    "DataStore",
    "FrameFilter",
    "FrameMapper",
    "FrameReader",
    "FrameTransform",
    "FrameValidator",
    "FrameWriter",
    "TransformTask",
    "DefaultFrameMapper",
    # Engine
    "TransformEngine",
    # Registry
    "ComponentRegistry",
    "get_registry",
    "load_builtin_components",
    "register_component",
]
