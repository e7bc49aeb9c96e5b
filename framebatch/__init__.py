"""
framebatch
==========

Configurable batch record pipeline: read -> filter -> validate ->
transform -> map -> write, driven by a YAML or JSON job file.
"""

from framebatch.core import (
    ConfigurationError,
    Frame,
    FrameBatchError,
    PersistentContext,
    TransactionContext,
    TransformContext,
    TransformEngine,
    get_registry,
    register_component,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "Frame",
    "FrameBatchError",
    "PersistentContext",
    "TransactionContext",
    "TransformContext",
    "TransformEngine",
    "get_registry",
    "register_component",
    "__version__",
]
