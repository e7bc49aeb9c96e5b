"""Configuration module."""
from .config import (
    ComponentConfig,
    ContextConfig,
    JobConfig,
    load_config,
    parse_config,
    save_example_config,
)

__all__ = [
    "ComponentConfig",
    "ContextConfig",
    "JobConfig",
    "load_config",
    "parse_config",
    "save_example_config",
]
