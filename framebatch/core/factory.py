"""
Engine Factory
==============

Builds a wired TransformEngine from a JobConfig using the component registry.
"""

import logging
from pathlib import Path
from typing import Optional

from framebatch.config import ComponentConfig, JobConfig
from framebatch.core.base import Component
from framebatch.core.context import TransformContext
from framebatch.core.engine import TransformEngine
from framebatch.core.enums import ComponentKind
from framebatch.core.persistent import PersistentContext
from framebatch.core.registry import ComponentRegistry, load_builtin_components

logger = logging.getLogger(__name__)


class EngineFactory:
    """
    Creates engines from job configurations.

    Example:
        engine = EngineFactory().create(load_config("config/job.yaml"))
        engine.run()
        engine.close()
    """

    def __init__(self, registry: Optional[ComponentRegistry] = None):
        self.registry = registry or load_builtin_components()

    def create(self, config: JobConfig, work_directory: Optional[str] = None) -> TransformEngine:
        """
        Build an engine with every configured component registered.

        Args:
            config: Job configuration.
            work_directory: Overrides ``config.work_directory`` when given.

        Raises:
            ConfigurationError: If a component type is unknown or cannot be built.
        """
        engine = TransformEngine(
            name=config.name,
            work_directory=work_directory or config.work_directory,
            job_directory=config.job_directory,
        )
        engine.context = self.create_context(config)

        if config.reader is not None:
            engine.set_reader(self._build(ComponentKind.READER, config.reader))
        if config.mapper is not None:
            engine.set_mapper(self._build(ComponentKind.MAPPER, config.mapper))

        for section in config.filters:
            engine.add_filter(self._build(ComponentKind.FILTER, section))
        for section in config.validators:
            engine.add_validator(self._build(ComponentKind.VALIDATOR, section))
        for section in config.transforms:
            engine.add_transformer(self._build(ComponentKind.TRANSFORM, section))
        for section in config.writers:
            engine.add_writer(self._build(ComponentKind.WRITER, section))
        for section in config.preprocess:
            engine.add_preprocess_task(self._build(ComponentKind.TASK, section))
        for section in config.postprocess:
            engine.add_postprocess_task(self._build(ComponentKind.TASK, section))
        for section in config.listeners:
            engine.add_listener(self._build(ComponentKind.LISTENER, section))

        logger.info(
            f"[EngineFactory] Built engine {config.name or '<unnamed>'}: "
            f"{len(engine.filters)} filters, {len(engine.validators)} validators, "
            f"{len(engine.transformers)} transforms, {len(engine.writers)} writers"
        )
        return engine

    @staticmethod
    def create_context(config: JobConfig) -> TransformContext:
        if config.context.type == "persistent":
            directory = Path(config.context.directory) if config.context.directory else None
            return PersistentContext(
                fields=config.context.fields,
                directory=directory,
                filename=config.context.filename,
            )
        return TransformContext(fields=config.context.fields)

    def _build(self, kind: ComponentKind, section: ComponentConfig) -> Component:
        component = self.registry.create(kind, section.type, section.to_options())
        logger.debug(f"[EngineFactory] Created {kind} '{section.type}' as {component.name}")
        return component


def create_engine(config: JobConfig, work_directory: Optional[str] = None) -> TransformEngine:
    """Build an engine with the global registry."""
    return EngineFactory().create(config, work_directory=work_directory)
