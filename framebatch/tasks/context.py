"""Tasks that act on the job context."""

import logging

from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError
from framebatch.core.registry import register_component
from framebatch.tasks.base import BaseTask

logger = logging.getLogger(__name__)


@register_component(ComponentKind.TASK, "set_property")
class SetPropertyTask(BaseTask):
    """
    Sets a context property (and the symbol of the same name).

    Options:
        property: Property name
        value: Value; resolved through the context, so "${Date}" works
    """

    def setup(self) -> None:
        if not self.config.get("property"):
            raise ConfigurationError(f"{self.name} requires the 'property' option")

    def perform(self) -> None:
        key = str(self.config["property"])
        value = self.resolve("value")
        self.context.set(key, value)
        self.context.symbols.put(key, value)
        logger.debug(f"[SetPropertyTask] {key} = {value}")


@register_component(ComponentKind.TASK, "log")
class LogTask(BaseTask):
    """
    Writes a message to the log.

    Options:
        message: Text to log ("${name}" references are resolved)
        level: Logging level name (default INFO)
    """

    def perform(self) -> None:
        level = logging.getLevelName(str(self.config.get("level", "INFO")).upper())
        if not isinstance(level, int):
            level = logging.INFO
        logger.log(level, self.resolve("message", ""))
