"""Shared behaviour for the bundled tasks."""

import logging
from abc import abstractmethod
from typing import Any, Optional

from framebatch.core.base import TransformTask
from framebatch.core.errors import TaskError

logger = logging.getLogger(__name__)


class BaseTask(TransformTask):
    """
    Task with ``halt_on_error`` handling.

    Subclasses implement ``perform()``. When ``halt_on_error`` is True (the
    default) any failure is raised as TaskError and stops the job; when
    False the failure is logged and the job carries on.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.halt_on_error = bool(self.config.get("halt_on_error", True))

    def execute(self) -> None:
        try:
            self.perform()
        except Exception as e:
            if self.halt_on_error:
                if isinstance(e, TaskError):
                    raise
                raise TaskError(f"{self.name} failed", context={"task": self.name}, original_exception=e)
            logger.warning(f"[{self.__class__.__name__}] {self.name} failed, continuing: {e}")

    @abstractmethod
    def perform(self) -> None:
        pass

    def resolve(self, key: str, default: Any = None) -> Optional[str]:
        """Option value resolved through the job context (property lookup, then symbols)."""
        value = self.config.get(key, default)
        if value is None:
            return None
        if self.context is None:
            return str(value)
        return self.context.resolve_argument(str(value))
