"""Writer that sends frames to the log."""

import logging
from typing import Any, Optional

from framebatch.core.base import FrameWriter
from framebatch.core.enums import ComponentKind
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


@register_component(ComponentKind.WRITER, "log")
class LogWriter(FrameWriter):
    """
    Logs every frame.

    Options:
        level: Logging level name (default INFO)
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.level = logging.getLevelName(str(self.config.get("level", "INFO")).upper())
        if not isinstance(self.level, int):
            self.level = logging.INFO

    def write(self, frame: Frame) -> None:
        row = self.context.row if self.context is not None else 0
        logger.log(self.level, f"[{self.name}] {row}: {frame.to_dict()}")
