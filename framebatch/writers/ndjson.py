"""Newline-delimited JSON writer."""

import json
import logging
from pathlib import Path
from typing import IO, Any, Optional

from framebatch.core.base import FrameWriter
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import WriteError
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


@register_component(ComponentKind.WRITER, "ndjson")
class NdjsonWriter(FrameWriter):
    """
    Writes each frame as one JSON object per line.

    Options:
        path: Output file ("${name}" references are resolved)
        append: Append to an existing file instead of replacing it (default False)
        encoding: Text encoding (default utf-8)
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.path: Optional[Path] = None
        self._file: Optional[IO[str]] = None

    def setup(self) -> None:
        self.path = Path(self.require_option("path"))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        mode = "a" if self.config.get("append", False) else "w"
        self._file = open(self.path, mode, encoding=self.get_option("encoding", "utf-8"))
        logger.info(f"[NdjsonWriter] Writing to {self.path}")

    def write(self, frame: Frame) -> None:
        if self._file is None:
            raise WriteError(f"{self.name} is not open")
        try:
            line = json.dumps(frame.to_dict(), default=str)
        except (TypeError, ValueError) as e:
            raise WriteError("Frame could not be encoded as JSON", original_exception=e)
        self._file.write(line + "\n")

    def teardown(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
