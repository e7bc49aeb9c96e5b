"""Newline-delimited JSON reader."""

import json
import logging
from pathlib import Path
from typing import IO, Any, Optional

from framebatch.core.base import FrameReader
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


@register_component(ComponentKind.READER, "ndjson")
class NdjsonReader(FrameReader):
    """
    Reads one JSON object per line.

    Options:
        path: File to read ("${name}" references are resolved)
        encoding: Text encoding of each line (default utf-8)

    Blank lines, undecodable or unparsable lines and lines that are not JSON
    objects are returned as non-record reads; all but blank lines are logged.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.path: Optional[Path] = None
        self.skipped = 0
        self._file: Optional[IO[bytes]] = None
        self._line_number = 0
        self._next_line = b""

    def setup(self) -> None:
        self.path = Path(self.require_option("path"))
        if not self.path.exists():
            raise ConfigurationError(f"Input file not found: {self.path}", context={"reader": self.name})
        self._file = open(self.path, "rb")
        self._line_number = 0
        self._next_line = self._file.readline()
        logger.info(f"[NdjsonReader] Reading {self.path}")

    def read(self, transaction) -> Optional[Frame]:
        if self._file is None or self._next_line == b"":
            return None

        line = self._next_line
        self._line_number += 1
        self._next_line = self._file.readline()
        transaction.last_frame = self._next_line == b""

        if not line.strip():
            return None

        try:
            data = json.loads(line.decode(self.get_option("encoding", "utf-8")))
        except UnicodeDecodeError as e:
            self.skipped += 1
            logger.warning(f"[NdjsonReader] {self.path}:{self._line_number} could not be decoded: {e}")
            return None
        except json.JSONDecodeError as e:
            self.skipped += 1
            logger.warning(f"[NdjsonReader] {self.path}:{self._line_number} is not valid JSON: {e}")
            return None

        if not isinstance(data, dict):
            self.skipped += 1
            logger.warning(f"[NdjsonReader] {self.path}:{self._line_number} is not a JSON object")
            return None

        return Frame.from_dict(data)

    def eof(self) -> bool:
        return self._file is None or self._next_line == b""

    def teardown(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), "skipped": self.skipped, "lines": self._line_number}
