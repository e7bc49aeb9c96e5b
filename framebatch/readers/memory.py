"""In-memory reader."""

from typing import Any, Optional

from framebatch.core.base import FrameReader
from framebatch.core.enums import ComponentKind
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component


@register_component(ComponentKind.READER, "list")
class ListReader(FrameReader):
    """
    Reads records from the ``records`` option (a list of mappings).

    Useful for fixtures and small lookup jobs. A None entry is returned as a
    non-record read.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self._records: list = []
        self._index = 0

    def setup(self) -> None:
        self._records = list(self.config.get("records") or [])
        self._index = 0

    def read(self, transaction) -> Optional[Frame]:
        if self._index >= len(self._records):
            return None
        record = self._records[self._index]
        self._index += 1
        transaction.last_frame = self._index >= len(self._records)
        if record is None:
            return None
        return Frame.from_dict(record)

    def eof(self) -> bool:
        return self._index >= len(self._records)
