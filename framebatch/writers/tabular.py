"""
Buffered Tabular Writers
========================

CSV (polars) and Parquet (pyarrow) writers. Frames are buffered in memory
and the file is written when the writer closes, which the engine does
before post-process tasks run.
"""

import json
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Any, Optional

import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq

from framebatch.core.base import FrameWriter
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import WriteError
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


class BufferedFileWriter(FrameWriter):
    """
    Collects frames and writes them in one go on close.

    Each row is checked against the value kinds of the rows already buffered,
    so a record that would break the file fails on its own in write().

    Options:
        path: Output file ("${name}" references are resolved)
        write_empty: Write a file even when no frame arrived (default False)
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.path: Optional[Path] = None
        self.rows: list[dict[str, Any]] = []
        self.samples: dict[str, Any] = {}

    def setup(self) -> None:
        self.path = Path(self.require_option("path"))
        self.rows = []
        self.samples = {}

    def write(self, frame: Frame) -> None:
        row = self.encode(frame)
        self.check(row)
        for name, value in row.items():
            if value is not None and name not in self.samples:
                self.samples[name] = value
        self.rows.append(row)

    def encode(self, frame: Frame) -> dict[str, Any]:
        return frame.to_dict()

    def check(self, row: dict[str, Any]) -> None:
        """Raise WriteError when a value does not fit its column."""
        for name, value in row.items():
            sample = self.samples.get(name)
            if value is None or sample is None:
                continue
            if _kind(value) != _kind(sample):
                raise WriteError(
                    f"Field '{name}' holds {type(value).__name__} but the column holds "
                    f"{type(sample).__name__}",
                    context={"field": name, "path": str(self.path)},
                )

    def teardown(self) -> None:
        if not self.rows and not self.config.get("write_empty", False):
            logger.debug(f"[{self.__class__.__name__}] Nothing to write to {self.path}")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.flush(self.path, self.rows)
        except Exception as e:
            raise WriteError(
                f"Could not write {len(self.rows)} rows to {self.path}",
                original_exception=e,
            )
        logger.info(f"[{self.__class__.__name__}] Wrote {len(self.rows)} rows to {self.path}")
        self.rows = []
        self.samples = {}

    @abstractmethod
    def flush(self, path: Path, rows: list[dict[str, Any]]) -> None:
        pass


@register_component(ComponentKind.WRITER, "csv")
class CsvWriter(BufferedFileWriter):
    """
    Writes frames as CSV with a header row.

    Nested frames and lists are written as JSON text. Options (in addition
    to BufferedFileWriter): ``separator`` (default ",").
    """

    def encode(self, frame: Frame) -> dict[str, Any]:
        row = {}
        for name, value in frame.to_dict().items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, default=str)
            row[name] = value
        return row

    def flush(self, path: Path, rows: list[dict[str, Any]]) -> None:
        df = pl.from_dicts(rows, infer_schema_length=None) if rows else pl.DataFrame()
        df.write_csv(path, separator=self.config.get("separator", ","))


@register_component(ComponentKind.WRITER, "parquet")
class ParquetWriter(BufferedFileWriter):
    """
    Writes frames to a Parquet file with pyarrow.

    Options (in addition to BufferedFileWriter): ``compression``
    (default "zstd").
    """

    def flush(self, path: Path, rows: list[dict[str, Any]]) -> None:
        table = pa.Table.from_pylist(rows)
        pq.write_table(table, path, compression=self.config.get("compression", "zstd"))

    def check(self, row: dict[str, Any]) -> None:
        for name, value in row.items():
            sample = self.samples.get(name)
            if value is None or sample is None:
                continue
            try:
                pa.array([sample, value])
            except (pa.ArrowInvalid, pa.ArrowTypeError, OverflowError) as e:
                raise WriteError(
                    f"Field '{name}' does not fit the Parquet column",
                    context={"field": name, "path": str(self.path)},
                    original_exception=e,
                )


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__
