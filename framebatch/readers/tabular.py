"""
Tabular File Readers
====================

CSV and Parquet readers backed by polars. The whole file is loaded on open
and rows are handed out one frame at a time.
"""

import logging
from abc import abstractmethod
from pathlib import Path
from typing import Any, Iterator, Optional

import polars as pl

from framebatch.core.base import FrameReader
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


class PolarsFileReader(FrameReader):
    """
    Base class for readers that load a file into a polars DataFrame.

    Options:
        path: File to read ("${name}" references are resolved)
        columns: Optional list of columns to keep
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.path: Optional[Path] = None
        self._rows: Optional[Iterator[dict[str, Any]]] = None
        self._remaining = 0

    @abstractmethod
    def load(self, path: Path) -> pl.DataFrame:
        pass

    def setup(self) -> None:
        self.path = Path(self.require_option("path"))
        if not self.path.exists():
            raise ConfigurationError(f"Input file not found: {self.path}", context={"reader": self.name})

        try:
            df = self.load(self.path)
        except Exception as e:
            raise ConfigurationError(
                f"Could not load {self.path}",
                context={"reader": self.name},
                original_exception=e,
            )

        columns = self.config.get("columns")
        if columns:
            df = df.select(columns)

        self._rows = df.iter_rows(named=True)
        self._remaining = df.height
        logger.info(f"[{self.__class__.__name__}] Loaded {df.height} rows from {self.path}")

    def read(self, transaction) -> Optional[Frame]:
        if self._rows is None or self._remaining == 0:
            return None
        row = next(self._rows)
        self._remaining -= 1
        transaction.last_frame = self._remaining == 0
        return Frame.from_dict(row)

    def eof(self) -> bool:
        return self._remaining == 0

    def teardown(self) -> None:
        self._rows = None
        self._remaining = 0


@register_component(ComponentKind.READER, "csv")
class CsvReader(PolarsFileReader):
    """
    Reads a delimited text file with a header row.

    Options (in addition to PolarsFileReader):
        separator: Field separator (default ",")
        infer_schema: When False every column is read as a string (default True)
        null_values: Strings to treat as null
    """

    def load(self, path: Path) -> pl.DataFrame:
        kwargs: dict[str, Any] = {
            "separator": self.config.get("separator", ","),
            "has_header": True,
        }
        if not self.config.get("infer_schema", True):
            kwargs["infer_schema"] = False
        if self.config.get("null_values") is not None:
            kwargs["null_values"] = self.config["null_values"]
        return pl.read_csv(path, **kwargs)


@register_component(ComponentKind.READER, "parquet")
class ParquetReader(PolarsFileReader):
    """Reads a Parquet file."""

    def load(self, path: Path) -> pl.DataFrame:
        return pl.read_parquet(path)
