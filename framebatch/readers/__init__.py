"""Bundled frame readers."""
from framebatch.readers.memory import ListReader
from framebatch.readers.ndjson import NdjsonReader
from framebatch.readers.tabular import CsvReader, ParquetReader, PolarsFileReader

__all__ = [
    "ListReader",
    "NdjsonReader",
    "CsvReader",
    "ParquetReader",
    "PolarsFileReader",
]
