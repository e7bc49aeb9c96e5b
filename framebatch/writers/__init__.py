"""Bundled frame writers."""
from framebatch.writers.log import LogWriter
from framebatch.writers.ndjson import NdjsonWriter
from framebatch.writers.tabular import BufferedFileWriter, CsvWriter, ParquetWriter

__all__ = [
    "LogWriter",
    "NdjsonWriter",
    "BufferedFileWriter",
    "CsvWriter",
    "ParquetWriter",
]
