"""
Persistent Context
==================

A TransformContext whose property bag survives between runs.

The bag is stored as an indented JSON object in ``context.json`` inside the
engine's job directory, together with the reserved ``RunCount`` and ``PreviousRunDateTime``
properties. The latter is the start of the run that wrote the file and is
published as the PreviousRun* symbols on the next open.
Nothing record-level is ever written.

Usage:
    engine.context = PersistentContext()
    engine.run()
    engine.close()   # writes <job_directory>/context.json
"""

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from dateutil import parser as date_parser

from framebatch.core.context import DISPOSITION, TransformContext
from framebatch.core.frame import Frame
from framebatch.core.symbols import DATETIME_FORMAT, Symbols, populate_previous_run_date

logger = logging.getLogger(__name__)

CONTEXT_FILE = "context.json"


class PersistentContext(TransformContext):
    """TransformContext that loads its properties on open and saves them on close."""

    def __init__(
        self,
        fields: Optional[dict[str, Any]] = None,
        directory: Optional[Path] = None,
        filename: str = CONTEXT_FILE,
    ):
        """
        Args:
            fields: Initial properties applied when absent from the file
            directory: Where the file lives; defaults to the engine's job directory
            filename: Name of the state file
        """
        super().__init__(fields)
        self.directory = Path(directory) if directory is not None else None
        self.filename = filename
        self.previous_run: Optional[datetime] = None

    @property
    def path(self) -> Path:
        if self.directory is not None:
            return self.directory / self.filename
        if self.engine is not None and self.engine.job_directory is not None:
            return Path(self.engine.job_directory) / self.filename
        return Path.cwd() / self.filename

    @property
    def run_count(self) -> int:
        return _parse_run_count(self.properties.get(Symbols.RUN_COUNT))

    def open(self) -> None:
        """Load persisted properties, bump RunCount, then open normally."""
        persisted = self._load()
        self.properties.update(persisted)

        previous = _parse_run_count(persisted.get(Symbols.RUN_COUNT))
        self.properties[Symbols.RUN_COUNT] = previous + 1

        for key, value in self.properties.items():
            if key != DISPOSITION:
                self.symbols.put(key, value)

        self.previous_run = _parse_previous_run(persisted.get(Symbols.PREVIOUS_RUN_DATETIME))
        if self.previous_run is not None:
            populate_previous_run_date(self.symbols, self.previous_run)

        logger.info(
            f"[PersistentContext] Loaded {len(persisted)} properties from {self.path} "
            f"(run {previous + 1})"
        )
        super().open()

    def close(self) -> None:
        """Write the property bag, whatever the outcome of the run. Idempotent."""
        if self.is_closed:
            return
        try:
            self._save()
        finally:
            super().close()

    # =========================================================================
    # File I/O
    # =========================================================================

    def _load(self) -> dict[str, Any]:
        path = self.path
        if not path.exists():
            logger.debug(f"[PersistentContext] No state file at {path}")
            return {}
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[PersistentContext] Ignoring unreadable state file {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"[PersistentContext] State file {path} is not a JSON object; ignoring")
            return {}
        return data

    def _save(self) -> None:
        path = self.path
        data = {}
        for key, value in self.properties.items():
            if key == DISPOSITION:
                continue
            encoded = _to_json_value(value)
            try:
                json.dumps(encoded)
            except (TypeError, ValueError):
                logger.debug(f"[PersistentContext] Skipping non-serializable property {key}")
                continue
            data[key] = encoded
        data[Symbols.RUN_COUNT] = self.run_count
        started = self.start_time if self.start_time is not None else datetime.now()
        data[Symbols.PREVIOUS_RUN_DATETIME] = started.strftime(DATETIME_FORMAT)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
        logger.info(f"[PersistentContext] Saved {len(data)} properties to {path}")


def _parse_run_count(value: Any) -> int:
    if value is None:
        return 0
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _parse_previous_run(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError) as e:
        logger.warning(f"[PersistentContext] Ignoring unparsable previous run {value!r}: {e}")
        return None


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Frame):
        return value.to_dict()
    return value
