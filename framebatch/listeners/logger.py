"""Listener that logs every context event."""

import logging
from typing import Any, Optional

from framebatch.core.base import ContextListener
from framebatch.core.context import TransactionContext
from framebatch.core.enums import ComponentKind
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


@register_component(ComponentKind.LISTENER, "logger")
class ContextLogger(ContextListener):
    """
    Logs job and transaction events.

    Options:
        level: Level for per-record events (default DEBUG); job start/end
            is logged at INFO and errors at ERROR.
        on_read: Log read events (default True)
        on_write: Log write events (default True)
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        level = logging.getLevelName(str(self.config.get("level", "DEBUG")).upper())
        self.level = level if isinstance(level, int) else logging.DEBUG
        self.log_reads = bool(self.config.get("on_read", True))
        self.log_writes = bool(self.config.get("on_write", True))

    def on_start(self, context) -> None:
        if isinstance(context, TransactionContext):
            logger.log(self.level, "[ContextLogger] Transaction start")
        else:
            logger.info(f"[ContextLogger] Transform start: {self._job_name(context)}")

    def on_end(self, context) -> None:
        elapsed_ms = context.elapsed() * 1000
        if isinstance(context, TransactionContext):
            logger.log(self.level, f"[ContextLogger] {context.row}: Transaction end, elapsed {elapsed_ms:,.3f} ms")
        else:
            logger.info(
                f"[ContextLogger] Transform end: {self._job_name(context)}, {context.row:,} rows, "
                f"elapsed {elapsed_ms:,.0f} ms"
            )

    def on_read(self, transaction, reader) -> None:
        if self.log_reads:
            logger.log(self.level, f"[ContextLogger] {transaction.row}: Read: {transaction.source_frame!r}")

    def on_write(self, transaction, writer) -> None:
        if self.log_writes:
            logger.log(
                self.level,
                f"[ContextLogger] {transaction.row}: Write ({writer.name}): {transaction.target_frame!r}",
            )

    def on_error(self, context) -> None:
        kind = "Transaction" if isinstance(context, TransactionContext) else "Transform"
        logger.error(f"[ContextLogger] {kind} error: {context.error_message}")

    def on_validation_failed(self, transaction, message: str) -> None:
        logger.warning(f"[ContextLogger] {transaction.row}: Validation failed: {message}")

    @staticmethod
    def _job_name(context) -> str:
        engine = getattr(context, "engine", None)
        return engine.name if engine is not None else "<no engine>"
