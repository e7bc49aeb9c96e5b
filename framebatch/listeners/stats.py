"""Listener that counts pipeline events."""

import logging
from typing import Any, Optional

from framebatch.core.base import ContextListener
from framebatch.core.context import TransactionContext
from framebatch.core.enums import ComponentKind
from framebatch.core.registry import register_component

logger = logging.getLogger(__name__)


@register_component(ComponentKind.LISTENER, "stats")
class StatsListener(ContextListener):
    """
    Counts reads, writes, validation failures, errors and transactions.

    The counters are reset when the listener is opened, so they always
    describe the latest run. With ``publish: true`` the counters are copied
    into the job context properties (prefixed ``Stats.``) when the job ends.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.publish = bool(self.config.get("publish", False))
        self.stats = self._empty()

    @staticmethod
    def _empty() -> dict[str, int]:
        return {
            "reads": 0,
            "writes": 0,
            "validation_failures": 0,
            "transaction_errors": 0,
            "job_errors": 0,
            "transactions": 0,
        }

    def setup(self) -> None:
        self.stats = self._empty()

    def on_end(self, context) -> None:
        if isinstance(context, TransactionContext):
            self.stats["transactions"] += 1
            return
        logger.info(f"[StatsListener] {self.stats}")
        if self.publish:
            for key, value in self.stats.items():
                context.set(f"Stats.{key}", value)

    def on_read(self, transaction, reader) -> None:
        self.stats["reads"] += 1

    def on_write(self, transaction, writer) -> None:
        self.stats["writes"] += 1

    def on_error(self, context) -> None:
        if isinstance(context, TransactionContext):
            self.stats["transaction_errors"] += 1
        else:
            self.stats["job_errors"] += 1

    def on_validation_failed(self, transaction, message: str) -> None:
        self.stats["validation_failures"] += 1

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), **self.stats}
