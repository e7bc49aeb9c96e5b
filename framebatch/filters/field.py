"""Accept and reject filters driven by a field condition."""

import logging
from typing import Any, Optional

from framebatch.core.base import FrameFilter
from framebatch.core.enums import ComponentKind
from framebatch.core.registry import register_component
from framebatch.filters.condition import FieldCondition

logger = logging.getLogger(__name__)


class ConditionFilter(FrameFilter):
    """Base class for filters configured with a FieldCondition."""

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.condition = FieldCondition.from_options(self.config)
        self.matched = 0

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), "matched": self.matched}


@register_component(ComponentKind.FILTER, "accept")
class AcceptFilter(ConditionFilter):
    """
    Accepts records matching the condition.

    A matching record is kept and no further filter is consulted. Records
    that do not match pass on to the next filter untouched.
    """

    def process(self, transaction) -> bool:
        if self.condition.evaluate(transaction.working_frame):
            self.matched += 1
            return False
        return True


@register_component(ComponentKind.FILTER, "reject")
class RejectFilter(ConditionFilter):
    """Drops records matching the condition."""

    def process(self, transaction) -> bool:
        if self.condition.evaluate(transaction.working_frame):
            self.matched += 1
            logger.debug(f"[RejectFilter] {self.name} dropped row {transaction.row}")
            transaction.working_frame = None
        return True
