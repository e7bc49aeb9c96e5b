"""Bundled frame filters."""
from framebatch.filters.condition import FieldCondition
from framebatch.filters.field import AcceptFilter, ConditionFilter, RejectFilter

__all__ = [
    "FieldCondition",
    "AcceptFilter",
    "ConditionFilter",
    "RejectFilter",
]
