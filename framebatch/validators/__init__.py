"""Bundled frame validators."""
from framebatch.validators.field import (
    FieldValidator,
    NotEmptyValidator,
    NotNullValidator,
    PatternValidator,
)

__all__ = [
    "FieldValidator",
    "NotEmptyValidator",
    "NotNullValidator",
    "PatternValidator",
]
