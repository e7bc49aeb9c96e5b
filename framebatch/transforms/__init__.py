"""Bundled frame transforms."""
from framebatch.transforms.field import (
    LowerCaseTransform,
    RemoveFieldTransform,
    RenameFieldTransform,
    SetFieldTransform,
    TextTransform,
    TrimTransform,
    UpperCaseTransform,
)

__all__ = [
    "LowerCaseTransform",
    "RemoveFieldTransform",
    "RenameFieldTransform",
    "SetFieldTransform",
    "TextTransform",
    "TrimTransform",
    "UpperCaseTransform",
]
