"""
Field Transforms
================

Small transforms that edit fields of the working frame in place.

    set      field, value       set a field ("${name}" references resolved)
    remove   fields             drop fields
    rename   fields (old: new)  rename fields, keeping their position
    trim     fields             strip surrounding whitespace from text
    upper    fields             upper-case text
    lower    fields             lower-case text
"""

from typing import Any, Callable, Optional

from framebatch.core.base import FrameTransform
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError, TransformError
from framebatch.core.frame import Frame
from framebatch.core.registry import register_component


def _field_list(config: dict[str, Any], owner: str) -> list[str]:
    fields = config.get("fields")
    if fields is None and config.get("field"):
        fields = [config["field"]]
    if isinstance(fields, str):
        fields = [fields]
    if not fields:
        raise ConfigurationError(f"{owner} requires the 'fields' option")
    return list(fields)


@register_component(ComponentKind.TRANSFORM, "set")
class SetFieldTransform(FrameTransform):
    """
    Sets a field to a constant.

    String values are resolved against the symbol table, so
    ``value: "${JobName}-${Date}"`` stamps each record with the run.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.field = self.config.get("field")
        if not self.field:
            raise ConfigurationError(f"{self.name} requires the 'field' option")
        if "value" not in self.config:
            raise ConfigurationError(f"{self.name} requires the 'value' option")

    def process(self, frame: Frame) -> Optional[Frame]:
        frame.put(self.field, self.get_option("value"))
        return frame


@register_component(ComponentKind.TRANSFORM, "remove")
class RemoveFieldTransform(FrameTransform):
    """Removes the listed fields; absent fields are ignored."""

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.fields = _field_list(self.config, self.name)

    def process(self, frame: Frame) -> Optional[Frame]:
        for name in self.fields:
            frame.remove(name)
        return frame


@register_component(ComponentKind.TRANSFORM, "rename")
class RenameFieldTransform(FrameTransform):
    """
    Renames fields.

    ``fields`` maps old names to new names. Field order is preserved.
    Renaming onto a name that already exists is a record error.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        fields = self.config.get("fields")
        if not isinstance(fields, dict) or not fields:
            raise ConfigurationError(f"{self.name} requires a 'fields' mapping of old -> new names")
        self.fields: dict[str, str] = {str(k): str(v) for k, v in fields.items()}

    def process(self, frame: Frame) -> Optional[Frame]:
        for old, new in self.fields.items():
            if old in frame and new in frame and old != new:
                raise TransformError(
                    f"Cannot rename '{old}' to '{new}': field already exists",
                    context={"transform": self.name},
                )

        renamed = Frame()
        for name, value in frame.items():
            renamed[self.fields.get(name, name)] = value
        return renamed


class TextTransform(FrameTransform):
    """Applies a string function to the listed fields; other types are left alone."""

    operation: Callable[[str], str] = staticmethod(lambda text: text)

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.fields = _field_list(self.config, self.name)

    def process(self, frame: Frame) -> Optional[Frame]:
        for name in self.fields:
            value = frame.get(name)
            if isinstance(value, str):
                frame[name] = self.operation(value)
        return frame


@register_component(ComponentKind.TRANSFORM, "trim")
class TrimTransform(TextTransform):
    operation = staticmethod(str.strip)


@register_component(ComponentKind.TRANSFORM, "upper")
class UpperCaseTransform(TextTransform):
    operation = staticmethod(str.upper)


@register_component(ComponentKind.TRANSFORM, "lower")
class LowerCaseTransform(TextTransform):
    operation = staticmethod(str.lower)
