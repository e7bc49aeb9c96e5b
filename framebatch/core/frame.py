"""
Frame: the record flowing through the pipeline.

An ordered mapping of uniquely named fields. Values are scalars (str, int,
float, bool, date/datetime, None), lists, or nested Frames.
"""

import copy
from datetime import date, datetime
from typing import Any, Mapping, Optional


class Frame(dict):
    """
    Ordered collection of named fields.

    A plain dict keeps insertion order and unique keys, which is exactly the
    field model a record needs; this subclass adds the conversion and
    lookup helpers stages rely on.

    Example:
        frame = Frame.from_dict({"id": 1, "address": {"city": "Oslo"}})
        frame.get_path("address.city")  # "Oslo"
    """

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Frame":
        """
        Build a frame from a mapping, converting nested mappings to frames.

        Args:
            data: Source mapping (None gives an empty frame).

        Returns:
            New Frame instance.
        """
        frame = cls()
        if data:
            for name, value in data.items():
                frame[str(name)] = _to_frame_value(value)
        return frame

    def to_dict(self) -> dict[str, Any]:
        """Recursively convert to plain dicts and lists."""
        return {name: _to_plain_value(value) for name, value in self.items()}

    def copy(self) -> "Frame":
        """Deep copy; nested frames and lists are not shared."""
        return copy.deepcopy(self)

    def contains(self, name: str) -> bool:
        return name in self

    def put(self, name: str, value: Any) -> "Frame":
        """Set a field and return the frame for chaining."""
        self[name] = _to_frame_value(value)
        return self

    def remove(self, name: str) -> Any:
        """Remove a field, returning its value (None if absent)."""
        return self.pop(name, None)

    def get_as_string(self, name: str) -> Optional[str]:
        """Return the field formatted as a string, None when absent or null."""
        value = self.get(name)
        if value is None:
            return None
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_path(self, path: str) -> Any:
        """
        Look up a dotted path through nested frames.

        Field names may themselves contain dots; the longest matching name
        at each level wins.
        """
        if path in self:
            return self[path]
        tokens = path.split(".")
        for split in range(len(tokens) - 1, 0, -1):
            head = ".".join(tokens[:split])
            if head in self:
                child = self[head]
                if isinstance(child, Frame):
                    return child.get_path(".".join(tokens[split:]))
                if isinstance(child, Mapping):
                    return Frame.from_dict(child).get_path(".".join(tokens[split:]))
                return None
        return None

    @property
    def field_names(self) -> list[str]:
        return list(self.keys())

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.items())
        return f"Frame({fields})"


def _to_frame_value(value: Any) -> Any:
    if isinstance(value, Frame):
        return value
    if isinstance(value, Mapping):
        return Frame.from_dict(value)
    if isinstance(value, (list, tuple)):
        return [_to_frame_value(v) for v in value]
    return value


def _to_plain_value(value: Any) -> Any:
    if isinstance(value, Frame):
        return value.to_dict()
    if isinstance(value, list):
        return [_to_plain_value(v) for v in value]
    return value
