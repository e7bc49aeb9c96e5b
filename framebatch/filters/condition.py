"""
Field conditions shared by the bundled filters.

A condition names a ``field`` (dotted paths reach into nested frames) and
exactly one test:

    equals: <value>        field value equals (compared as text)
    not_equals: <value>    field value differs (compared as text)
    exists: true|false     field is present and not null (or absent)
    pattern: <regex>       field text matches the regular expression
    gt: <number>           field value is numerically greater
    lt: <number>           field value is numerically less
"""

import re
from typing import Any, Optional

from framebatch.core.errors import ConfigurationError
from framebatch.core.frame import Frame

OPERATORS = ("equals", "not_equals", "exists", "pattern", "gt", "lt")


class FieldCondition:
    """Compiled field test."""

    def __init__(self, field: str, operator: str, operand: Any):
        if not field:
            raise ConfigurationError("A field condition needs a 'field' option")
        if operator not in OPERATORS:
            raise ConfigurationError(f"Unknown condition operator '{operator}'; expected one of {OPERATORS}")
        self.field = field
        self.operator = operator
        self.operand = operand
        self._regex: Optional[re.Pattern] = None
        self._number: Optional[float] = None

        if operator == "pattern":
            try:
                self._regex = re.compile(str(operand))
            except re.error as e:
                raise ConfigurationError(f"Invalid pattern '{operand}'", original_exception=e)
        elif operator in ("gt", "lt"):
            self._number = _to_number(operand)
            if self._number is None:
                raise ConfigurationError(f"'{operator}' needs a numeric operand, got {operand!r}")

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> "FieldCondition":
        present = [op for op in OPERATORS if op in options]
        if len(present) != 1:
            raise ConfigurationError(
                f"Exactly one of {OPERATORS} is required, got {present or 'none'}"
            )
        operator = present[0]
        return cls(options.get("field"), operator, options[operator])

    def evaluate(self, frame: Optional[Frame]) -> bool:
        if frame is None:
            return False
        value = frame.get_path(self.field)

        if self.operator == "exists":
            return (value is not None) == _to_bool(self.operand)
        if self.operator == "equals":
            return value is not None and _to_text(value) == _to_text(self.operand)
        if self.operator == "not_equals":
            return value is None or _to_text(value) != _to_text(self.operand)
        if self.operator == "pattern":
            return value is not None and self._regex.search(_to_text(value)) is not None

        number = _to_number(value)
        if number is None:
            return False
        if self.operator == "gt":
            return number > self._number
        return number < self._number

    def __repr__(self) -> str:
        return f"FieldCondition({self.field} {self.operator} {self.operand!r})"


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
