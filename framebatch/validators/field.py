"""
Field Validators
================

Each validator checks one field of the working frame. A failed rule returns
False and the engine reports it through ``on_validation_failed``; a
validator that cannot evaluate its rule raises ValidationError.
"""

import re
from abc import abstractmethod
from typing import Any, Optional

from framebatch.core.base import FrameValidator
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError, ValidationError
from framebatch.core.registry import register_component


class FieldValidator(FrameValidator):
    """Base class for single-field validators (``field`` option)."""

    default_description = "Field value appears to be invalid"

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        self.field = self.config.get("field")
        if not self.field:
            raise ConfigurationError(f"{self.name} requires the 'field' option")
        if self.description is None:
            self.description = f"{self.field}: {self.default_description}"
        self.failures = 0

    def process(self, transaction) -> bool:
        frame = transaction.working_frame
        if frame is None:
            return True
        passed = self.check(frame.get_path(self.field))
        if not passed:
            self.failures += 1
        return passed

    @abstractmethod
    def check(self, value: Any) -> bool:
        pass

    def get_stats(self) -> dict[str, Any]:
        return {**super().get_stats(), "failures": self.failures}


@register_component(ComponentKind.VALIDATOR, "not_null")
class NotNullValidator(FieldValidator):
    """Field must be present and not null."""

    default_description = "value is required"

    def check(self, value: Any) -> bool:
        return value is not None


@register_component(ComponentKind.VALIDATOR, "not_empty")
class NotEmptyValidator(FieldValidator):
    """Field must be present and, once whitespace is stripped, not empty."""

    default_description = "value must not be empty"

    def check(self, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip() != ""
        if isinstance(value, (list, dict)):
            return len(value) > 0
        return True


@register_component(ComponentKind.VALIDATOR, "pattern")
class PatternValidator(FieldValidator):
    """
    Field text must match (``match``) or must not match (``avoid``) a
    regular expression. A null value fails a ``match`` rule and passes an
    ``avoid`` rule.
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        if ("match" in self.config) == ("avoid" in self.config):
            raise ConfigurationError(f"{self.name} needs exactly one of 'match' or 'avoid'")
        self.avoid = "avoid" in self.config
        expression = self.config["avoid"] if self.avoid else self.config["match"]
        try:
            self.regex = re.compile(str(expression))
        except re.error as e:
            raise ConfigurationError(f"Invalid pattern '{expression}'", original_exception=e)

    def check(self, value: Any) -> bool:
        if value is None:
            return self.avoid
        if isinstance(value, (list, dict)):
            raise ValidationError(
                f"Cannot apply a pattern to structured field '{self.field}'",
                context={"validator": self.name},
            )
        found = self.regex.search(str(value)) is not None
        return not found if self.avoid else found
