"""Frame mappers."""

from typing import Any, Optional

from framebatch.core.base import FrameMapper
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError, MappingError
from framebatch.core.frame import Frame
from framebatch.core.mapper import DefaultFrameMapper
from framebatch.core.registry import get_registry, register_component

get_registry().register(ComponentKind.MAPPER, "default", DefaultFrameMapper)


@register_component(ComponentKind.MAPPER, "fields")
class FieldMapper(FrameMapper):
    """
    Explicit source -> target field map.

    Options:
        fields: Mapping of source token to target field name. A source
            token is a working-frame field (dotted paths allowed) or a
            prefixed token such as "Source.id", "Context.Region" or
            "Transform.JobName".
        defaults: Target field -> value used when the source resolves to null.
        required: When True, a source that resolves to null with no default
            is a record error (default False).

    Example:
        fields:
          customer.name: CustomerName
          Context.Region: Region
        defaults:
          Region: unknown
    """

    def __init__(self, config: Optional[dict[str, Any]] = None):
        super().__init__(config)
        fields = self.config.get("fields")
        if not isinstance(fields, dict) or not fields:
            raise ConfigurationError(f"{self.name} requires a 'fields' mapping of source -> target")
        self.fields: dict[str, str] = {str(k): str(v) for k, v in fields.items()}
        self.defaults: dict[str, Any] = dict(self.config.get("defaults") or {})
        self.required = bool(self.config.get("required", False))

    def process(self, transaction) -> None:
        if transaction.target_frame is None:
            transaction.target_frame = Frame()
        target = transaction.target_frame

        for source, name in self.fields.items():
            value = self._resolve(transaction, source)
            if value is None:
                value = self.defaults.get(name)
            if value is None and self.required:
                raise MappingError(
                    f"No value for '{name}' from '{source}'",
                    context={"mapper": self.name, "row": transaction.row},
                )
            target.put(name, value)

    def _resolve(self, transaction, source: str) -> Any:
        if self.context is not None:
            return self.context.resolve_field(source)
        if transaction.working_frame is None:
            return None
        return transaction.working_frame.get_path(source)
