"""
Component Registry
==================

Maps configuration type tags to component constructors, one namespace per
ComponentKind.
"""

import importlib
import logging
from typing import Any, Callable, Optional, Type, Union

from framebatch.core.base import Component
from framebatch.core.enums import ComponentKind
from framebatch.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Type alias for component factory
ComponentFactory = Callable[[dict[str, Any]], Component]

KindLike = Union[ComponentKind, str]

BUILTIN_MODULES = (
    "framebatch.readers",
    "framebatch.writers",
    "framebatch.filters",
    "framebatch.validators",
    "framebatch.transforms",
    "framebatch.mappers",
    "framebatch.tasks",
    "framebatch.listeners",
)


class ComponentRegistry:
    """
    Registry for pipeline components.

    Supports both class-based and factory-based registration.

    Example:
        registry = ComponentRegistry()

        # Register by class
        registry.register(ComponentKind.READER, "ndjson", NdjsonReader)

        # Register by factory
        @registry.register_factory(ComponentKind.WRITER, "null")
        def create_null(options):
            return LogWriter({**options, "level": "DEBUG"})

        reader = registry.create(ComponentKind.READER, "ndjson", {"path": "in.ndjson"})
    """

    def __init__(self):
        """Initialize empty registry."""
        self._classes: dict[tuple[ComponentKind, str], Type[Component]] = {}
        self._factories: dict[tuple[ComponentKind, str], ComponentFactory] = {}

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, kind: KindLike, tag: str, component_class: Type[Component]) -> None:
        """
        Register a component class.

        Args:
            kind: Component kind.
            tag: Type tag used in configuration.
            component_class: Class to instantiate.

        Raises:
            ValueError: If the tag is already registered for this kind.
        """
        key = _key(kind, tag)
        if key in self._classes or key in self._factories:
            raise ValueError(f"{key[0]} '{tag}' is already registered")
        self._classes[key] = component_class
        logger.debug(f"Registered {key[0]}: {tag}")

    def register_factory(
        self,
        kind: KindLike,
        tag: str,
    ) -> Callable[[ComponentFactory], ComponentFactory]:
        """Decorator to register a factory function taking the options mapping."""
        key = _key(kind, tag)

        def decorator(factory: ComponentFactory) -> ComponentFactory:
            if key in self._classes or key in self._factories:
                raise ValueError(f"{key[0]} '{tag}' is already registered")
            self._factories[key] = factory
            logger.debug(f"Registered {key[0]} factory: {tag}")
            return factory
        return decorator

    def unregister(self, kind: KindLike, tag: str) -> None:
        key = _key(kind, tag)
        self._classes.pop(key, None)
        self._factories.pop(key, None)

    # =========================================================================
    # Discovery
    # =========================================================================

    def list_components(self, kind: Optional[KindLike] = None) -> list[str]:
        """
        List registered tags.

        Args:
            kind: Restrict to one kind; when None, tags are returned as
                "kind:tag" for every kind.
        """
        keys = set(self._classes) | set(self._factories)
        if kind is None:
            return sorted(f"{k}:{t}" for k, t in keys)
        kind = ComponentKind(kind)
        return sorted(t for k, t in keys if k == kind)

    def has_component(self, kind: KindLike, tag: str) -> bool:
        key = _key(kind, tag)
        return key in self._classes or key in self._factories

    def get_component_class(self, kind: KindLike, tag: str) -> Optional[Type[Component]]:
        """Class for a registered tag, or None if factory-registered."""
        return self._classes.get(_key(kind, tag))

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        kind: KindLike,
        tag: str,
        options: Optional[dict[str, Any]] = None,
    ) -> Component:
        """
        Create a component instance.

        Raises:
            ConfigurationError: If the tag is unknown or construction fails.
        """
        key = _key(kind, tag)
        options = dict(options or {})

        if key in self._classes:
            builder = self._classes[key]
        elif key in self._factories:
            builder = self._factories[key]
        else:
            available = self.list_components(key[0])
            raise ConfigurationError(
                f"Unknown {key[0]} type '{tag}'. Available: {available}",
                context={"kind": str(key[0]), "type": tag},
            )

        try:
            return builder(options)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Could not create {key[0]} '{tag}'",
                context={"kind": str(key[0]), "type": tag},
                original_exception=e,
            )


def _key(kind: KindLike, tag: str) -> tuple[ComponentKind, str]:
    try:
        kind = ComponentKind(kind)
    except ValueError:
        raise ConfigurationError(f"Unknown component kind '{kind}'") from None
    return kind, str(tag).lower()


# Global registry instance
_global_registry: Optional[ComponentRegistry] = None
_builtins_loaded = False


def get_registry() -> ComponentRegistry:
    """
    Get the global component registry.

    Creates the registry on first access.
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = ComponentRegistry()
    return _global_registry


def register_component(kind: KindLike, tag: str):
    """
    Decorator to register a component class with the global registry.

    Example:
        @register_component(ComponentKind.FILTER, "accept")
        class AcceptFilter(FrameFilter):
            ...
    """
    def decorator(cls: Type[Component]) -> Type[Component]:
        get_registry().register(kind, tag, cls)
        return cls
    return decorator


def load_builtin_components() -> ComponentRegistry:
    """Import the bundled stage packages so their decorators run. Safe to call repeatedly."""
    global _builtins_loaded
    if not _builtins_loaded:
        for module in BUILTIN_MODULES:
            importlib.import_module(module)
        _builtins_loaded = True
    return get_registry()
