"""Backend registry for looking up packaging backends by name."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from flatforge_core.interfaces import PackagingBackend

logger = structlog.get_logger(__name__)


class BackendRegistry:
    """Registry of packaging backend classes.

    Backends can be registered manually or discovered via entry points.
    """

    def __init__(self) -> None:
        """Initialize an empty backend registry."""
        self._backends: dict[str, type[PackagingBackend]] = {}

    def register(self, backend_class: type[PackagingBackend]) -> None:
        """Register a backend class.

        Args:
            backend_class: The backend class to register.
        """
        name = backend_class().name
        self._backends[name] = backend_class
        logger.debug("backend_registered", backend=name)

    def create(self, name: str, **kwargs: Any) -> PackagingBackend:
        """Instantiate a backend by name.

        Args:
            name: The backend name.
            **kwargs: Constructor arguments for the backend.

        Returns:
            A backend instance.

        Raises:
            KeyError: If no backend with that name is registered.
        """
        backend_class = self._backends.get(name)
        if backend_class is None:
            raise KeyError(f"Unknown backend: {name}")
        return backend_class(**kwargs)

    def list_names(self) -> list[str]:
        """List all registered backend names.

        Returns:
            List of backend names.
        """
        return list(self._backends.keys())

    def discover_backends(self) -> int:
        """Discover and register backends from entry points.

        Uses the 'flatforge.backends' entry point group.

        Returns:
            Number of backends discovered.
        """
        from importlib.metadata import entry_points

        count = 0
        for ep in entry_points(group="flatforge.backends"):
            try:
                self.register(ep.load())
                count += 1
                logger.info("backend_discovered", backend=ep.name, module=ep.value)
            except Exception as e:
                logger.error("backend_discovery_failed", backend=ep.name, error=str(e))

        return count


def register_builtin_backends(registry: BackendRegistry) -> None:
    """Register the backends shipped with flatforge."""
    from flatforge_backend.flatpak import FlatpakBackend

    registry.register(FlatpakBackend)


_registry: BackendRegistry | None = None


def get_registry() -> BackendRegistry:
    """Get the global backend registry.

    Built-in backends are registered first, then any installed through the
    flatforge.backends entry point group.

    Returns:
        The global BackendRegistry instance.
    """
    global _registry
    if _registry is None:
        _registry = BackendRegistry()
        register_builtin_backends(_registry)
        _registry.discover_backends()
    return _registry
