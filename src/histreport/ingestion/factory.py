"""Adapter factory and registry.

Provides decorator-based registration and factory functions for source adapters.
"""

from collections.abc import Callable
from typing import Any, ClassVar

from histreport.exceptions import AdapterNotFoundError, IngestionError
from histreport.ingestion.base import RecordAdapter


class AdapterRegistry:
    """Registry of available source adapters."""

    _adapters: ClassVar[dict[str, type[RecordAdapter]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[RecordAdapter]], type[RecordAdapter]]:
        """Decorator to register an adapter.

        Args:
            name: The name to register the adapter under (e.g., "junit").

        Returns:
            Decorator function that registers the adapter class.

        Example:
            @AdapterRegistry.register("junit")
            class JunitXmlAdapter(RecordAdapter):
                ...
        """

        def decorator(adapter_class: type[RecordAdapter]) -> type[RecordAdapter]:
            adapter_class.name = name.lower()
            cls._adapters[name.lower()] = adapter_class
            return adapter_class

        return decorator

    @classmethod
    def get(cls, name: str) -> type[RecordAdapter]:
        """Get an adapter class by name.

        Raises:
            AdapterNotFoundError: If the adapter is not registered.
        """
        adapter = cls._adapters.get(name.lower())
        if adapter is None:
            available = ", ".join(sorted(cls._adapters.keys()))
            msg = f"Adapter '{name}' not found. Available: {available or 'none'}"
            raise AdapterNotFoundError(msg)
        return adapter

    @classmethod
    def list_adapters(cls) -> list[str]:
        """List all registered adapter names."""
        return sorted(cls._adapters.keys())

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name.lower() in cls._adapters


def create_adapter(name: str, source: Any) -> RecordAdapter:
    """Factory function to create an adapter instance.

    Args:
        name: Registered adapter name.
        source: Adapter-specific source.

    Returns:
        Configured RecordAdapter instance.

    Raises:
        AdapterNotFoundError: If the adapter is not registered.
        IngestionError: If adapter instantiation fails.
    """
    adapter_class = AdapterRegistry.get(name)
    try:
        return adapter_class(source)
    except Exception as e:
        msg = f"Failed to create adapter '{name}': {e}"
        raise IngestionError(msg) from e
