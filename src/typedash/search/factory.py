from typing import Any

from .base import SearchBackend
from .in_memory import InMemorySearchBackend
from .models import TypesenseConfig
from .typesense import TypesenseBackend


def create_search_backend(backend: str, **config: Any) -> SearchBackend:
    """Create a search backend instance.

    This factory function hides the instantiation logic for different backends.

    Args:
        backend: Backend type ('typesense' or 'memory')
        **config: Backend-specific configuration
            For Typesense:
                - api_key: str (required)
                - host: str (default: 'localhost')
                - port: int (default: 8108)
                - protocol: 'http' | 'https' (default: 'http')
                - connection_timeout_seconds: float (default: 10.0)
            For memory:
                - collections: list of collection schemas
                - documents: mapping of collection name to documents

    Returns:
        Initialized search backend instance

    Raises:
        ValueError: If backend type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> backend = create_search_backend(
        ...     "typesense",
        ...     api_key="xyz",
        ...     host="search.example.com",
        ...     protocol="https",
        ...     port=443
        ... )
    """
    backend_lower = backend.lower()

    if backend_lower == "typesense":
        if "api_key" not in config:
            raise TypeError("Typesense backend requires 'api_key' in config")
        client = config.pop("client", None)
        return TypesenseBackend(TypesenseConfig(**config), client=client)

    if backend_lower == "memory":
        return InMemorySearchBackend(**config)

    raise ValueError(
        f"Unsupported search backend: {backend}. "
        f"Supported backends: 'typesense', 'memory'"
    )
