from .base import SearchBackend
from .factory import create_search_backend
from .in_memory import InMemorySearchBackend
from .models import (
    CollectionField,
    CollectionSchema,
    SearchHit,
    SearchParams,
    SearchResponse,
    TypesenseConfig,
)
from .typesense import TypesenseAPIError, TypesenseBackend

__all__ = [
    "SearchBackend",
    "create_search_backend",
    "InMemorySearchBackend",
    "TypesenseBackend",
    "TypesenseAPIError",
    "CollectionField",
    "CollectionSchema",
    "SearchHit",
    "SearchParams",
    "SearchResponse",
    "TypesenseConfig",
]
