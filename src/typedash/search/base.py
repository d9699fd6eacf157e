from abc import ABC, abstractmethod
from typing import Any

from .models import CollectionSchema, SearchParams, SearchResponse


class SearchBackend(ABC):
    """Abstract base class for search backends.

    This module hides the design decision of which search server holds the
    collections and how it is reached.

    Hidden design decisions:
    - Transport and authentication
    - Request/response format conversion
    - Query evaluation (filter and sort syntax is the backend's own)

    Supports async context manager protocol for proper resource cleanup:
        async with backend:
            collections = await backend.list_collections()
    """

    @abstractmethod
    async def list_collections(self) -> list[CollectionSchema]:
        """List all collections with their schemas and document counts."""
        pass

    @abstractmethod
    async def get_collection(self, name: str) -> CollectionSchema:
        """Get the schema of a single collection.

        Raises:
            SearchBackendError: If the collection does not exist
        """
        pass

    @abstractmethod
    async def search_documents(self, name: str, params: SearchParams) -> SearchResponse:
        """Search documents in a collection.

        Args:
            name: Collection name
            params: Search parameters

        Returns:
            SearchResponse with hits and total found count
        """
        pass

    @abstractmethod
    async def get_document(self, name: str, document_id: str) -> dict[str, Any]:
        """Retrieve a single document by ID."""
        pass

    @abstractmethod
    async def create_document(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        """Create a document and return it as stored."""
        pass

    @abstractmethod
    async def update_document(
        self,
        name: str,
        document_id: str,
        partial: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply a partial update to a document and return the changed fields."""
        pass

    @abstractmethod
    async def delete_document(self, name: str, document_id: str) -> dict[str, Any]:
        """Delete a document and return the deleted document."""
        pass

    async def close(self) -> None:
        """Close any open connections or resources."""
        pass

    async def __aenter__(self) -> "SearchBackend":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup."""
        await self.close()
