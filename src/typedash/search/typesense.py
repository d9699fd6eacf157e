"""Typesense search backend.

Talks to the Typesense REST API over HTTP with an async httpx client.
Authentication uses the X-TYPESENSE-API-KEY header.

API Reference: https://typesense.org/docs/latest/api/
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import SearchBackendError
from .base import SearchBackend
from .models import CollectionSchema, SearchParams, SearchResponse, TypesenseConfig

logger = logging.getLogger(__name__)


class TypesenseAPIError(SearchBackendError):
    """Raised when the Typesense API returns an error status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Typesense error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class TypesenseBackend(SearchBackend):
    """Typesense backend using the REST API.

    Hidden design decisions:
    - httpx client lifecycle and timeouts
    - URL construction and ID escaping
    - Error body parsing
    """

    API_KEY_HEADER = "X-TYPESENSE-API-KEY"

    def __init__(
        self,
        config: TypesenseConfig,
        client: httpx.AsyncClient | None = None
    ):
        """Initialize the Typesense backend.

        Args:
            config: Server connection settings
            client: Optional pre-built client (tests pass one with a MockTransport)
        """
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.connection_timeout_seconds,
        )

    @property
    def config(self) -> TypesenseConfig:
        """Get the connection settings."""
        return self._config

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None
    ) -> Any:
        """Send a request and decode the JSON response.

        Raises:
            TypesenseAPIError: On any non-2xx response
        """
        logger.debug("Typesense %s %s params=%s", method, path, params)
        response = await self._client.request(
            method,
            path,
            params=params,
            json=json_body,
            headers={self.API_KEY_HEADER: self._config.api_key},
        )

        if response.is_error:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text or response.reason_phrase
            logger.warning("Typesense %s %s failed: %s %s", method, path, response.status_code, message)
            raise TypesenseAPIError(response.status_code, message)

        return response.json()

    @staticmethod
    def _documents_path(name: str, document_id: str | None = None) -> str:
        path = f"/collections/{quote(name, safe='')}/documents"
        if document_id is not None:
            path += f"/{quote(str(document_id), safe='')}"
        return path

    async def list_collections(self) -> list[CollectionSchema]:
        data = await self._request("GET", "/collections")
        return [CollectionSchema.model_validate(item) for item in data]

    async def get_collection(self, name: str) -> CollectionSchema:
        data = await self._request("GET", f"/collections/{quote(name, safe='')}")
        return CollectionSchema.model_validate(data)

    async def search_documents(self, name: str, params: SearchParams) -> SearchResponse:
        data = await self._request(
            "GET",
            f"{self._documents_path(name)}/search",
            params=params.to_query_params(),
        )
        return SearchResponse.model_validate(data)

    async def get_document(self, name: str, document_id: str) -> dict[str, Any]:
        return await self._request("GET", self._documents_path(name, document_id))

    async def create_document(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", self._documents_path(name), json_body=document)

    async def update_document(
        self,
        name: str,
        document_id: str,
        partial: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            self._documents_path(name, document_id),
            json_body=partial,
        )

    async def delete_document(self, name: str, document_id: str) -> dict[str, Any]:
        return await self._request("DELETE", self._documents_path(name, document_id))

    async def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client:
            await self._client.aclose()
