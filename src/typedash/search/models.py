from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CollectionField(BaseModel):
    """A field definition inside a collection schema."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(description="Field name")
    type: str = Field(description="Typesense field type, e.g. 'string', 'int32', 'float[]'")
    facet: bool | None = None
    optional: bool | None = None
    index: bool | None = None
    sort: bool | None = None
    infix: bool | None = None
    locale: str | None = None


class CollectionSchema(BaseModel):
    """A collection with its field definitions and document count."""

    model_config = ConfigDict(extra="allow")

    name: str
    num_documents: int = Field(default=0, ge=0)
    fields: list[CollectionField] = Field(default_factory=list)
    default_sorting_field: str | None = None
    created_at: int | None = None


class SearchParams(BaseModel):
    """Parameters for a document search.

    ``filter_by`` and ``sort_by`` use the backend's own query language and are
    passed through untouched.
    """

    q: str = Field(default="*", description="Search text; '*' matches everything")
    query_by: str = Field(description="Comma-separated list of fields to search in")
    filter_by: str | None = None
    sort_by: str | None = None
    page: int | None = Field(default=None, ge=1)
    per_page: int | None = Field(default=None, ge=0, le=250)

    def to_query_params(self) -> dict[str, Any]:
        """Render as URL query parameters, dropping unset values."""
        return self.model_dump(exclude_none=True)


class SearchHit(BaseModel):
    """A single search hit."""

    document: dict[str, Any]
    highlights: list[Any] | None = None
    text_match: int | None = None


class SearchResponse(BaseModel):
    """Search response with hits and metadata."""

    model_config = ConfigDict(extra="allow")

    hits: list[SearchHit] = Field(default_factory=list)
    found: int = Field(default=0, ge=0)
    out_of: int | None = None
    page: int = 1
    search_time_ms: int = 0


class TypesenseConfig(BaseModel):
    """Connection settings for a Typesense server."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    host: str = "localhost"
    port: int = 8108
    protocol: Literal["http", "https"] = "http"
    connection_timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def base_url(self) -> str:
        """Server root URL."""
        return f"{self.protocol}://{self.host}:{self.port}"
