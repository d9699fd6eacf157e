"""Declarations of the backend operations the model may call.

The declarations are handed verbatim to the model so it can decide when and
how to invoke each tool. Parameter schemas use JSON-schema type names.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolDeclaration(BaseModel):
    """A callable tool as described to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    properties: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Parameter name to JSON-schema fragment ({'type', 'description'})"
    )
    required: tuple[str, ...] = ()

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """Get the JSON schema for tool parameters."""
        schema: dict[str, Any] = {"type": "object", "properties": dict(self.properties)}
        if self.required:
            schema["required"] = list(self.required)
        return schema


def _string(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def _number(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


TOOL_DECLARATIONS: tuple[ToolDeclaration, ...] = (
    ToolDeclaration(
        name="list_collections",
        description=(
            "List all Typesense collections with their schemas, field definitions, "
            "and document counts."
        ),
    ),
    ToolDeclaration(
        name="get_collection_schema",
        description=(
            "Get the full schema of a specific collection including all field names, "
            "types, and settings."
        ),
        properties={"collection_name": _string("The name of the collection.")},
        required=("collection_name",),
    ),
    ToolDeclaration(
        name="search_documents",
        description=(
            "Search documents in a collection with full-text search, filters, sorting, "
            'and pagination. Use q="*" to match all documents. Use filter_by for exact '
            'matching (e.g., "status:=active"). Use sort_by for ordering '
            '(e.g., "created_at:desc").'
        ),
        properties={
            "collection_name": _string("The collection to search in."),
            "q": _string('Search query. Use "*" to match all documents.'),
            "query_by": _string(
                "Comma-separated list of fields to search in "
                "(must be string or string[] fields)."
            ),
            "filter_by": _string(
                'Optional Typesense filter expression. Examples: "status:=active", '
                '"price:>100", "category:=[Electronics,Books]".'
            ),
            "sort_by": _string(
                'Optional sort expression like "field_name:desc" or "field_name:asc".'
            ),
            "page": _number("Page number (1-based). Default: 1."),
            "per_page": _number("Results per page (max 250). Default: 25."),
        },
        required=("collection_name", "q", "query_by"),
    ),
    ToolDeclaration(
        name="get_document",
        description="Retrieve a single document by its ID from a collection.",
        properties={
            "collection_name": _string("The collection name."),
            "document_id": _string("The document ID to retrieve."),
        },
        required=("collection_name", "document_id"),
    ),
    ToolDeclaration(
        name="count_documents",
        description=(
            "Count the total number of documents in a collection, optionally with a filter."
        ),
        properties={
            "collection_name": _string("The collection to count documents in."),
            "filter_by": _string(
                "Optional Typesense filter expression to count only matching documents."
            ),
        },
        required=("collection_name",),
    ),
    ToolDeclaration(
        name="create_document",
        description="Create a new document in a collection.",
        properties={
            "collection_name": _string("The collection to create the document in."),
            "document": _string(
                "The document to create as a JSON string. Must match the collection schema."
            ),
        },
        required=("collection_name", "document"),
    ),
    ToolDeclaration(
        name="update_document",
        description="Update an existing document in a collection.",
        properties={
            "collection_name": _string("The collection name."),
            "document_id": _string("The ID of the document to update."),
            "document": _string(
                "The partial document with fields to update as a JSON string."
            ),
        },
        required=("collection_name", "document_id", "document"),
    ),
    ToolDeclaration(
        name="delete_document",
        description="Delete a document from a collection by its ID.",
        properties={
            "collection_name": _string("The collection name."),
            "document_id": _string("The ID of the document to delete."),
        },
        required=("collection_name", "document_id"),
    ),
)

WRITE_TOOLS: frozenset[str] = frozenset({
    "create_document",
    "update_document",
    "delete_document",
})

_DECLARATIONS_BY_NAME = {d.name: d for d in TOOL_DECLARATIONS}


def is_write_tool(name: str) -> bool:
    """Whether calling ``name`` mutates data and needs confirmation."""
    return name in WRITE_TOOLS


def get_declaration(name: str) -> ToolDeclaration | None:
    """Look up a declaration by tool name."""
    return _DECLARATIONS_BY_NAME.get(name)


def describe_action(name: str, args: dict[str, Any]) -> str:
    """Human-readable description of a tool call, shown when asking for confirmation."""
    collection = args.get("collection_name")
    document_id = args.get("document_id")

    if name == "create_document":
        return f'Create a new document in "{collection}"'
    if name == "update_document":
        return f'Update document "{document_id}" in "{collection}"'
    if name == "delete_document":
        return f'Delete document "{document_id}" from "{collection}"'
    return f"Execute {name}"
