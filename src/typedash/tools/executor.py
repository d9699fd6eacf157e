"""Execution of model-requested tool calls against a search backend."""

import json
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from ..config import DEFAULT_PAGE, DEFAULT_PER_PAGE, DEFAULT_SEARCH_QUERY, EMBEDDING_MIN_LENGTH
from ..errors import ToolExecutionError
from ..search import CollectionSchema, SearchBackend, SearchParams
from .registry import get_declaration

QUERYABLE_FIELD_TYPES = ("string", "string[]")

# Required arguments that have no sensible default
TARGET_PARAMS = ("collection_name", "document_id", "document")


def is_embedding_value(value: Any) -> bool:
    """Detect a vector/embedding field value (a long numeric array)."""
    return (
        isinstance(value, list)
        and len(value) > EMBEDDING_MIN_LENGTH
        and isinstance(value[0], (int, float))
        and not isinstance(value[0], bool)
    )


def strip_embedding_fields(document: Mapping[str, Any]) -> dict[str, Any]:
    """Replace embedding fields with a placeholder so the model knows they exist.

    Args:
        document: A document as returned by the backend

    Returns:
        A shallow copy with every embedding value replaced by
        ``"[embedding: N dimensions]"``
    """
    return {
        key: f"[embedding: {len(value)} dimensions]" if is_embedding_value(value) else value
        for key, value in document.items()
    }


def decode_document(raw: Any) -> dict[str, Any]:
    """Decode a ``document`` argument given as a JSON string or a mapping.

    Raises:
        ToolExecutionError: If the payload is not a JSON object
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Invalid JSON in document argument: {e}") from e
    if not isinstance(raw, Mapping):
        raise ToolExecutionError("The document argument must be a JSON object")
    return dict(raw)


def build_query_by(schema: CollectionSchema) -> str:
    """Choose ``query_by`` fields for a count query.

    Uses every indexed string/string[] field, falling back to the first field,
    or ``"id"`` when the collection has no fields.
    """
    query_by = ",".join(
        f.name for f in schema.fields
        if f.type in QUERYABLE_FIELD_TYPES and f.index is not False
    )
    if query_by:
        return query_by
    if schema.fields:
        return schema.fields[0].name
    return "id"


class ToolExecutor:
    """Executes tool calls by name against a search backend.

    Hidden design decisions:
    - Argument defaults and decoding
    - Result shaping for the model (plain dicts and lists)
    - Embedding sanitation of document payloads
    """

    def __init__(self, backend: SearchBackend):
        """Initialize the executor.

        Args:
            backend: Search backend the tools operate on
        """
        self._backend = backend
        self._debug_callback: Any | None = None
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "list_collections": self._list_collections,
            "get_collection_schema": self._get_collection_schema,
            "search_documents": self._search_documents,
            "get_document": self._get_document,
            "count_documents": self._count_documents,
            "create_document": self._create_document,
            "update_document": self._update_document,
            "delete_document": self._delete_document,
        }

    @property
    def backend(self) -> SearchBackend:
        """Get the search backend."""
        return self._backend

    def set_debug_callback(self, callback: Any) -> None:
        """Set debug callback for logging.

        Args:
            callback: Callable(level: str, component: str, message: str)
        """
        self._debug_callback = callback

    def _debug(self, level: str, component: str, message: str) -> None:
        """Send debug message if callback is set."""
        if self._debug_callback:
            self._debug_callback(level, component, message)

    async def execute(self, name: str, args: Mapping[str, Any] | None = None) -> Any:
        """Execute a tool call.

        Args:
            name: Declared tool name
            args: Arguments supplied by the model

        Returns:
            JSON-compatible result (dict or list)

        Raises:
            ToolExecutionError: If the tool is unknown, an argument is missing or
                malformed, or the backend call fails
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolExecutionError(f"Unknown function: {name}", tool_name=name)

        arguments = dict(args or {})
        declaration = get_declaration(name)
        if declaration is not None:
            for param in declaration.required:
                if param in TARGET_PARAMS and arguments.get(param) in (None, ""):
                    raise ToolExecutionError(
                        f"Missing required argument: {param}", tool_name=name
                    )

        self._debug("info", "Tool", f"Executing {name} {json.dumps(arguments, default=str)[:100]}")
        try:
            result = await handler(arguments)
        except ToolExecutionError as e:
            e.tool_name = e.tool_name or name
            self._debug("warning", "Tool", f"{name} failed: {e}")
            raise
        except Exception as e:
            self._debug("warning", "Tool", f"{name} failed: {e}")
            raise ToolExecutionError(str(e) or type(e).__name__, tool_name=name) from e

        self._debug("debug", "Tool", f"{name} complete")
        return result

    async def _list_collections(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        collections = await self._backend.list_collections()
        return [c.model_dump(exclude_none=True) for c in collections]

    async def _get_collection_schema(self, args: dict[str, Any]) -> dict[str, Any]:
        schema = await self._backend.get_collection(args["collection_name"])
        return schema.model_dump(exclude_none=True)

    async def _search_documents(self, args: dict[str, Any]) -> dict[str, Any]:
        params = SearchParams(
            q=args.get("q") or DEFAULT_SEARCH_QUERY,
            query_by=args.get("query_by") or "",
            filter_by=args.get("filter_by"),
            sort_by=args.get("sort_by"),
            page=int(args.get("page") or DEFAULT_PAGE),
            per_page=int(args.get("per_page") or DEFAULT_PER_PAGE),
        )
        response = await self._backend.search_documents(args["collection_name"], params)
        return {
            "found": response.found,
            "page": response.page,
            "search_time_ms": response.search_time_ms,
            "documents": [strip_embedding_fields(hit.document) for hit in response.hits],
        }

    async def _get_document(self, args: dict[str, Any]) -> dict[str, Any]:
        document = await self._backend.get_document(
            args["collection_name"], str(args["document_id"])
        )
        return strip_embedding_fields(document)

    async def _count_documents(self, args: dict[str, Any]) -> dict[str, Any]:
        collection_name = args["collection_name"]
        schema = await self._backend.get_collection(collection_name)
        params = SearchParams(
            q="*",
            query_by=build_query_by(schema),
            filter_by=args.get("filter_by"),
            per_page=0,
        )
        response = await self._backend.search_documents(collection_name, params)
        return {"count": response.found, "collection": collection_name}

    async def _create_document(self, args: dict[str, Any]) -> dict[str, Any]:
        document = decode_document(args["document"])
        created = await self._backend.create_document(args["collection_name"], document)
        return strip_embedding_fields(created)

    async def _update_document(self, args: dict[str, Any]) -> dict[str, Any]:
        updates = decode_document(args["document"])
        updated = await self._backend.update_document(
            args["collection_name"], str(args["document_id"]), updates
        )
        return strip_embedding_fields(updated)

    async def _delete_document(self, args: dict[str, Any]) -> dict[str, Any]:
        document_id = args["document_id"]
        await self._backend.delete_document(args["collection_name"], str(document_id))
        return {"success": True, "deleted": document_id}
