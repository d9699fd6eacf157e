"""In-memory search backend.

Dict-based storage for offline demos and tests.
Data is lost when the process exits.

Only a subset of the Typesense filter language is evaluated: clauses joined
with ``&&`` of the forms ``field:=value``, ``field:!=value``,
``field:=[a,b]``, ``field:>n`` / ``>=`` / ``<`` / ``<=`` and
``field:[min..max]``.
"""

import copy
import re
import time
from itertools import count
from typing import Any

from ..errors import SearchBackendError
from .base import SearchBackend
from .models import CollectionSchema, SearchHit, SearchParams, SearchResponse

_CLAUSE = re.compile(r"^\s*(?P<field>[\w.]+)\s*:\s*(?P<op>!=|>=|<=|=|>|<)?\s*(?P<value>.+?)\s*$")
_RANGE = re.compile(r"^\[\s*(?P<low>.+?)\s*\.\.\s*(?P<high>[^\]]+?)\s*\]$")

DEFAULT_PER_PAGE = 10


class NotFoundError(SearchBackendError):
    """Raised when a collection or document does not exist."""


def _coerce(raw: str) -> Any:
    """Interpret a filter literal as a number or boolean when it looks like one."""
    raw = raw.strip().strip("`")
    if raw in ("true", "false"):
        return raw == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


def _matches_value(actual: Any, expected: Any) -> bool:
    if isinstance(actual, list):
        return any(_matches_value(item, expected) for item in actual)
    if isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


def _compare(actual: Any, op: str, expected: Any) -> bool:
    if isinstance(actual, list):
        return any(_compare(item, op, expected) for item in actual)
    try:
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
        if op == "<":
            return actual < expected
        return actual <= expected
    except TypeError:
        return False


def _clause_predicate(clause: str):
    match = _CLAUSE.match(clause)
    if not match:
        raise SearchBackendError(f"Could not parse filter clause: {clause!r}")

    field = match.group("field")
    op = match.group("op") or ""
    value = match.group("value")

    range_match = _RANGE.match(value)
    if range_match and op == "":
        low = _coerce(range_match.group("low"))
        high = _coerce(range_match.group("high"))
        return lambda doc: field in doc and _compare(doc[field], ">=", low) and _compare(doc[field], "<=", high)

    if value.startswith("[") and value.endswith("]"):
        options = [_coerce(v) for v in value[1:-1].split(",") if v.strip()]
        def in_options(doc: dict[str, Any]) -> bool:
            return field in doc and any(_matches_value(doc[field], o) for o in options)

        return (lambda doc: not in_options(doc)) if op == "!=" else in_options

    expected = _coerce(value)
    if op in (">", ">=", "<", "<="):
        return lambda doc: field in doc and _compare(doc[field], op, expected)
    if op == "!=":
        return lambda doc: field not in doc or not _matches_value(doc[field], expected)
    return lambda doc: field in doc and _matches_value(doc[field], expected)


class InMemorySearchBackend(SearchBackend):
    """In-memory search backend (process-only).

    Suitable for offline demos and testing.
    """

    def __init__(
        self,
        collections: list[CollectionSchema | dict[str, Any]] | None = None,
        documents: dict[str, list[dict[str, Any]]] | None = None
    ):
        self._schemas: dict[str, CollectionSchema] = {}
        self._documents: dict[str, dict[str, dict[str, Any]]] = {}
        self._ids = count(1)

        for schema in collections or []:
            schema = CollectionSchema.model_validate(schema)
            self._schemas[schema.name] = schema
            self._documents[schema.name] = {}

        for name, docs in (documents or {}).items():
            self._collection_docs(name)
            for doc in docs:
                self._insert(name, doc)

    def _collection_docs(self, name: str) -> dict[str, dict[str, Any]]:
        if name not in self._schemas:
            raise NotFoundError(f"Collection not found: {name}")
        return self._documents[name]

    def _insert(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        docs = self._collection_docs(name)
        doc = copy.deepcopy(document)
        doc_id = str(doc.get("id") or next(self._ids))
        while "id" not in document and doc_id in docs:
            doc_id = str(next(self._ids))
        if doc_id in docs:
            raise SearchBackendError(f"A document with id {doc_id} already exists.")
        doc["id"] = doc_id
        docs[doc_id] = doc
        return copy.deepcopy(doc)

    def _snapshot(self, name: str) -> CollectionSchema:
        schema = self._schemas[name]
        return schema.model_copy(update={"num_documents": len(self._documents[name])}, deep=True)

    async def list_collections(self) -> list[CollectionSchema]:
        return [self._snapshot(name) for name in self._schemas]

    async def get_collection(self, name: str) -> CollectionSchema:
        self._collection_docs(name)
        return self._snapshot(name)

    async def search_documents(self, name: str, params: SearchParams) -> SearchResponse:
        start_time = time.time()
        docs = list(self._collection_docs(name).values())

        if params.q and params.q != "*":
            needle = params.q.lower()
            fields = [f.strip() for f in params.query_by.split(",") if f.strip()]
            docs = [doc for doc in docs if self._text_match(doc, fields, needle)]

        if params.filter_by:
            predicates = [_clause_predicate(c) for c in params.filter_by.split("&&")]
            docs = [doc for doc in docs if all(p(doc) for p in predicates)]

        if params.sort_by:
            for spec in reversed(params.sort_by.split(",")):
                field, _, direction = spec.strip().partition(":")
                docs.sort(
                    key=lambda d: (d.get(field) is None, d.get(field)),
                    reverse=direction.strip().lower() == "desc",
                )

        page = params.page or 1
        per_page = DEFAULT_PER_PAGE if params.per_page is None else params.per_page
        offset = (page - 1) * per_page
        window = docs[offset:offset + per_page]

        return SearchResponse(
            hits=[SearchHit(document=copy.deepcopy(doc)) for doc in window],
            found=len(docs),
            out_of=len(self._documents[name]),
            page=page,
            search_time_ms=int((time.time() - start_time) * 1000),
        )

    @staticmethod
    def _text_match(doc: dict[str, Any], fields: list[str], needle: str) -> bool:
        for field in fields:
            value = doc.get(field)
            values = value if isinstance(value, list) else [value]
            if any(isinstance(v, str) and needle in v.lower() for v in values):
                return True
        return False

    async def get_document(self, name: str, document_id: str) -> dict[str, Any]:
        docs = self._collection_docs(name)
        if document_id not in docs:
            raise NotFoundError(f"Could not find a document with id: {document_id}")
        return copy.deepcopy(docs[document_id])

    async def create_document(self, name: str, document: dict[str, Any]) -> dict[str, Any]:
        return self._insert(name, document)

    async def update_document(
        self,
        name: str,
        document_id: str,
        partial: dict[str, Any]
    ) -> dict[str, Any]:
        docs = self._collection_docs(name)
        if document_id not in docs:
            raise NotFoundError(f"Could not find a document with id: {document_id}")
        docs[document_id].update(copy.deepcopy(partial))
        return {**copy.deepcopy(partial), "id": document_id}

    async def delete_document(self, name: str, document_id: str) -> dict[str, Any]:
        docs = self._collection_docs(name)
        if document_id not in docs:
            raise NotFoundError(f"Could not find a document with id: {document_id}")
        return docs.pop(document_id)
