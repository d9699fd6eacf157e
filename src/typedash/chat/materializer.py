"""Derivation of tables and summary text from a turn's tool calls.

Tool results are shown as a table, so the reply text only needs a short
summary. Table sources are tried in a fixed priority order and the first
match wins: search results, a single document, the collection list, then a
collection schema.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from ..config import CONDENSE_MAX_LENGTH, SUMMARY_SENTENCE_MAX_LENGTH
from .models import FunctionCallRecord, TableResult

COLLECTION_LIST_COLUMNS = ["name", "num_documents", "fields"]
SCHEMA_COLUMNS = ["name", "type", "facet", "optional", "index"]

_SENTENCE_BREAK = re.compile(r"[.!]\s")


def _first(records: Sequence[FunctionCallRecord], name: str, accept) -> FunctionCallRecord | None:
    for record in records:
        if record.name == name and accept(record.result):
            return record
    return None


def _has_documents(result: Any) -> bool:
    return (
        isinstance(result, Mapping)
        and isinstance(result.get("documents"), list)
        and len(result["documents"]) > 0
    )


def _is_document(result: Any) -> bool:
    return isinstance(result, Mapping) and "error" not in result


def _is_collection_list(result: Any) -> bool:
    return isinstance(result, list) and len(result) > 0


def _has_fields(result: Any) -> bool:
    return isinstance(result, Mapping) and isinstance(result.get("fields"), list)


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def extract_table_data(records: Sequence[FunctionCallRecord]) -> TableResult | None:
    """Pick the table to display for a turn.

    Args:
        records: Tool invocations of the turn, in call order

    Returns:
        TableResult from the highest-priority usable result, or None
    """
    search_call = _first(records, "search_documents", _has_documents)
    if search_call:
        docs = [dict(d) for d in search_call.result["documents"]]
        columns = list(docs[0].keys())
        return TableResult(
            columns=columns,
            rows=[{c: d.get(c) for c in columns} for d in docs],
            collection_name=str(search_call.args.get("collection_name", "")),
            total_found=search_call.result.get("found"),
        )

    get_doc_call = _first(records, "get_document", _is_document)
    if get_doc_call:
        doc = dict(get_doc_call.result)
        return TableResult(
            columns=list(doc.keys()),
            rows=[doc],
            collection_name=str(get_doc_call.args.get("collection_name", "")),
            total_found=1,
        )

    list_call = _first(records, "list_collections", _is_collection_list)
    if list_call:
        collections = list_call.result
        rows = [
            {
                "name": c.get("name"),
                "num_documents": c.get("num_documents"),
                "fields": len(c["fields"]) if isinstance(c.get("fields"), list) else 0,
            }
            for c in collections
        ]
        return TableResult(
            columns=list(COLLECTION_LIST_COLUMNS),
            rows=rows,
            collection_name="Collections",
            total_found=len(collections),
        )

    schema_call = _first(records, "get_collection_schema", _has_fields)
    if schema_call:
        schema = schema_call.result
        rows = [
            {
                "name": f.get("name"),
                "type": f.get("type"),
                "facet": _yes_no(f.get("facet")),
                "optional": _yes_no(f.get("optional")),
                "index": "No" if f.get("index") is False else "Yes",
            }
            for f in schema["fields"]
        ]
        return TableResult(
            columns=list(SCHEMA_COLUMNS),
            rows=rows,
            collection_name=schema.get("name") or str(schema_call.args.get("collection_name", "")),
            total_found=len(schema["fields"]),
        )

    return None


def condense_text_for_table(raw_text: str, table: TableResult) -> str:
    """Shorten a reply whose data is already shown as a table.

    The model tends to narrate row contents even when told not to. Short
    replies are kept; otherwise the first sentence of the first non-empty line
    is used, or a generic "Found N results" summary.

    Args:
        raw_text: Reply text from the model
        table: The table shown alongside the reply

    Returns:
        Summary text
    """
    if len(raw_text) <= CONDENSE_MAX_LENGTH:
        return raw_text

    first_line = next((line for line in raw_text.split("\n") if line.strip()), "")
    first_sentence = _SENTENCE_BREAK.split(first_line)[0]

    if first_sentence and len(first_sentence) <= SUMMARY_SENTENCE_MAX_LENGTH:
        return first_sentence + "."

    count = table.total_found if table.total_found is not None else len(table.rows)
    plural = "" if count == 1 else "s"
    return f"Found {count} result{plural} from **{table.collection_name}**."


def materialize(
    raw_text: str,
    records: Sequence[FunctionCallRecord]
) -> tuple[str, TableResult | None]:
    """Derive the reply text and table for a completed turn."""
    table = extract_table_data(records)
    if table is None:
        return raw_text, None
    return condense_text_for_table(raw_text, table), table
