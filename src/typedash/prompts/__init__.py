"""Prompt management module.

Externalizes prompts to text files for easy customization.
Prompts can be overridden by placing files in the working directory.
"""

from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path

from ..search.models import CollectionField, CollectionSchema

# Default prompts directory (package location)
_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Load a prompt from file.

    Search order:
    1. Current working directory: ./prompts/{name}.txt
    2. Package prompts directory: typedash/prompts/{name}.txt

    Args:
        name: Prompt name (without .txt extension)

    Returns:
        Prompt text content

    Raises:
        FileNotFoundError: If prompt file not found in any location
    """
    filename = f"{name}.txt"

    # Check working directory first (allows user overrides)
    local_path = Path.cwd() / "prompts" / filename
    if local_path.exists():
        return local_path.read_text(encoding="utf-8")

    package_path = _PROMPTS_DIR / filename
    if package_path.exists():
        return package_path.read_text(encoding="utf-8")

    raise FileNotFoundError(
        f"Prompt '{name}' not found. Searched:\n"
        f"  - {local_path}\n"
        f"  - {package_path}"
    )


def is_embedding_field(field: CollectionField) -> bool:
    """Whether a schema field holds vectors that are useless to query by text."""
    return field.type.startswith("float") and "embedding" in field.name.lower()


def _describe_field(field: CollectionField) -> str:
    flags = field.type
    if field.optional:
        flags += ", optional"
    if field.facet:
        flags += ", facet"
    return f"  - {field.name} ({flags})"


def summarize_collection(collection: CollectionSchema) -> str:
    """Render one collection for the system prompt, hiding embedding fields."""
    fields_list = "\n".join(
        _describe_field(f) for f in collection.fields if not is_embedding_field(f)
    )
    hidden = sum(1 for f in collection.fields if is_embedding_field(f))
    embedding_note = (
        f"\n  [{hidden} embedding field(s) hidden - not queryable]" if hidden else ""
    )
    return (
        f'Collection "{collection.name}" ({collection.num_documents} documents):\n'
        f"{fields_list}{embedding_note}"
    )


def build_system_prompt(
    collections: Sequence[CollectionSchema],
    selected_collection: str | None
) -> str:
    """Build the system instruction from the live collection catalogue.

    Args:
        collections: Collections currently on the server
        selected_collection: Collection the user is viewing, used as the default target

    Returns:
        Rendered system prompt
    """
    collection_summaries = "\n\n".join(summarize_collection(c) for c in collections)

    if selected_collection:
        selected_info = (
            f'\nThe user is currently viewing the collection "{selected_collection}". '
            f"When they ask questions without specifying a collection, assume they mean "
            f'"{selected_collection}".'
        )
    else:
        selected_info = (
            "\nNo collection is currently selected. Ask the user which collection they "
            "want to query if their question is ambiguous."
        )

    return load_prompt("system").format(
        collection_summaries=collection_summaries,
        selected_info=selected_info,
    )


def clear_cache() -> None:
    """Clear the prompt cache (useful after modifying prompt files)."""
    load_prompt.cache_clear()


__all__ = [
    "load_prompt",
    "build_system_prompt",
    "summarize_collection",
    "is_embedding_field",
    "clear_cache",
]
