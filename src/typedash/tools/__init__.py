"""Tools the model can call against the search backend."""

from .executor import ToolExecutor, build_query_by, is_embedding_value, strip_embedding_fields
from .registry import (
    TOOL_DECLARATIONS,
    WRITE_TOOLS,
    ToolDeclaration,
    describe_action,
    get_declaration,
    is_write_tool,
)

__all__ = [
    "TOOL_DECLARATIONS",
    "WRITE_TOOLS",
    "ToolDeclaration",
    "ToolExecutor",
    "build_query_by",
    "describe_action",
    "get_declaration",
    "is_embedding_value",
    "is_write_tool",
    "strip_embedding_fields",
]
