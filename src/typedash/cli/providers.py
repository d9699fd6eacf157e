"""Provider factory functions for CLI.

Centralizes creation of the search backend and LLM provider from environment variables.
Hides configuration details from command implementations.
"""

import os

from rich.console import Console

from ..config import DEFAULT_GEMINI_MODEL
from ..llm import LLMProvider, create_llm_provider
from ..search import SearchBackend, create_search_backend

# Default console for output
_console = Console()


def get_search_backend(console: Console | None = None) -> SearchBackend:
    """Create search backend from environment variables.

    Args:
        console: Optional Rich console for output

    Returns:
        Typesense backend, or an empty in-memory backend when SEARCH_BACKEND=memory

    Raises:
        SystemExit: If TYPESENSE_API_KEY is not set for the Typesense backend

    Environment variables:
        SEARCH_BACKEND: Backend type (typesense, memory; default: typesense)
        TYPESENSE_API_KEY: Typesense API key (required for typesense)
        TYPESENSE_HOST: Server host (default: localhost)
        TYPESENSE_PORT: Server port (default: 8108)
        TYPESENSE_PROTOCOL: http or https (default: http)
        TYPESENSE_TIMEOUT: Connection timeout in seconds (default: 10)
    """
    import typer

    con = console or _console
    backend = os.getenv("SEARCH_BACKEND", "typesense").lower()

    if backend == "memory":
        return create_search_backend("memory")

    api_key = os.getenv("TYPESENSE_API_KEY")
    if not api_key:
        con.print("[red]Error: TYPESENSE_API_KEY not set in environment[/red]")
        raise typer.Exit(code=1)

    return create_search_backend(
        "typesense",
        api_key=api_key,
        host=os.getenv("TYPESENSE_HOST", "localhost"),
        port=int(os.getenv("TYPESENSE_PORT", "8108")),
        protocol=os.getenv("TYPESENSE_PROTOCOL", "http"),
        connection_timeout_seconds=float(os.getenv("TYPESENSE_TIMEOUT", "10")),
    )


def get_llm(console: Console | None = None) -> LLMProvider | None:
    """Create LLM provider from environment variables.

    Args:
        console: Optional Rich console for output

    Returns:
        Initialized Gemini provider, or None if no API key is configured

    Environment variables:
        GEMINI_API_KEY: Gemini API key
        GEMINI_MODEL: Gemini model (default: gemini-2.0-flash)
    """
    con = console or _console
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        con.print("[yellow]Warning: GEMINI_API_KEY not set, chat disabled[/yellow]")
        return None

    model = os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL)
    return create_llm_provider("gemini", api_key=api_key, model=model)


def require_llm(console: Console | None = None) -> LLMProvider:
    """Get LLM provider, raising error if not configured.

    Args:
        console: Optional Rich console for output

    Returns:
        LLM provider instance

    Raises:
        SystemExit: If LLM provider is not configured
    """
    import typer

    con = console or _console
    llm = get_llm(con)
    if not llm:
        con.print("[red]Error: LLM provider not configured[/red]")
        raise typer.Exit(code=1)
    return llm
