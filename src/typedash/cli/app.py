"""Main CLI application using Typer."""
import asyncio
import logging
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..chat import ConversationSession, MessageRole, PendingAction, TableResult
from ..tools import ToolExecutor
from .providers import get_search_backend, require_llm

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="typedash",
    help="Chat with your Typesense collections in natural language",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

CELL_MAX_LENGTH = 60

_LEVEL_STYLES = {
    "debug": "dim",
    "info": "cyan",
    "warning": "yellow",
    "error": "red",
}


def _print_debug(level: str, component: str, message: str) -> None:
    style = _LEVEL_STYLES.get(level, "dim")
    console.print(f"[{style}]{level.upper():7} {component}: {escape(message)}[/{style}]")


def _format_cell(value: Any) -> str:
    text = "" if value is None else str(value)
    return text[:CELL_MAX_LENGTH] + "..." if len(text) > CELL_MAX_LENGTH else text


def render_table(table_data: TableResult) -> Table:
    """Build a rich Table for a derived result table."""
    title = table_data.collection_name
    if table_data.total_found is not None:
        title += f" ({table_data.total_found} found)"

    table = Table(title=title, show_lines=False)
    for column in table_data.columns:
        table.add_column(column, overflow="fold")
    for row in table_data.rows:
        table.add_row(*(escape(_format_cell(row.get(c))) for c in table_data.columns))
    return table


@app.command()
def collections():
    """List collections with their document and field counts."""
    async def _collections():
        backend = get_search_backend(console)
        try:
            items = await backend.list_collections()
            if not items:
                console.print("[dim]No collections found.[/dim]")
                return

            table = Table(title="Collections")
            table.add_column("Name", style="cyan")
            table.add_column("Documents", justify="right")
            table.add_column("Fields", justify="right")
            for item in items:
                table.add_row(item.name, str(item.num_documents), str(len(item.fields)))
            console.print(table)

        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            await backend.close()

    asyncio.run(_collections())


@app.command()
def chat(
    collection: str | None = typer.Option(
        None,
        "--collection",
        "-c",
        help="Collection to assume when a request does not name one"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show tool calls, status changes and HTTP requests"
    )
):
    """Start an interactive chat session.

    Type /clear to reset, /use NAME to change the default collection, /exit to quit.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    async def _confirm(session: ConversationSession, action: PendingAction) -> None:
        console.print(Panel(
            escape(action.description),
            title="[yellow]Confirmation required[/yellow]",
            border_style="yellow",
        ))
        confirmed = await asyncio.to_thread(typer.confirm, "Allow this action?", default=False)
        session.respond_to_confirmation(confirmed)

    async def _chat():
        backend = get_search_backend(console)
        llm = require_llm(console)
        session = ConversationSession(llm, ToolExecutor(backend), selected_collection=collection)
        confirmations: set[asyncio.Task] = set()

        def _on_pending(action: PendingAction) -> None:
            task = asyncio.get_running_loop().create_task(_confirm(session, action))
            confirmations.add(task)
            task.add_done_callback(confirmations.discard)

        session.set_pending_action_listener(_on_pending)
        if verbose:
            session.set_debug_callback(_print_debug)

        try:
            await session.refresh_catalogue()
            console.print(
                f"[dim]Connected. {len(session.collections)} collection(s) available. "
                f"Type /exit to quit.[/dim]"
            )

            while True:
                text = await asyncio.to_thread(console.input, "[bold cyan]you>[/bold cyan] ")
                command = text.strip().lower()
                if command in ("/exit", "/quit"):
                    break
                if command == "/clear":
                    session.clear_messages()
                    console.print("[dim]Conversation cleared.[/dim]")
                    continue
                if command == "/use" or command.startswith("/use "):
                    name = text.strip()[len("/use"):].strip() or None
                    session.select_collection(name)
                    console.print(f"[dim]Default collection: {escape(name or 'none')}[/dim]")
                    continue
                if not command:
                    continue

                reply = await session.send_message(text)
                if reply is None:
                    console.print("[dim]Message ignored (busy or sent too quickly).[/dim]")
                    continue

                if reply.role == MessageRole.ERROR:
                    console.print(f"[red]{escape(reply.content)}[/red]")
                    if session.last_error is not None and session.last_error.is_retryable():
                        console.print("[dim]This error is temporary; send the message again to retry.[/dim]")
                    continue

                console.print(f"[bold green]assistant>[/bold green] {escape(reply.content)}")
                if reply.table_data is not None:
                    console.print(render_table(reply.table_data))

        except (EOFError, KeyboardInterrupt):
            console.print()
        except Exception as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(code=1)
        finally:
            await session.close()
            await backend.close()

    asyncio.run(_chat())


if __name__ == "__main__":
    app()
