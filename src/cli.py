"""Terminal front end for Whisper Well."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from whisperwell.chat import ConversationService, ConversationTurn, ErrorKind, Role, Session
from whisperwell.config import WhisperWellConfig, load_config, merge_cli_overrides
from whisperwell.errors import ConfigError, PersistenceError
from whisperwell.journal import EntryStore, FileKeyValueStore, extract_common_themes
from whisperwell.journal.models import JournalEntry
from whisperwell.llm import CompletionClient

app = typer.Typer(
    name="whisperwell",
    help="A journaling companion that listens, remembers, and reflects.",
)

console = Console()

JOURNAL_COMMAND = "/journal"
QUIT_COMMANDS = ("/quit", "/exit")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from whisperwell import __version__

        console.print(f"whisperwell {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .whisperwell.toml file."),
    ] = None,
    store_path: Annotated[
        Optional[Path],
        typer.Option("--store", help="Journal store file (overrides config)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Whisper Well - your AI journaling companion."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = load_config(config_path)
    ctx.obj = merge_cli_overrides(
        config,
        store_path=str(store_path) if store_path else None,
    )


def _open_store(config: WhisperWellConfig) -> EntryStore:
    return EntryStore(FileKeyValueStore(config.store_path))


def _print_turn(turn: ConversationTurn) -> None:
    if turn.role == Role.USER:
        return
    body = turn.content
    if turn.tags:
        body += "\n" + " ".join(f"[cyan]#{tag}[/cyan]" for tag in turn.tags)
    console.print(Panel(body, title="Whisper Well", title_align="left", border_style="magenta"))


def _await_recalls(service: ConversationService, session: Session) -> None:
    """Block until pending memories are due, then show them."""
    if not session.pending_recalls:
        return
    due = max(recall.due_at for recall in session.pending_recalls)
    wait = (due - datetime.now()).total_seconds()
    if wait > 0:
        with console.status("Remembering..."):
            time.sleep(wait)
    for turn in service.deliver_due_recalls(session, due):
        _print_turn(turn)


def _entries_table(entries: list[JournalEntry], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Date", style="dim", no_wrap=True)
    table.add_column("Mood")
    table.add_column("Tags", style="cyan")
    table.add_column("Entry")
    for entry in entries:
        preview = entry.content if len(entry.content) <= 80 else entry.content[:77] + "..."
        table.add_row(
            entry.date.strftime("%Y-%m-%d %H:%M"),
            entry.mood or "",
            ", ".join(entry.tags),
            preview,
        )
    return table


@app.command()
def chat(
    ctx: typer.Context,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model name for the completion service."),
    ] = None,
) -> None:
    """Start an interactive journaling conversation."""
    config = merge_cli_overrides(ctx.obj, model=model)
    try:
        config.require_api_key()
    except ConfigError as exc:
        console.print(f"[bold red]{exc}[/bold red] Replies and mood detection are unavailable.")

    service = ConversationService(_open_store(config), CompletionClient(config.model), config=config)
    session = Session()

    console.print(
        f"[dim]Type {JOURNAL_COMMAND} to save your next message as a journal entry, "
        f"{QUIT_COMMANDS[0]} to leave.[/dim]"
    )
    for turn in service.start(session):
        _print_turn(turn)
    _await_recalls(service, session)

    while True:
        label = "journal" if session.journal_mode else "you"
        try:
            text = console.input(f"[bold green]{label}[/bold green] › ")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        command = text.strip().lower()
        if command in QUIT_COMMANDS:
            break
        if command == JOURNAL_COMMAND:
            toggled = service.toggle_journal_mode(session)
            if toggled.notice:
                console.print(f"[yellow]{toggled.notice}[/yellow]")
            else:
                console.print("[dim]Journal mode off.[/dim]")
            continue

        with console.status("Listening..."):
            result = service.submit(session, text)

        if result.error_kind == ErrorKind.CONFIG:
            console.print(Panel(result.notice or "", title="Configuration", border_style="red"))
        elif result.notice:
            style = "red" if result.failed else "yellow"
            console.print(f"[{style}]{result.notice}[/{style}]")
        if result.assistant_turn is not None:
            _print_turn(result.assistant_turn)


@app.command()
def entries(
    ctx: typer.Context,
    today: Annotated[bool, typer.Option("--today", help="Only today's entries.")] = False,
    week: Annotated[bool, typer.Option("--week", help="Entries from the past 7 days.")] = False,
    on_this_day: Annotated[
        bool,
        typer.Option("--on-this-day", help="Entries from this date in earlier years."),
    ] = False,
) -> None:
    """List journal entries, most recent first."""
    if sum((today, week, on_this_day)) > 1:
        console.print("[red]Choose at most one of --today, --week, --on-this-day.[/red]")
        raise typer.Exit(1)

    store = _open_store(ctx.obj)
    if today:
        found, title = store.list_today(), "Today"
    elif week:
        found, title = store.list_past_week(), "Past week"
    elif on_this_day:
        found, title = store.list_on_this_day(), "On this day"
    else:
        found, title = store.list(), "All entries"

    if not found:
        console.print("[yellow]No journal entries found.[/yellow]")
        return
    console.print(_entries_table(found, f"{title} ({len(found)})"))


@app.command()
def themes(ctx: typer.Context) -> None:
    """Show tags that recur across the past week's entries."""
    store = _open_store(ctx.obj)
    common = extract_common_themes(store.list_past_week())
    if not common:
        console.print("[yellow]No recurring themes this week.[/yellow]")
        return
    console.print("Recurring this week: " + ", ".join(f"[cyan]#{t}[/cyan]" for t in common))


@app.command()
def clear(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
) -> None:
    """Delete every journal entry."""
    if not yes and not typer.confirm("Delete all journal entries?"):
        raise typer.Abort()
    try:
        _open_store(ctx.obj).clear()
    except PersistenceError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    console.print("[green]Journal cleared.[/green]")


if __name__ == "__main__":
    app()
