"""CLI commands for agentmem."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentmem import __logo__, __version__

app = typer.Typer(
    name="agentmem",
    help=f"{__logo__} agentmem - plain-text memory for AI agents",
    no_args_is_help=True,
)

console = Console()

_config_path: Path | None = None


def _manager():
    """Build and initialize a MemoryManager from the loaded config."""
    from agentmem.config.loader import load_config
    from agentmem.memory.manager import MemoryManager

    manager = MemoryManager(load_config(_config_path))
    manager.init()
    return manager


def _join(words: list[str]) -> str:
    text = " ".join(words).strip()
    if not text:
        console.print("[red]Error: nothing to record[/red]")
        raise typer.Exit(1)
    return text


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} agentmem v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to config.json"
    ),
):
    """agentmem - plain-text memory for AI agents."""
    global _config_path
    _config_path = config


# ============================================================================
# Long-term memory
# ============================================================================


@app.command()
def remember(
    section: str = typer.Argument(..., help="Section, e.g. Preferences, People, Projects, Facts"),
    fact: list[str] = typer.Argument(..., help="Fact to store"),
):
    """Store a fact in MEMORY.md (skipped if already known)."""
    text = _join(fact)
    manager = _manager()
    try:
        if manager.add_fact(section, text, skip_duplicates=True):
            console.print(f"[green]✓[/green] Stored in {escape(section)}: \"{escape(text)}\"")
        else:
            console.print(f"[yellow]Already known:[/yellow] \"{escape(text)}\"")
    finally:
        manager.close()


@app.command()
def forget(
    section: str = typer.Argument(..., help="Section holding the fact"),
    fact: list[str] = typer.Argument(..., help="Fact to remove"),
):
    """Remove a fact from MEMORY.md."""
    text = _join(fact)
    manager = _manager()
    try:
        if manager.remove_fact(section, text):
            console.print(f"[green]✓[/green] Removed from {escape(section)}: \"{escape(text)}\"")
        else:
            console.print(f"[yellow]Not found in {escape(section)}:[/yellow] \"{escape(text)}\"")
    finally:
        manager.close()


@app.command()
def recall():
    """Show MEMORY.md contents."""
    manager = _manager()
    try:
        console.print(manager.get_long_term_memory(), markup=False)
    finally:
        manager.close()


# ============================================================================
# Daily notes
# ============================================================================


def _add_note(content: list[str], section: str, label: str) -> None:
    text = _join(content)
    manager = _manager()
    try:
        entry = manager.add_daily_note(text, section)
        console.print(f"[green]✓[/green] {label}: {escape(entry)}")
    finally:
        manager.close()


@app.command()
def note(
    content: list[str] = typer.Argument(..., help="Note text"),
    section: str = typer.Option("Session Notes", "--section", "-s", help="Daily section"),
):
    """Add a note to today's daily file."""
    _add_note(content, section, "Added note")


@app.command()
def decide(content: list[str] = typer.Argument(..., help="Decision text")):
    """Record a decision in today's notes."""
    _add_note(content, "Decisions Made", "Recorded decision")


@app.command()
def idea(content: list[str] = typer.Argument(..., help="Idea text")):
    """Record an idea in today's notes."""
    _add_note(content, "Ideas", "Recorded idea")


@app.command()
def task(content: list[str] = typer.Argument(..., help="Task text")):
    """Record a task in today's notes."""
    _add_note(content, "Tasks", "Recorded task")


@app.command()
def today():
    """Show today's notes."""
    manager = _manager()
    try:
        content = manager.get_today_notes()
        if content:
            console.print(content, markup=False)
        else:
            console.print("No notes for today yet.")
    finally:
        manager.close()


# ============================================================================
# Search & context
# ============================================================================


@app.command()
def search(query: list[str] = typer.Argument(..., help="Text or regex to look for")):
    """Search MEMORY.md and all daily notes."""
    text = _join(query)
    manager = _manager()
    try:
        results = manager.search(text)
    finally:
        manager.close()

    if not results:
        console.print(f"No matches for \"{escape(text)}\"")
        return

    table = Table(title=f"{len(results)} matches")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Content")
    for r in results:
        table.add_row(r.file, str(r.line), escape(r.content))
    console.print(table)


@app.command()
def context():
    """Print the memory context used in system prompts."""
    manager = _manager()
    try:
        console.print(manager.get_system_context(), markup=False)
    finally:
        manager.close()


# ============================================================================
# Sessions
# ============================================================================


@app.command()
def sessions():
    """List recorded sessions."""
    manager = _manager()
    try:
        items = manager.list_sessions()
    finally:
        manager.close()

    if not items:
        console.print("No sessions.")
        return

    table = Table(title="Sessions")
    table.add_column("ID", style="cyan")
    table.add_column("Updated")
    table.add_column("Entries", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Compactions", justify="right")
    for s in sorted(items, key=lambda s: s.updated_at, reverse=True):
        table.add_row(
            s.session_id, s.updated_at, str(s.entry_count),
            str(s.total_tokens), str(s.compaction_count),
        )
    console.print(table)


@app.command()
def compact(
    session_id: str | None = typer.Option(
        None, "--session-id", "-s", help="Session to compact (default: most recent)"
    ),
):
    """Summarize the older part of a session transcript."""
    from agentmem.agent.compactor import CompactionError
    from agentmem.agent.summarizer import LLMSummarizer, SummarizationError
    from agentmem.providers.litellm_provider import LiteLLMProvider

    manager = _manager()
    try:
        if session_id:
            found = manager.resume_session(session_id)
        else:
            found = manager.resume_latest_session() is not None
        if not found:
            console.print("[red]Error: session not found[/red]")
            raise typer.Exit(1)

        cfg = manager.config.summarizer
        provider = LiteLLMProvider(api_key=cfg.api_key or None, default_model=cfg.model)
        summarizer = LLMSummarizer(
            provider, max_tokens=cfg.max_tokens, temperature=cfg.temperature,
        )

        try:
            result = asyncio.run(manager.compact(summarizer))
        except (CompactionError, SummarizationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

        if result is None:
            console.print("Nothing to compact.")
            return
        console.print(
            f"[green]✓[/green] Compacted {result.removed_entry_count} entries, "
            f"saved {result.tokens_saved} tokens "
            f"(recent context now {result.new_total_tokens} tokens)"
        )
    finally:
        manager.close()
