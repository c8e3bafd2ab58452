"""
Command-line interface for the mem memory store.
"""
import click
import logging
import sys
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape
from rich import box

from mem import __version__
from mem.config import MemConfig
from mem.credentials import store_api_key
from mem.errors import MemError
from mem.memory_store import MemoryStore

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


def _fail(command: str, error: Exception):
    """Report an expected failure and exit non-zero."""
    kind = getattr(error, "kind", "Invalid input")
    console.print(f"[red]✗[/red] {kind}: {escape(str(error))}", style="red")
    logger.debug(f"Error in {command} command: {error}", exc_info=True)
    sys.exit(1)


def _open_store(ctx: click.Context) -> MemoryStore:
    config = ctx.obj["config"]
    return MemoryStore.from_config(config)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """
    mem - semantic memory store

    Save short snippets with a description, recall them later by meaning.
    """
    try:
        config = MemConfig.from_env()
    except ValueError as e:
        _fail("config", e)

    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format=LOG_FORMAT
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument("memory")
@click.argument("description")
@click.pass_context
def insert(ctx: click.Context, memory: str, description: str):
    """Insert a MEMORY, retrievable by its DESCRIPTION."""
    try:
        store = _open_store(ctx)
        try:
            store.insert(memory, description)
        finally:
            store.close()
    except (MemError, ValueError) as e:
        _fail("insert", e)

    console.print("[green]✓[/green] Memory inserted!")


@cli.command()
@click.argument("description")
@click.pass_context
def get(ctx: click.Context, description: str):
    """Get the memory best matching DESCRIPTION."""
    try:
        store = _open_store(ctx)
        try:
            memory = store.get(description)
        finally:
            store.close()
    except (MemError, ValueError) as e:
        _fail("get", e)

    if memory is None:
        console.print("[yellow]No memory found![/yellow]")
        return

    content = f"""
[cyan]Memory:[/cyan] {escape(memory.value)}
[cyan]Description:[/cyan] {escape(memory.description)}
[cyan]Score:[/cyan] {memory.score:.4f}
    """
    console.print(Panel(
        content.strip(),
        title="📝 Memory",
        border_style="cyan",
        box=box.ROUNDED
    ))


@cli.command(name="list")
@click.argument("description")
@click.option("--count", "-n", default=10, show_default=True,
              type=click.IntRange(min=0), help="Maximum number of memories to list")
@click.pass_context
def list_memories(ctx: click.Context, description: str, count: int):
    """List memories ranked by similarity to DESCRIPTION."""
    try:
        store = _open_store(ctx)
        try:
            memories = store.list(description, count)
        finally:
            store.close()
    except (MemError, ValueError) as e:
        _fail("list", e)

    if not memories:
        console.print("[yellow]No memories found![/yellow]")
        return

    table = Table(
        title=f"🔍 Memories for: '{escape(description)}'",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Score", style="green", width=8)
    table.add_column("Memory", style="white")
    table.add_column("Description", style="magenta")

    for position, memory in enumerate(memories, start=1):
        table.add_row(
            str(position),
            f"{memory.score:.4f}",
            escape(memory.value),
            escape(memory.description)
        )

    console.print(table)


@cli.command(name="set-key")
@click.option("--api-key", prompt="OpenAI API key", hide_input=True,
              confirmation_prompt=True, help="Key to store (prompted if omitted)")
@click.pass_context
def set_key(ctx: click.Context, api_key: str):
    """Store the OpenAI API key in the data directory."""
    config = ctx.obj["config"]
    try:
        store_api_key(config, api_key)
    except (MemError, ValueError) as e:
        _fail("set-key", e)

    console.print(f"[green]✓[/green] API key stored in {escape(str(config.api_key_file))}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show memory store statistics."""
    config = ctx.obj["config"]
    try:
        store = _open_store(ctx)
        try:
            stats = store.stats()
        finally:
            store.close()
    except (MemError, ValueError) as e:
        _fail("stats", e)

    stats_text = f"""
[cyan]Total Memories:[/cyan] {stats['total_memories']}
[cyan]Embedding Backend:[/cyan] {config.embedding_backend}
[cyan]Embedding Model:[/cyan] {escape(stats['embedding_model'])}
[cyan]Embedding Dimension:[/cyan] {stats['embedding_dimension']}
[cyan]Data File:[/cyan] {escape(stats['data_file'])}
[cyan]File Size:[/cyan] {stats['file_size_bytes']} bytes
    """

    console.print(Panel(
        stats_text.strip(),
        title="📊 Memory Store Statistics",
        border_style="cyan",
        box=box.DOUBLE
    ))


@cli.command(name="clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context):
    """Delete cached embeddings (stored memories are kept)."""
    config = ctx.obj["config"]
    if not config.use_embedding_cache:
        console.print("[yellow]Embedding cache is disabled[/yellow]")
        return

    try:
        store = _open_store(ctx)
        try:
            count = store.clear_cache()
        finally:
            store.close()
    except (MemError, ValueError) as e:
        _fail("clear-cache", e)

    console.print(f"[green]✓[/green] Cleared {count} cached embeddings")


if __name__ == "__main__":
    cli()
