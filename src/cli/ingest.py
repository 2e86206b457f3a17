"""CLI command for batch document ingestion."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from config.settings import get_settings
from src.errors import SchemaMismatchError
from src.ingestion.pipeline import run_ingestion_pipeline
from src.runtime.context import AppContext, build_context

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)


async def _run(context: AppContext, sources: list[Path] | None) -> dict | None:
    try:
        if not await context.vector_index.check_connection():
            return None
        await context.metadata_store.create_tables()
        return await run_ingestion_pipeline(context, sources=sources)
    finally:
        await context.aclose()


@app.command()
def ingest(
    source_dir: Annotated[
        Path | None,
        typer.Option("--source-dir", help="Directory holding the configured source files"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Ingest the configured PDF and CSV sources into the vector index."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    context = build_context(settings)
    sources = None
    if source_dir is not None:
        sources = [source_dir / name for name in settings.finchat_source_files]

    console.print("[bold]FinChat Ingestion[/bold]")
    console.print(f"Collection: {settings.finchat_collection_name}")
    console.print(
        f"Chunk size: {settings.finchat_chunk_size} characters, "
        f"overlap: {settings.finchat_chunk_overlap} characters"
    )
    console.print()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Ingesting documents...", total=None)
            result = asyncio.run(_run(context, sources))
            progress.update(task, completed=True)
    except SchemaMismatchError as e:
        console.print(f"[bold red]Collection schema mismatch:[/bold red] {e}")
        console.print("Run 'finchat create-collection' to recreate it.")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Ingestion failed")
        console.print(f"[bold red]Ingestion failed:[/bold red] {e}")
        raise typer.Exit(1)

    if result is None:
        console.print("[bold red]Vector index is unreachable.[/bold red]")
        console.print("Start Chroma (e.g. 'chroma run --path ./data/chroma') or set FINCHAT_CHROMA_HOST.")
        raise typer.Exit(1)

    console.print()
    console.print("[bold green]Ingestion complete![/bold green]")
    console.print(f"  Documents ingested: {result['documents_ingested']}")
    console.print(f"  Documents skipped (already loaded): {result['documents_skipped']}")
    console.print(f"  Chunks stored: {result['chunks_stored']}")
    console.print(f"  Errors: {result['errors']}")
    if result["points_in_collection"] is not None:
        console.print(f"  Total in collection: {result['points_in_collection']} points")
