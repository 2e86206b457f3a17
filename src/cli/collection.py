"""CLI command that provisions the vector index collection."""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console

from config.settings import get_settings
from src.errors import SchemaMismatchError
from src.vectorstore.chroma_store import VectorIndex

console = Console()

logger = logging.getLogger(__name__)


def create_collection(
    recreate: Annotated[
        bool,
        typer.Option(
            "--recreate/--no-recreate",
            help="Delete and recreate the collection if its vector size is wrong",
        ),
    ] = True,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Create the collection (768-d, cosine) and check it with a test write."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    settings = get_settings()
    index = VectorIndex(
        path=settings.finchat_chroma_path,
        host=settings.finchat_chroma_host or None,
        port=settings.finchat_chroma_port,
        token=settings.finchat_chroma_token or None,
        collection_name=settings.finchat_collection_name,
        dimension=settings.finchat_embedding_dimension,
    )

    if not asyncio.run(index.check_connection()):
        console.print("[bold red]Vector index is unreachable.[/bold red]")
        raise typer.Exit(1)

    try:
        schema = asyncio.run(index.provision_collection(recreate_on_mismatch=recreate))
    except SchemaMismatchError as e:
        console.print(f"[bold red]{e}[/bold red]")
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Collection provisioning failed")
        console.print(f"[bold red]Error creating collection:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[bold green]Collection '{schema.name}' is ready.[/bold green]")
    console.print(f"  Vector size: {schema.dimension}")
    console.print(f"  Distance: {schema.distance}")
    console.print(f"  Points: {schema.points_count}")
