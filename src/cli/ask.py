"""CLI command for asking questions against the ingested documents."""

import asyncio
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from config.settings import get_settings
from src.chat.service import ChatMessage, ChatReply, ChatService
from src.errors import GenerationServiceError
from src.retrieval.retriever import ContextRetriever
from src.runtime.context import AppContext, build_context

console = Console()
app = typer.Typer()

logger = logging.getLogger(__name__)


async def _answer(context: AppContext, question: str, document_id: str | None) -> ChatReply:
    retriever = ContextRetriever(
        context.vector_index,
        context.embedder,
        context.fallback_embedder,
        limit=context.settings.finchat_search_limit,
    )
    service = ChatService(
        retriever,
        context.llm,
        metadata_store=context.metadata_store,
        timeout=context.settings.finchat_request_timeout,
    )
    try:
        await context.metadata_store.create_tables()
        return await service.answer(
            [ChatMessage(role="user", content=question)],
            document_id=document_id,
            user_id="cli",
        )
    finally:
        await context.aclose()


@app.command()
def ask(
    question: Annotated[
        str,
        typer.Argument(help="Your question about loans, insurance, cards or investments"),
    ],
    document_id: Annotated[
        str | None,
        typer.Option("--document-id", "-d", help="Restrict retrieval to one document"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
):
    """Ask the assistant a question from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig(level=logging.WARNING)

    settings = get_settings()
    context = build_context(settings)

    if context.llm is None:
        console.print(
            f"[bold red]No API key set for LLM provider '{settings.finchat_llm_provider}'.[/bold red]\n"
            "Export your API key, e.g.: export GROQ_API_KEY='gsk_...'"
        )
        raise typer.Exit(1)

    try:
        with console.status("[bold green]Thinking..."):
            result = asyncio.run(_answer(context, question, document_id))
    except GenerationServiceError as e:
        console.print(f"[bold red]{e.message}[/bold red] (status {e.status_code})")
        raise typer.Exit(1)

    grounded = bool(result.context)
    header = Text()
    header.append("FinChat", style="bold")
    header.append("  Context: ", style="dim")
    header.append("grounded" if grounded else "general knowledge", style="bold green" if grounded else "bold yellow")

    console.print()
    console.print(Panel(result.content, title=header, border_style="green" if grounded else "yellow", padding=(1, 2)))
