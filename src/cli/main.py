"""FinChat CLI entry point."""

import typer

from src.cli.ask import ask
from src.cli.collection import create_collection
from src.cli.ingest import ingest
from src.cli.serve import serve

app = typer.Typer(
    name="finchat",
    help="Financial-services chat assistant - ingest documents and ask grounded questions.",
)

app.command(name="ask")(ask)
app.command(name="ingest")(ingest)
app.command(name="create-collection")(create_collection)
app.command(name="serve")(serve)


if __name__ == "__main__":
    app()
