"""Quarry CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from quarry.cli.areas import area_app
from quarry.cli.ask import ask_cmd
from quarry.cli.chats import chat_app
from quarry.cli.documents import doc_app
from quarry.cli.init import init_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("quarry")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quarry {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="quarry",
    help=(
        "Quarry: chat with your documents.\n\n"
        "  quarry doc upload  Store a document in an area and index it.\n"
        "  quarry ask         Ask a question answered from the area's documents."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Quarry: chat with your documents."""


app.command("init")(init_cmd)
app.command("ask")(ask_cmd)
app.add_typer(area_app, name="area")
app.add_typer(doc_app, name="doc")
app.add_typer(chat_app, name="chat")


@app.command("version")
def version_cmd() -> None:
    """Show the installed Quarry version."""
    typer.echo(f"quarry {_installed_version()}")


if __name__ == "__main__":
    app()
