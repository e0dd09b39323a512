"""quarry area — knowledge area management.

Commands:
  quarry area create NAME [--description]
  quarry area list
  quarry area show AREA_ID
  quarry area rename AREA_ID NAME [--description]
  quarry area delete AREA_ID [--yes]
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from quarry.cli.errors import err_not_found
from quarry.cli.runtime import load_settings, open_db, resolve_db
from quarry.db.models import Area
from quarry.db.repository import Repository

console = Console()

area_app = typer.Typer(
    name="area",
    help="Manage knowledge areas (create, list, show, rename, delete).",
    add_completion=False,
)

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the project database (default: storage.db_path)."),
]


@area_app.command("create")
def area_create_cmd(
    name: Annotated[str, typer.Argument(help="Area name.")],
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="Optional description.")
    ] = None,
    db: DbOption = None,
) -> None:
    """Create a new knowledge area."""
    if not name.strip():
        console.print("[red]Error:[/] Area name must not be empty.")
        raise typer.Exit(1)

    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    try:
        area_id = Repository(conn).add_area(Area(name=name.strip(), description=description))
    finally:
        conn.close()
    console.print(f"[green]✓[/] Created area [bold]{name.strip()}[/] (id {area_id})")


@area_app.command("list")
def area_list_cmd(db: DbOption = None) -> None:
    """List all knowledge areas with their document and chat counters."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    try:
        areas = Repository(conn).list_areas()
    finally:
        conn.close()

    if not areas:
        console.print('[yellow]No areas yet.[/]  Run:  quarry area create "<name>"')
        raise typer.Exit(0)

    table = Table(title="Areas", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Documents", justify="right")
    table.add_column("Chats", justify="right")
    table.add_column("Created", style="dim")
    for area in areas:
        table.add_row(
            str(area.id),
            area.name,
            str(area.document_count),
            str(area.chat_count),
            (area.created_at or "")[:16],
        )
    console.print(table)


@area_app.command("show")
def area_show_cmd(
    area_id: Annotated[int, typer.Argument(help="Area id.")],
    db: DbOption = None,
) -> None:
    """Show one area with its documents and chats."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        area = repo.get_area(area_id)
        if area is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)
        documents = repo.list_documents(area_id)
        chats = repo.list_chats(area_id)
    finally:
        conn.close()

    lines = [f"Area:       [bold]{area.name}[/] (id {area.id})"]
    if area.description:
        lines.append(f"About:      {area.description}")
    lines.append(
        f"Documents:  [bold]{area.document_count}[/]  |  Chats: [bold]{area.chat_count}[/]"
    )
    for doc in documents:
        lines.append(f"  [dim]doc {doc.id}[/]  {doc.file_name}  ({doc.processing_status.value})")
    for chat in chats:
        lines.append(f"  [dim]chat {chat.id}[/]  {chat.name}  ({chat.message_count} answers)")
    console.print(Panel("\n".join(lines), title="[bold]Area[/]", expand=False))


@area_app.command("rename")
def area_rename_cmd(
    area_id: Annotated[int, typer.Argument(help="Area id.")],
    name: Annotated[str, typer.Argument(help="New name.")],
    description: Annotated[
        str | None,
        typer.Option("--description", "-d", help="Replace the description."),
    ] = None,
    db: DbOption = None,
) -> None:
    """Rename an area and optionally replace its description."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        area = repo.get_area(area_id)
        if area is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)
        new_description = description if description is not None else area.description
        repo.update_area(area_id, name.strip(), new_description)
    finally:
        conn.close()
    console.print(f"[green]✓[/] Area {area_id} renamed to [bold]{name.strip()}[/]")


@area_app.command("delete")
def area_delete_cmd(
    area_id: Annotated[int, typer.Argument(help="Area id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Delete an area with all its documents, chunks, chats and messages."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        area = repo.get_area(area_id)
        if area is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)

        console.print(f"\nDelete area: [bold]{area.name}[/]")
        console.print(f"  Documents: {area.document_count}  |  Chats: {area.chat_count}")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        stored_files = [Path(d.file_path) for d in repo.list_documents(area_id) if d.file_path]
        repo.delete_area(area_id)
    finally:
        conn.close()

    for path in stored_files:
        path.unlink(missing_ok=True)
    console.print(f"\n[green]✓[/] Deleted area: {area.name}")
