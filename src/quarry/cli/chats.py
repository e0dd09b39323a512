"""quarry chat — conversation management.

Commands:
  quarry chat create AREA_ID [--name]
  quarry chat list AREA_ID
  quarry chat rename CHAT_ID NAME
  quarry chat delete CHAT_ID [--yes]
  quarry chat history CHAT_ID
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from quarry.cli.errors import err_not_found
from quarry.cli.runtime import load_settings, open_db, resolve_db
from quarry.db.models import Chat, Message, Role
from quarry.db.repository import Repository

console = Console()

chat_app = typer.Typer(
    name="chat",
    help="Manage chats (create, list, rename, delete, history).",
    add_completion=False,
)

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the project database (default: storage.db_path)."),
]


@chat_app.command("create")
def chat_create_cmd(
    area_id: Annotated[int, typer.Argument(help="Area the chat answers from.")],
    name: Annotated[str, typer.Option("--name", "-n", help="Chat name.")] = "New Chat",
    db: DbOption = None,
) -> None:
    """Start a new chat in an area."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        if repo.get_area(area_id) is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)
        chat_name = name.strip() or "New Chat"
        chat_id = repo.add_chat(Chat(area_id=area_id, name=chat_name))
    finally:
        conn.close()
    console.print(f"[green]✓[/] Created chat [bold]{chat_name}[/] (id {chat_id})")
    console.print(f'  Ask:  quarry ask {chat_id} "your question"')


@chat_app.command("list")
def chat_list_cmd(
    area_id: Annotated[int, typer.Argument(help="Area id.")],
    db: DbOption = None,
) -> None:
    """List an area's chats, most recently answered first."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        if repo.get_area(area_id) is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)
        chats = repo.list_chats(area_id)
    finally:
        conn.close()

    if not chats:
        console.print(f"[yellow]No chats in area {area_id}.[/]")
        console.print(f"  Run:  quarry chat create {area_id}")
        raise typer.Exit(0)

    table = Table(title=f"Chats in area {area_id}", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Answers", justify="right")
    table.add_column("Last message", style="dim")
    for chat in chats:
        table.add_row(
            str(chat.id),
            chat.name,
            str(chat.message_count),
            (chat.last_message_at or "—")[:16],
        )
    console.print(table)


@chat_app.command("rename")
def chat_rename_cmd(
    chat_id: Annotated[int, typer.Argument(help="Chat id.")],
    name: Annotated[str, typer.Argument(help="New name.")],
    db: DbOption = None,
) -> None:
    """Rename a chat."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    try:
        renamed = Repository(conn).rename_chat(chat_id, name.strip())
    finally:
        conn.close()
    if not renamed:
        console.print(err_not_found("chat", chat_id))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] Chat {chat_id} renamed to [bold]{name.strip()}[/]")


@chat_app.command("delete")
def chat_delete_cmd(
    chat_id: Annotated[int, typer.Argument(help="Chat id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Delete a chat and its messages."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        chat = repo.get_chat(chat_id)
        if chat is None:
            console.print(err_not_found("chat", chat_id))
            raise typer.Exit(1)
        if not yes and not typer.confirm(f"Delete chat '{chat.name}'?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)
        repo.delete_chat(chat_id)
    finally:
        conn.close()
    console.print(f"[green]✓[/] Deleted chat: {chat.name}")


@chat_app.command("history")
def chat_history_cmd(
    chat_id: Annotated[int, typer.Argument(help="Chat id.")],
    db: DbOption = None,
) -> None:
    """Print a chat's messages in the order they were created."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        chat = repo.get_chat(chat_id)
        if chat is None:
            console.print(err_not_found("chat", chat_id))
            raise typer.Exit(1)
        messages = repo.list_messages(chat_id)
    finally:
        conn.close()

    console.print(f"[bold]{chat.name}[/] [dim](chat {chat_id})[/]\n")
    if not messages:
        console.print("[dim]No messages yet.[/]")
        return
    for message in messages:
        print_message(message)


def print_message(message: Message) -> None:
    """Render one stored message with its source citations."""
    who = "[bold cyan]You[/]" if message.role is Role.USER else "[bold green]Assistant[/]"
    stamp = (message.created_at or "")[:16]
    console.print(f"{who} [dim]{stamp}[/]")
    console.print(message.content, markup=False, highlight=False)
    print_sources(message.sources_list)
    console.print()


def print_sources(sources: list[dict]) -> None:
    if not sources:
        return
    console.print("[dim]Sources:[/]")
    for source in sources:
        console.print(
            f"  [dim]· {source['documentName']} #{source['chunkIndex']} "
            f"({source['similarity']:.2f})[/]"
        )
