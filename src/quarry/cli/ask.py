"""quarry ask — ask a grounded question in a chat and stream the answer.

The question is stored and broadcast first; the answer is produced by a
background run. Tokens are printed as they arrive (tags already stripped),
followed by the stored, sanitized answer and its sources.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.rule import Rule

from quarry.cli.chats import print_sources
from quarry.cli.errors import err_answer_failed, err_empty_question, err_not_found
from quarry.cli.runtime import (
    Services,
    build_services,
    load_settings,
    open_db,
    require_api_key,
    resolve_db,
)
from quarry.db.repository import Repository
from quarry.errors import NotFoundError, ValidationError
from quarry.events import BotTyping, Event, MessageChunk, MessageComplete, MessageError, chat_topic

console = Console()

_POLL_SECONDS = 0.2


def ask_cmd(
    chat_id: Annotated[int, typer.Argument(help="Chat id.")],
    question: Annotated[str, typer.Argument(help="Question to ask.")],
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the project database (default: storage.db_path)."),
    ] = None,
) -> None:
    """Ask a question; the answer is grounded in the chat's area documents."""
    if not question.strip():
        console.print(err_empty_question())
        raise typer.Exit(1)

    cfg = load_settings()
    require_api_key(cfg.embedding.model)
    require_api_key(cfg.generation.model)

    db_path = resolve_db(db, cfg)
    conn = open_db(db_path)
    repo = Repository(conn)
    services = build_services(cfg, db_path)

    try:
        final = asyncio.run(_ask(repo, services, chat_id, question))
    except NotFoundError as exc:
        console.print(err_not_found(exc.kind, exc.ident))
        raise typer.Exit(1) from exc
    except ValidationError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    if isinstance(final, MessageComplete):
        console.print(Rule(style="dim"))
        console.print(final.content, markup=False, highlight=False)
        print_sources(final.sources)
        return
    if isinstance(final, MessageError):
        console.print(err_answer_failed(final.error))
    else:
        console.print(err_answer_failed("the answer run ended without a result"))
    raise typer.Exit(1)


async def _ask(repo: Repository, services: Services, chat_id: int, question: str) -> Event | None:
    """Send *question* and stream events until the answer completes or errors."""
    final: Event | None = None
    with services.bus.subscribe(chat_topic(chat_id)) as sub:
        await services.answers.send_message(repo, chat_id, question)
        streamed = False
        while final is None:
            try:
                event = await sub.get(timeout=_POLL_SECONDS)
            except asyncio.TimeoutError:
                if services.runner.pending == 0:
                    break
                continue
            if isinstance(event, BotTyping):
                console.print("[dim]Assistant is typing…[/]")
            elif isinstance(event, MessageChunk):
                streamed = True
                console.print(event.text, end="", markup=False, highlight=False)
            elif isinstance(event, (MessageComplete, MessageError)):
                final = event
        if streamed:
            console.print()
        await services.runner.drain()
    return final
