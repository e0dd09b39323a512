"""quarry doc — upload, analyze, list and delete documents.

Commands:
  quarry doc upload AREA_ID FILE [--no-analyze]
  quarry doc analyze DOC_ID
  quarry doc list AREA_ID
  quarry doc delete DOC_ID [--yes]

Analysis runs as a background job; the command subscribes to the area's
progress events and renders them as a progress bar until the job reports
Completed or Failed.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from quarry.cli.errors import (
    err_already_processing,
    err_ingest_failed,
    err_invalid_upload,
    err_not_found,
    err_unsupported_file,
)
from quarry.cli.runtime import (
    Services,
    build_services,
    load_settings,
    open_db,
    require_api_key,
    resolve_db,
)
from quarry.db.models import Document, ProcessingStatus
from quarry.db.repository import Repository
from quarry.errors import (
    AlreadyProcessingError,
    NotFoundError,
    UnsupportedFileTypeError,
    ValidationError,
)
from quarry.events import DocumentProgress, area_topic
from quarry.ingest.intake import delete_document, upload_document

console = Console()

doc_app = typer.Typer(
    name="doc",
    help="Manage documents (upload, analyze, list, delete).",
    add_completion=False,
)

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the project database (default: storage.db_path)."),
]

_TERMINAL = {ProcessingStatus.COMPLETED.value, ProcessingStatus.FAILED.value}
_POLL_SECONDS = 0.2

_STATUS_STYLE = {
    ProcessingStatus.UPLOADED: "[dim]Uploaded[/]",
    ProcessingStatus.PROCESSING: "[yellow]Processing[/]",
    ProcessingStatus.COMPLETED: "[green]Completed[/]",
    ProcessingStatus.FAILED: "[red]Failed[/]",
}


@doc_app.command("upload")
def doc_upload_cmd(
    area_id: Annotated[int, typer.Argument(help="Target area id.")],
    file: Annotated[Path, typer.Argument(help="Document to upload (.pdf .docx .txt .md).")],
    no_analyze: Annotated[
        bool,
        typer.Option("--no-analyze", help="Only store the file; analyze later with doc analyze."),
    ] = False,
    db: DbOption = None,
) -> None:
    """Upload a document into an area and analyze it."""
    cfg = load_settings()
    if not no_analyze:
        require_api_key(cfg.embedding.model)
    db_path = resolve_db(db, cfg)
    conn = open_db(db_path)
    repo = Repository(conn)
    services = build_services(cfg, db_path)
    uploads_dir = Path(cfg.storage.uploads_dir)

    async def _flow() -> Document | None:
        document = await upload_document(repo, services.bus, area_id, file, uploads_dir)
        console.print(
            f"[green]✓[/] Uploaded [bold]{document.file_name}[/] "
            f"(doc {document.id}, {document.file_size:,} bytes)"
        )
        if no_analyze:
            return document
        return await _analyze_live(repo, services, document)

    try:
        document = asyncio.run(_flow())
    except UnsupportedFileTypeError as exc:
        console.print(err_unsupported_file(exc.file_type))
        raise typer.Exit(1) from exc
    except ValidationError as exc:
        console.print(err_invalid_upload(str(exc)))
        raise typer.Exit(1) from exc
    except NotFoundError as exc:
        console.print(err_not_found(exc.kind, exc.ident))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    _report(document)


@doc_app.command("analyze")
def doc_analyze_cmd(
    document_id: Annotated[int, typer.Argument(help="Document id.")],
    db: DbOption = None,
) -> None:
    """(Re-)run text extraction, chunking and embedding for a document."""
    cfg = load_settings()
    db_path = resolve_db(db, cfg)
    conn = open_db(db_path)
    repo = Repository(conn)
    services = build_services(cfg, db_path)

    try:
        document = repo.get_document(document_id)
        if document is None:
            console.print(err_not_found("document", document_id))
            raise typer.Exit(1)
        require_api_key(cfg.embedding.model)
        document = asyncio.run(_analyze_live(repo, services, document))
    except AlreadyProcessingError as exc:
        console.print(err_already_processing(exc.document_id))
        raise typer.Exit(1) from exc
    finally:
        conn.close()

    _report(document)


@doc_app.command("list")
def doc_list_cmd(
    area_id: Annotated[int, typer.Argument(help="Area id.")],
    db: DbOption = None,
) -> None:
    """List an area's documents with processing status and chunk counts."""
    cfg = load_settings()
    conn = open_db(resolve_db(db, cfg))
    repo = Repository(conn)
    try:
        if repo.get_area(area_id) is None:
            console.print(err_not_found("area", area_id))
            raise typer.Exit(1)
        documents = repo.list_documents(area_id)
    finally:
        conn.close()

    if not documents:
        console.print(f"[yellow]No documents in area {area_id}.[/]")
        console.print(f"  Run:  quarry doc upload {area_id} <FILE>")
        raise typer.Exit(0)

    table = Table(title=f"Documents in area {area_id}", show_header=True, header_style="bold")
    table.add_column("ID", justify="right")
    table.add_column("File", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    table.add_column("Uploaded", style="dim")
    for doc in documents:
        status = _STATUS_STYLE[doc.processing_status]
        if doc.processing_status is ProcessingStatus.FAILED and doc.error_message:
            status += f" [dim]({doc.error_message})[/]"
        table.add_row(
            str(doc.id),
            doc.file_name,
            f"{doc.file_size:,}",
            status,
            str(doc.chunk_count),
            (doc.uploaded_at or "")[:16],
        )
    console.print(table)


@doc_app.command("delete")
def doc_delete_cmd(
    document_id: Annotated[int, typer.Argument(help="Document id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Delete a document, its chunks and its stored file."""
    cfg = load_settings()
    db_path = resolve_db(db, cfg)
    conn = open_db(db_path)
    repo = Repository(conn)
    services = build_services(cfg, db_path)

    try:
        document = repo.get_document(document_id)
        if document is None:
            console.print(err_not_found("document", document_id))
            raise typer.Exit(1)

        console.print(f"\nDelete document: [bold]{document.file_name}[/]")
        console.print(f"  Chunks: {document.chunk_count}  |  Stored file: {document.file_path}")
        if not yes and not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

        asyncio.run(delete_document(repo, services.bus, document_id))
    finally:
        conn.close()

    console.print(f"\n[green]✓[/] Deleted: {document.file_name}")


# ------------------------------------------------------------------
# Live analysis
# ------------------------------------------------------------------


async def _analyze_live(repo: Repository, services: Services, document: Document) -> Document:
    """Start ingestion and render its progress events until it ends."""
    with services.bus.subscribe(area_topic(document.area_id)) as sub:
        task = await services.ingestion.start(repo, document.id)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            bar = prog.add_task(f"Analyzing {document.file_name}…", total=100)
            while True:
                try:
                    event = await sub.get(timeout=_POLL_SECONDS)
                except asyncio.TimeoutError:
                    if task.done():
                        break
                    continue
                if not isinstance(event, DocumentProgress) or event.document_id != document.id:
                    continue
                prog.update(bar, completed=event.progress)
                if event.status in _TERMINAL:
                    break
        await services.runner.drain()

    refreshed = await asyncio.to_thread(repo.get_document, document.id)
    return refreshed or document


def _report(document: Document | None) -> None:
    if document is None:
        return
    status = document.processing_status
    if status is ProcessingStatus.COMPLETED:
        console.print(f"[green]✓[/] Analyzed: {document.chunk_count} chunks stored")
    elif status is ProcessingStatus.FAILED:
        console.print(err_ingest_failed(document.file_name, document.error_message))
        raise typer.Exit(1)
    elif status is ProcessingStatus.UPLOADED:
        console.print(f"  [dim]Not analyzed yet. Run:  quarry doc analyze {document.id}[/]")
