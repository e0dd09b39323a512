"""Upload intake and document removal.

Upload validation order: extension, empty file, area existence. All checks
run before the file is copied or a row is written, so a rejected upload
leaves no trace. Accepted files are stored under ``<uploads_dir>/<uuid><ext>``;
the original name is kept on the document row.
"""

from __future__ import annotations

import asyncio
import shutil
import uuid
from pathlib import Path

from loguru import logger

from quarry.db.models import Document, ProcessingStatus
from quarry.db.repository import Repository
from quarry.errors import NotFoundError, UnsupportedFileTypeError, ValidationError
from quarry.events import DocumentProgress, EventBus, area_topic
from quarry.ingest.extract import SUPPORTED_EXTENSIONS


def check_extension(file_name: str) -> str:
    """Return the lower-case extension of *file_name* if it is supported.

    Raises:
        UnsupportedFileTypeError: For anything outside .pdf/.docx/.txt/.md.
    """
    ext = Path(file_name).suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(ext or file_name)
    return ext


async def upload_document(
    repo: Repository,
    bus: EventBus,
    area_id: int,
    source: Path,
    uploads_dir: Path,
    file_name: str | None = None,
) -> Document:
    """Store *source* in *uploads_dir* and register it as an Uploaded document.

    Args:
        repo: Caller's repository.
        bus: Event bus; an ``Uploaded`` progress event is published.
        area_id: Owning area.
        source: File to copy in.
        uploads_dir: Storage directory (created if missing).
        file_name: Original name to record; defaults to ``source.name``.

    Raises:
        UnsupportedFileTypeError: Extension not allowed.
        ValidationError: File missing or empty.
        NotFoundError: Area does not exist.
    """
    original_name = file_name or source.name
    ext = check_extension(original_name)

    if not source.is_file():
        raise ValidationError(f"File not found: {source}")
    size = source.stat().st_size
    if size == 0:
        raise ValidationError(f"File is empty: {original_name}")

    if await asyncio.to_thread(repo.get_area, area_id) is None:
        raise NotFoundError("area", area_id)

    uploads_dir.mkdir(parents=True, exist_ok=True)
    stored = uploads_dir / f"{uuid.uuid4()}{ext}"
    await asyncio.to_thread(shutil.copyfile, source, stored)

    document = Document(
        area_id=area_id,
        file_name=original_name,
        file_path=str(stored),
        file_size=size,
        processing_status=ProcessingStatus.UPLOADED,
    )
    try:
        await asyncio.to_thread(repo.add_document, document)
    except Exception:
        stored.unlink(missing_ok=True)
        raise

    logger.info(f"[Upload] {original_name} → document {document.id} in area {area_id}")
    bus.publish(
        area_topic(area_id),
        DocumentProgress(
            document_id=document.id, status=ProcessingStatus.UPLOADED.value, progress=100
        ),
    )
    return document


async def delete_document(repo: Repository, bus: EventBus, document_id: int) -> Document:
    """Delete a document, its chunks and its stored file; publish ``Deleted``.

    Raises:
        NotFoundError: If the document does not exist.
    """
    document = await asyncio.to_thread(repo.delete_document, document_id)
    if document is None:
        raise NotFoundError("document", document_id)

    stored = Path(document.file_path)
    if document.file_path and stored.is_file():
        stored.unlink()

    logger.info(f"[Delete] document {document_id} ({document.file_name}) removed")
    bus.publish(
        area_topic(document.area_id),
        DocumentProgress(document_id=document_id, status="Deleted", progress=100),
    )
    return document
