"""Ingestion orchestrator: extract → chunk → embed → persist.

Document state machine, driven only by this module:

    Uploaded ──start()──▶ Processing ──▶ Completed
                               └────────▶ Failed

Progress events go to the document's area topic:

    Processing 10 → (extracted) 30 → (chunked) 50 → (embedded) 80
    → Completed 100        or        Failed 0 with the error message

Steps run strictly in order. Any failure after the Processing flip marks the
document Failed with the error recorded; there is no automatic retry.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from quarry.db.models import Chunk, ProcessingStatus
from quarry.db.repository import Repository
from quarry.db.vectors import serialize_vector
from quarry.errors import AlreadyProcessingError, NotFoundError
from quarry.events import DocumentProgress, EventBus, area_topic
from quarry.ingest.chunker import SentenceChunker
from quarry.ingest.extract import extract_text
from quarry.rag.embeddings import EmbeddingClient
from quarry.worker import BackgroundRunner

Extractor = Callable[[Path | str, str], str]


class IngestionOrchestrator:
    """Drive documents through the ingestion pipeline as background runs.

    Args:
        bus: Event bus for progress broadcasts.
        embedder: Embedding client used for all chunk vectors.
        runner: Background runner; every run gets its own connection.
        chunker: Sentence chunker (defaults to 600 / 100 characters).
        extractor: ``(file_path, file_type) -> text``; defaults to the
            extension dispatch table in quarry.ingest.extract.
    """

    def __init__(
        self,
        bus: EventBus,
        embedder: EmbeddingClient,
        runner: BackgroundRunner,
        chunker: SentenceChunker | None = None,
        extractor: Extractor = extract_text,
    ) -> None:
        self._bus = bus
        self._embedder = embedder
        self._runner = runner
        self._chunker = chunker or SentenceChunker()
        self._extract = extractor

    async def start(self, repo: Repository, document_id: int) -> asyncio.Task:
        """Validate and submit an ingestion run; returns without waiting for it.

        Args:
            repo: The caller's repository, used only for the pre-check.

        Raises:
            NotFoundError: If the document does not exist.
            AlreadyProcessingError: If the document is already Processing.
        """
        document = await asyncio.to_thread(repo.get_document, document_id)
        if document is None:
            raise NotFoundError("document", document_id)
        if document.processing_status is ProcessingStatus.PROCESSING:
            raise AlreadyProcessingError(document_id)
        return self._runner.submit(self.run, document_id, name=f"ingest-{document_id}")

    async def run(self, repo: Repository, document_id: int) -> None:
        """Run the full pipeline for one document using *repo*'s connection."""
        document = await asyncio.to_thread(repo.get_document, document_id)
        if document is None:
            logger.warning(f"[Ingest] document {document_id} vanished before processing")
            return

        topic = area_topic(document.area_id)

        # Conditional flip: a concurrent run that got here first wins.
        if not await asyncio.to_thread(repo.mark_processing, document_id):
            logger.warning(f"[Ingest] document {document_id} is already being processed")
            return
        self._progress(topic, document_id, ProcessingStatus.PROCESSING, 10)
        logger.info(f"[Ingest] document {document_id} ({document.file_name}) → Processing")

        try:
            text = await asyncio.to_thread(
                self._extract, document.file_path, document.file_type
            )
            self._progress(topic, document_id, ProcessingStatus.PROCESSING, 30)

            pieces = self._chunker.split(text)
            logger.info(f"[Ingest] document {document_id}: {len(pieces)} chunks")
            self._progress(topic, document_id, ProcessingStatus.PROCESSING, 50)

            vectors = await self._embedder.embed_many([p.content for p in pieces])
            self._progress(topic, document_id, ProcessingStatus.PROCESSING, 80)

            chunks = [
                Chunk(
                    document_id=document_id,
                    chunk_index=piece.index,
                    content=piece.content,
                    embedding=serialize_vector(vector),
                    metadata=json.dumps({"overlap": piece.overlap}),
                )
                for piece, vector in zip(pieces, vectors)
            ]
            await asyncio.to_thread(repo.complete_document, document_id, chunks)
        except Exception as exc:
            logger.exception(f"[Ingest] document {document_id} failed")
            await asyncio.to_thread(repo.fail_document, document_id, str(exc))
            self._progress(topic, document_id, ProcessingStatus.FAILED, 0, error=str(exc))
            return

        logger.info(f"[Ingest] document {document_id} → Completed ({len(chunks)} chunks)")
        self._progress(topic, document_id, ProcessingStatus.COMPLETED, 100)

    def _progress(
        self,
        topic: str,
        document_id: int,
        status: ProcessingStatus,
        progress: int,
        error: str | None = None,
    ) -> None:
        self._bus.publish(
            topic,
            DocumentProgress(
                document_id=document_id,
                status=status.value,
                progress=progress,
                error=error,
            ),
        )
