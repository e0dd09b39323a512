"""Quarry ingest pipeline: intake, text extraction, chunking, orchestration."""

from quarry.ingest.chunker import SentenceChunker, TextChunk
from quarry.ingest.extract import SUPPORTED_EXTENSIONS, extract_text
from quarry.ingest.pipeline import IngestionOrchestrator

__all__ = [
    "SentenceChunker",
    "TextChunk",
    "SUPPORTED_EXTENSIONS",
    "extract_text",
    "IngestionOrchestrator",
]
