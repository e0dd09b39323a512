"""Domain models for the Quarry database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum


class ProcessingStatus(str, Enum):
    """Document lifecycle: Uploaded -> Processing -> Completed | Failed."""

    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Area:
    name: str
    description: str | None = None
    document_count: int = 0
    chat_count: int = 0
    created_at: str | None = None
    updated_at: str | None = None
    id: int | None = None  # set after insert


@dataclass
class Document:
    area_id: int
    file_name: str
    file_path: str
    file_size: int = 0
    processing_status: ProcessingStatus = ProcessingStatus.UPLOADED
    chunk_count: int = 0
    error_message: str | None = None
    uploaded_at: str | None = None
    id: int | None = None

    @property
    def file_type(self) -> str:
        """Lower-case extension of the original file name, without the dot."""
        _, dot, ext = self.file_name.rpartition(".")
        return ext.lower() if dot else ""


@dataclass
class Chunk:
    document_id: int
    chunk_index: int
    content: str
    embedding: bytes = b""
    metadata: str | None = None
    id: int | None = None


@dataclass
class Chat:
    area_id: int
    name: str = "New Chat"
    message_count: int = 0
    last_message_at: str | None = None
    created_at: str | None = None
    id: int | None = None


@dataclass
class Message:
    chat_id: int
    role: Role
    content: str
    content_html: str | None = None
    sources: str | None = None  # JSON array of citations
    created_at: str | None = None
    id: int | None = None

    @property
    def sources_list(self) -> list[dict]:
        return json.loads(self.sources) if self.sources else []


@dataclass
class SourceCitation:
    """One retrieved chunk cited by an assistant answer."""

    document_name: str
    chunk_index: int
    similarity: float

    def to_dict(self) -> dict:
        return {
            "documentName": self.document_name,
            "chunkIndex": self.chunk_index,
            "similarity": self.similarity,
        }


def serialize_sources(citations: list[SourceCitation]) -> str:
    """Serialize citations to the JSON array stored in ``messages.sources``."""
    return json.dumps([c.to_dict() for c in citations])


@dataclass
class ChunkRecord:
    """A chunk joined with its document name, as read by the retriever."""

    chunk_id: int
    content: str
    document_name: str
    chunk_index: int
    embedding: bytes = field(repr=False, default=b"")
