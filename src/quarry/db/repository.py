"""Repository pattern for all Quarry database operations.

Single interface for: areas, documents, chunks, chats, messages.
Derived counters (areas.document_count, areas.chat_count) are recomputed
with a COUNT(*) subquery inside the same transaction as the mutation that
changes the child collection.
"""

from __future__ import annotations

import sqlite3

from quarry.db.models import (
    Area,
    Chat,
    Chunk,
    ChunkRecord,
    Document,
    Message,
    ProcessingStatus,
    Role,
)

_RECOUNT_DOCUMENTS = """
UPDATE areas
SET document_count = (SELECT COUNT(*) FROM documents WHERE area_id = areas.id)
WHERE id = ?
"""

_RECOUNT_DOCUMENTS_OF_DOCUMENT = """
UPDATE areas
SET document_count = (SELECT COUNT(*) FROM documents WHERE area_id = areas.id)
WHERE id = (SELECT area_id FROM documents WHERE id = ?)
"""

_RECOUNT_CHATS = """
UPDATE areas
SET chat_count = (SELECT COUNT(*) FROM chats WHERE area_id = areas.id)
WHERE id = ?
"""

_DOCUMENT_COLUMNS = (
    "id, area_id, file_name, file_path, file_size, uploaded_at, "
    "processing_status, chunk_count, error_message"
)
_CHAT_COLUMNS = "id, area_id, name, created_at, last_message_at, message_count"
_MESSAGE_COLUMNS = "id, chat_id, role, content, content_html, sources, created_at"


class Repository:
    """Data access layer for all Quarry database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see quarry.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Areas
    # ------------------------------------------------------------------

    def add_area(self, area: Area) -> int:
        """Insert a new area and return its id."""
        cur = self._conn.execute(
            "INSERT INTO areas (name, description) VALUES (?, ?)",
            (area.name, area.description),
        )
        self._conn.commit()
        area.id = cur.lastrowid
        return area.id

    def get_area(self, area_id: int) -> Area | None:
        """Return an area by id, or None if not found."""
        row = self._conn.execute(
            "SELECT * FROM areas WHERE id = ?", (area_id,)
        ).fetchone()
        return _row_to_area(row) if row else None

    def list_areas(self) -> list[Area]:
        """Return all areas ordered by creation (oldest first)."""
        rows = self._conn.execute("SELECT * FROM areas ORDER BY id").fetchall()
        return [_row_to_area(r) for r in rows]

    def update_area(self, area_id: int, name: str, description: str | None) -> bool:
        """Rename an area / replace its description. Returns False if missing."""
        cur = self._conn.execute(
            """
            UPDATE areas SET name = ?, description = ?, updated_at = datetime('now')
            WHERE id = ?
            """,
            (name, description, area_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def delete_area(self, area_id: int) -> bool:
        """Delete an area; documents, chunks, chats and messages cascade."""
        cur = self._conn.execute("DELETE FROM areas WHERE id = ?", (area_id,))
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def add_document(self, document: Document) -> int:
        """Insert a document and recompute the owning area's document counter."""
        with self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO documents (area_id, file_name, file_path, file_size, processing_status)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    document.area_id,
                    document.file_name,
                    document.file_path,
                    document.file_size,
                    ProcessingStatus(document.processing_status).value,
                ),
            )
            self._conn.execute(_RECOUNT_DOCUMENTS, (document.area_id,))
        document.id = cur.lastrowid
        return document.id

    def get_document(self, document_id: int) -> Document | None:
        """Return a document by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self, area_id: int) -> list[Document]:
        """Return all documents in *area_id*, oldest upload first."""
        rows = self._conn.execute(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE area_id = ? ORDER BY id",
            (area_id,),
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def mark_processing(self, document_id: int) -> bool:
        """Flip a document to Processing unless it already is.

        Returns:
            True if this call made the transition, False if the document is
            missing or already Processing.
        """
        cur = self._conn.execute(
            """
            UPDATE documents
            SET processing_status = ?, error_message = NULL
            WHERE id = ? AND processing_status != ?
            """,
            (
                ProcessingStatus.PROCESSING.value,
                document_id,
                ProcessingStatus.PROCESSING.value,
            ),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def complete_document(self, document_id: int, chunks: list[Chunk]) -> None:
        """Persist *chunks* as one batch and mark the document Completed.

        Chunk insert, status flip, chunk_count and the area counter recount
        share one transaction; a failure leaves no partial chunk set behind.
        Chunks from an earlier analysis of the same document are replaced.
        """
        with self._conn:
            self._conn.execute("DELETE FROM chunks WHERE document_id = ?", (document_id,))
            self._conn.executemany(
                """
                INSERT INTO chunks (document_id, content, chunk_index, embedding, metadata)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (document_id, c.content, c.chunk_index, c.embedding, c.metadata)
                    for c in chunks
                ],
            )
            self._conn.execute(
                """
                UPDATE documents
                SET processing_status = ?, chunk_count = ?, error_message = NULL
                WHERE id = ?
                """,
                (ProcessingStatus.COMPLETED.value, len(chunks), document_id),
            )
            self._conn.execute(
                _RECOUNT_DOCUMENTS_OF_DOCUMENT, (document_id,)
            )

    def fail_document(self, document_id: int, error_message: str) -> None:
        """Mark a document Failed and record *error_message*."""
        self._conn.execute(
            "UPDATE documents SET processing_status = ?, error_message = ? WHERE id = ?",
            (ProcessingStatus.FAILED.value, error_message, document_id),
        )
        self._conn.commit()

    def delete_document(self, document_id: int) -> Document | None:
        """Delete a document (chunks cascade) and recompute the area counter.

        Returns:
            The deleted Document, or None if it did not exist.
        """
        document = self.get_document(document_id)
        if document is None:
            return None
        with self._conn:
            self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            self._conn.execute(_RECOUNT_DOCUMENTS, (document.area_id,))
        return document

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def list_chunks(self, document_id: int) -> list[Chunk]:
        """Return a document's chunks ordered by chunk_index."""
        rows = self._conn.execute(
            """
            SELECT id, document_id, content, chunk_index, embedding, metadata
            FROM chunks WHERE document_id = ? ORDER BY chunk_index
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def list_completed_chunks(self, area_id: int) -> list[ChunkRecord]:
        """Return every chunk of a Completed document in *area_id*.

        Rows come back in insertion order (ascending chunk id); the retriever
        relies on this for its tie-break.
        """
        rows = self._conn.execute(
            """
            SELECT c.id AS chunk_id, c.content, c.chunk_index, c.embedding,
                   d.file_name AS document_name
            FROM chunks c
            JOIN documents d ON d.id = c.document_id
            WHERE d.area_id = ? AND d.processing_status = ?
            ORDER BY c.id
            """,
            (area_id, ProcessingStatus.COMPLETED.value),
        ).fetchall()
        return [
            ChunkRecord(
                chunk_id=r["chunk_id"],
                content=r["content"],
                document_name=r["document_name"],
                chunk_index=r["chunk_index"],
                embedding=r["embedding"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def add_chat(self, chat: Chat) -> int:
        """Insert a chat and recompute the owning area's chat counter."""
        with self._conn:
            cur = self._conn.execute(
                "INSERT INTO chats (area_id, name) VALUES (?, ?)",
                (chat.area_id, chat.name),
            )
            self._conn.execute(_RECOUNT_CHATS, (chat.area_id,))
        chat.id = cur.lastrowid
        return chat.id

    def get_chat(self, chat_id: int) -> Chat | None:
        """Return a chat by id, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_CHAT_COLUMNS} FROM chats WHERE id = ?", (chat_id,)
        ).fetchone()
        return _row_to_chat(row) if row else None

    def list_chats(self, area_id: int) -> list[Chat]:
        """Return an area's chats, most recently active first."""
        rows = self._conn.execute(
            f"""
            SELECT {_CHAT_COLUMNS} FROM chats WHERE area_id = ?
            ORDER BY last_message_at IS NULL, last_message_at DESC, id DESC
            """,
            (area_id,),
        ).fetchall()
        return [_row_to_chat(r) for r in rows]

    def rename_chat(self, chat_id: int, name: str) -> bool:
        cur = self._conn.execute(
            "UPDATE chats SET name = ? WHERE id = ?", (name, chat_id)
        )
        self._conn.commit()
        return cur.rowcount > 0

    def delete_chat(self, chat_id: int) -> Chat | None:
        """Delete a chat (messages cascade) and recompute the area counter."""
        chat = self.get_chat(chat_id)
        if chat is None:
            return None
        with self._conn:
            self._conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
            self._conn.execute(_RECOUNT_CHATS, (chat.area_id,))
        return chat

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, message: Message) -> Message:
        """Insert a message and return it re-read (id + created_at populated).

        Assistant messages also bump the chat's message_count and
        last_message_at in the same transaction.
        """
        role = Role(message.role)
        with self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO messages (chat_id, role, content, content_html, sources)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    message.chat_id,
                    role.value,
                    message.content,
                    message.content_html,
                    message.sources,
                ),
            )
            if role is Role.ASSISTANT:
                self._conn.execute(
                    """
                    UPDATE chats
                    SET message_count = message_count + 1,
                        last_message_at = (SELECT created_at FROM messages WHERE id = ?)
                    WHERE id = ?
                    """,
                    (cur.lastrowid, message.chat_id),
                )
        return self.get_message(cur.lastrowid)  # type: ignore[return-value]

    def get_message(self, message_id: int) -> Message | None:
        row = self._conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (message_id,)
        ).fetchone()
        return _row_to_message(row) if row else None

    def list_messages(self, chat_id: int) -> list[Message]:
        """Return a chat's messages in creation order."""
        rows = self._conn.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE chat_id = ? ORDER BY created_at, id",
            (chat_id,),
        ).fetchall()
        return [_row_to_message(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_area(row: sqlite3.Row) -> Area:
    return Area(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        document_count=row["document_count"],
        chat_count=row["chat_count"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        area_id=row["area_id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        uploaded_at=row["uploaded_at"],
        processing_status=ProcessingStatus(row["processing_status"]),
        chunk_count=row["chunk_count"],
        error_message=row["error_message"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        chunk_index=row["chunk_index"],
        embedding=row["embedding"],
        metadata=row["metadata"],
    )


def _row_to_chat(row: sqlite3.Row) -> Chat:
    return Chat(
        id=row["id"],
        area_id=row["area_id"],
        name=row["name"],
        created_at=row["created_at"],
        last_message_at=row["last_message_at"],
        message_count=row["message_count"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        chat_id=row["chat_id"],
        role=Role(row["role"]),
        content=row["content"],
        content_html=row["content_html"],
        sources=row["sources"],
        created_at=row["created_at"],
    )
