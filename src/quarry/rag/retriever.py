"""Exhaustive cosine-similarity retriever over an area's chunk vectors.

Every call re-reads the candidate set from the store and scores each chunk:

  similarity(a, b) = dot(a, b) / (|a| * |b|)      (0 if either norm is 0)

Candidates are the chunks of Completed documents in the area; chunks of
Uploaded, Processing or Failed documents never appear. Cost is
O(chunks × dimension) per query with no cache or index. Ranking is exact.

Tie-break: equal similarities keep store order, which is chunk insertion
order (ascending chunk id).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from quarry.db.models import SourceCitation
from quarry.db.repository import Repository
from quarry.db.vectors import deserialize_vector


@dataclass
class ScoredChunk:
    """A retrieved chunk together with its cosine similarity to the query."""

    chunk_id: int
    content: str
    document_name: str
    chunk_index: int
    similarity: float

    def citation(self) -> SourceCitation:
        return SourceCitation(
            document_name=self.document_name,
            chunk_index=self.chunk_index,
            similarity=self.similarity,
        )


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Return the cosine similarity of *a* and *b* in [-1, 1].

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(
            f"Vector dimension mismatch: {va.shape[0]} vs {vb.shape[0]}. "
            "Chunks were embedded with a different model — re-ingest the area."
        )
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class VectorRetriever:
    """Brute-force top-K search scoped to one area.

    Args:
        repo: Repository bound to the caller's own connection.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def search(
        self,
        area_id: int,
        query_vector: Sequence[float],
        top_k: int = 7,
    ) -> list[ScoredChunk]:
        """Score every candidate chunk and return the best *top_k*, best-first.

        Returns all candidates when there are fewer than *top_k*.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")

        scored = [
            ScoredChunk(
                chunk_id=record.chunk_id,
                content=record.content,
                document_name=record.document_name,
                chunk_index=record.chunk_index,
                similarity=cosine_similarity(
                    query_vector, deserialize_vector(record.embedding)
                ),
            )
            for record in self._repo.list_completed_chunks(area_id)
        ]
        # sorted() is stable, including with reverse=True
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored[:top_k]
