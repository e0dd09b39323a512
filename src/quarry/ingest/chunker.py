"""Sentence chunker — greedy sentence packing with word-aligned overlap.

Strategy:
- Split text into sentence-like segments: a break follows ``.``, ``!`` or
  ``?`` when whitespace and an uppercase letter come next. This is a
  heuristic; abbreviations such as "Dr. Smith" split too eagerly and
  "e.g. the" does not split at all.
- Pack segments into a buffer until the next one would push it past
  ``chunk_size`` characters, then close the chunk.
- Seed the next buffer with the tail of the closed chunk (at most
  ``overlap`` characters, starting on a word boundary) followed by the
  segment that triggered the split.

The size bound is soft: a single segment longer than ``chunk_size`` is
emitted whole and never split mid-sentence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")


@dataclass
class TextChunk:
    """One chunk of document text.

    Attributes:
        content: Trimmed chunk text.
        index: Zero-based position within the document.
        overlap: Number of leading characters of *content* repeated from the
            previous chunk (0 for the first chunk).
    """

    content: str
    index: int
    overlap: int = 0


def split_sentences(text: str) -> list[str]:
    """Split *text* on sentence boundaries; blank segments are dropped."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def overlap_tail(text: str, size: int) -> str:
    """Return at most the last *size* characters of *text*, whole words only.

    If the cut lands inside a word, the partial word is dropped so the tail
    starts at the next word boundary.

    Examples:
        overlap_tail("alpha beta gamma", 8) -> "gamma"
        overlap_tail("alpha beta gamma", 10) -> "beta gamma"
    """
    if size <= 0 or not text:
        return ""
    if len(text) <= size:
        return text.strip()
    tail = text[-size:]
    if not text[-size - 1].isspace() and not tail[0].isspace():
        parts = tail.split(None, 1)
        tail = parts[1] if len(parts) == 2 else ""
    return tail.strip()


class SentenceChunker:
    """Split extracted document text into overlapping, bounded-size chunks.

    Default: 600 characters / 100 characters overlap.
    """

    def __init__(self, chunk_size: int = 600, overlap: int = 100) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split(self, text: str) -> list[TextChunk]:
        """Split *text* into ordered chunks with dense zero-based indices."""
        chunks: list[TextChunk] = []
        buffer = ""
        carried = 0

        for segment in split_sentences(text):
            if buffer and len(buffer) + 1 + len(segment) > self.chunk_size:
                chunks.append(TextChunk(content=buffer, index=len(chunks), overlap=carried))
                tail = self._seed_tail(buffer, segment)
                buffer = f"{tail} {segment}" if tail else segment
                carried = len(tail)
            else:
                buffer = f"{buffer} {segment}" if buffer else segment

        if buffer.strip():
            chunks.append(TextChunk(content=buffer.strip(), index=len(chunks), overlap=carried))
        return chunks

    def _seed_tail(self, closed: str, segment: str) -> str:
        """Overlap tail for the next buffer, shrunk so tail + segment still fits.

        When the segment alone nearly fills a chunk the tail is shortened (or
        dropped) instead of producing a seeded buffer over ``chunk_size``.
        """
        budget = min(self.overlap, self.chunk_size - len(segment) - 1)
        return overlap_tail(closed, budget)
