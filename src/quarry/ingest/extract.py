"""Text extraction by file type.

Dispatch table, extension → strategy:
  pdf   → pypdf, page text joined with newlines
  docx  → python-docx, paragraph text joined with newlines
  txt   → UTF-8 read
  md    → UTF-8 read (markup kept verbatim)

Adding a format means adding one function and one table entry.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import docx
import pypdf

from quarry.errors import UnsupportedFileTypeError


def _extract_pdf(path: Path) -> str:
    """Extract all page text from the PDF at *path*; image-only pages yield nothing."""
    reader = pypdf.PdfReader(path)
    parts: list[str] = []
    for page in reader.pages:
        page_text = (page.extract_text() or "").strip()
        if page_text:
            parts.append(page_text)
    return "\n".join(parts)


def _extract_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(p.text for p in document.paragraphs if p.text.strip())


def _extract_plain(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


EXTRACTORS: dict[str, Callable[[Path], str]] = {
    "pdf": _extract_pdf,
    "docx": _extract_docx,
    "txt": _extract_plain,
    "md": _extract_plain,
}

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(f".{ext}" for ext in EXTRACTORS)


def extract_text(file_path: Path | str, file_type: str) -> str:
    """Return the full text of *file_path* using the strategy for *file_type*.

    Args:
        file_path: Path to the stored file.
        file_type: Extension without the dot, any case (``"PDF"``, ``"md"``).

    Raises:
        UnsupportedFileTypeError: If no strategy is registered for *file_type*.
    """
    extractor = EXTRACTORS.get(file_type.lower().lstrip("."))
    if extractor is None:
        raise UnsupportedFileTypeError(file_type)
    return extractor(Path(file_path))
