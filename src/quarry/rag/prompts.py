"""Grounding prompt construction."""

from __future__ import annotations

from quarry.rag.retriever import ScoredChunk

SOURCE_DELIMITER = "\n\n---\n\n"

_PROMPT_TEMPLATE = """\
Context from documents:
{context}

User question: {question}

Provide a detailed, well-formatted HTML response:"""


def build_context(chunks: list[ScoredChunk]) -> str:
    """Render retrieved chunks as labelled source blocks.

    Each block is ``[Source: <document name>]`` followed by the chunk text;
    blocks are separated by SOURCE_DELIMITER. No chunks → empty string.
    """
    return SOURCE_DELIMITER.join(
        f"[Source: {c.document_name}]\n{c.content}" for c in chunks
    )


def build_prompt(question: str, chunks: list[ScoredChunk]) -> str:
    """Return the user prompt: context blocks, the question, format instructions.

    An empty context is still rendered; the system prompt tells the model to
    say it has no information in that case.
    """
    return _PROMPT_TEMPLATE.format(context=build_context(chunks), question=question)
