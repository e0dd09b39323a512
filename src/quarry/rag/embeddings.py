"""Embedding client — one request per text, fanned out concurrently.

``embed_many`` never batches several texts into one call. Output vector i
always belongs to input text i, whatever order the requests complete in,
and the call is all-or-nothing: one failed request fails the whole batch
and cancels the requests still in flight.

Vector dimension is not validated here; a mismatch against stored vectors
surfaces in the retriever's similarity computation.
"""

from __future__ import annotations

import asyncio
import time

from loguru import logger

from quarry.config import EmbeddingCfg
from quarry.rag.llm_client import aembed


class EmbeddingClient:
    """Async embedding client over LiteLLM.

    Args:
        config: Embedding model + api_base settings.
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()

    @property
    def model(self) -> str:
        return self._config.model

    async def embed(self, text: str, index: int = -1) -> list[float]:
        """Embed a single text. *index* is only used for log context."""
        started = time.perf_counter()
        try:
            vector = await aembed(self.model, text, api_base=self._config.api_base)
        except Exception:
            elapsed = (time.perf_counter() - started) * 1000
            target = f"chunk #{index}" if index >= 0 else "query"
            logger.error(f"[Embedding] {target} FAILED after {elapsed:.0f}ms")
            raise
        if index >= 0:
            elapsed = (time.perf_counter() - started) * 1000
            logger.debug(
                f"[Embedding] chunk #{index} — {elapsed:.0f}ms, vector_len={len(vector)}"
            )
        return vector

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed every text concurrently and return vectors in input order."""
        if not texts:
            return []

        logger.info(f"[Embedding] Sending {len(texts)} texts to {self.model}")
        started = time.perf_counter()
        tasks = [asyncio.ensure_future(self.embed(t, index=i)) for i, t in enumerate(texts)]
        try:
            vectors = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"[Embedding] All {len(vectors)} embeddings done in {elapsed:.0f}ms")
        return list(vectors)
