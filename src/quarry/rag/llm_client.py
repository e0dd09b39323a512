"""LiteLLM client wrapper: API key validation, async embeddings, streaming chat.

All LLM + embedding calls in the ingest and answer pipelines route through
this module. Provider failures are re-raised as EmbeddingError or
GenerationError so callers handle one exception type per concern.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator

import litellm

from quarry.errors import EmbeddingError, GenerationError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


async def aembed(
    model: str,
    text: str,
    api_base: str | None = None,
    num_retries: int = 0,
) -> list[float]:
    """Call litellm.aembedding() for a single text and return its vector.

    Raises:
        EmbeddingError: On provider failure or a response without a
            non-empty numeric vector.
    """
    try:
        response = await litellm.aembedding(
            model=model,
            input=[text],
            api_base=api_base,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise EmbeddingError(f"Embedding request failed: {exc}") from exc

    try:
        vector = response.data[0]["embedding"]
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise EmbeddingError("Malformed embedding response: no vector returned") from exc

    if not vector or not all(isinstance(v, (int, float)) for v in vector):
        raise EmbeddingError("Malformed embedding response: empty or non-numeric vector")
    return [float(v) for v in vector]


async def stream_chat(
    model: str,
    system_prompt: str,
    prompt: str,
    *,
    api_base: str | None = None,
    temperature: float = 0.3,
    max_tokens: int = 1000,
    timeout: float = 300.0,
) -> AsyncIterator[str]:
    """Stream the assistant reply to *prompt* fragment by fragment.

    The stream is complete only once a chunk carries a finish reason (the
    provider's "done" marker). A stream that ends without one, or a
    connection that drops mid-way, raises GenerationError.

    Yields:
        Non-empty content fragments in arrival order.
    """
    try:
        response = await litellm.acompletion(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            stream=True,
            api_base=api_base,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
    except Exception as exc:
        raise GenerationError(f"LLM request failed: {exc}") from exc

    finished = False
    try:
        async for chunk in response:
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            content = getattr(choice.delta, "content", None)
            if content:
                yield content
            if choice.finish_reason:
                finished = True
                break
    except Exception as exc:
        raise GenerationError(f"LLM stream failed: {exc}") from exc
    finally:
        await _close_stream(response)

    if not finished:
        raise GenerationError("LLM stream ended before completion")


async def _close_stream(response: object) -> None:
    """Release the provider stream; it stays open after an early ``break``."""
    aclose = getattr(response, "aclose", None)
    if aclose is not None:
        await aclose()
