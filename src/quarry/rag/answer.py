"""Answer streaming orchestrator.

Per chat turn:

    Received ─▶ Embedding ─▶ Retrieving ─▶ Generating ─▶ Finalizing ─▶ Delivered
                    └────────────┴─────────────┴─────────────┴──────▶ Errored

The user message is stored and broadcast synchronously by send_message();
everything after that runs as a background job on its own connection.

While Generating, every fragment is appended to the answer buffer and a
tag-stripped copy is broadcast for live display. The stored answer is the
sanitized full buffer, never the concatenated live fragments. On any error
an error event is broadcast and no assistant message is stored.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from loguru import logger

from quarry.config import GenerationCfg
from quarry.db.models import Message, Role, serialize_sources
from quarry.db.repository import Repository
from quarry.errors import NotFoundError, ValidationError
from quarry.events import (
    BotTyping,
    EventBus,
    MessageChunk,
    MessageComplete,
    MessageError,
    UserMessageReceived,
    chat_topic,
)
from quarry.rag.embeddings import EmbeddingClient
from quarry.rag.llm_client import stream_chat
from quarry.rag.prompts import build_prompt
from quarry.rag.retriever import VectorRetriever
from quarry.rag.sanitizer import TokenTagStripper, html_to_text, sanitize_html
from quarry.worker import BackgroundRunner

DEFAULT_TOP_K = 7


class TurnState(str, Enum):
    RECEIVED = "Received"
    EMBEDDING = "Embedding"
    RETRIEVING = "Retrieving"
    GENERATING = "Generating"
    FINALIZING = "Finalizing"
    DELIVERED = "Delivered"
    ERRORED = "Errored"


class AnswerOrchestrator:
    """Answer chat messages with retrieved context and a streamed LLM reply.

    Args:
        bus: Event bus for chat-topic broadcasts.
        embedder: Embedding client for the question vector.
        runner: Background runner; each reply gets its own connection.
        generation: Model, sampling, timeout and the fixed system prompt.
        top_k: Number of chunks retrieved per question.
    """

    def __init__(
        self,
        bus: EventBus,
        embedder: EmbeddingClient,
        runner: BackgroundRunner,
        generation: GenerationCfg | None = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self._bus = bus
        self._embedder = embedder
        self._runner = runner
        self._generation = generation or GenerationCfg()
        self._top_k = top_k

    async def send_message(self, repo: Repository, chat_id: int, content: str) -> Message:
        """Store + broadcast the user message, then submit the reply run.

        Returns:
            The stored user message.

        Raises:
            ValidationError: If *content* is blank.
            NotFoundError: If the chat does not exist.
        """
        if not content.strip():
            raise ValidationError("Message content must not be empty")
        chat = await asyncio.to_thread(repo.get_chat, chat_id)
        if chat is None:
            raise NotFoundError("chat", chat_id)

        message = await asyncio.to_thread(
            repo.add_message, Message(chat_id=chat_id, role=Role.USER, content=content)
        )
        self._bus.publish(
            chat_topic(chat_id),
            UserMessageReceived(
                id=message.id,
                chat_id=chat_id,
                role=Role.USER.value,
                content=message.content,
                created_at=message.created_at,
            ),
        )
        self._runner.submit(
            self.respond, chat_id, chat.area_id, content, name=f"answer-{chat_id}-{message.id}"
        )
        return message

    async def respond(
        self, repo: Repository, chat_id: int, area_id: int, question: str
    ) -> Message | None:
        """Produce, store and broadcast the assistant reply for one question.

        Returns:
            The stored assistant message, or None if the turn errored.
        """
        topic = chat_topic(chat_id)
        state = TurnState.RECEIVED
        self._bus.publish(topic, BotTyping(chat_id=chat_id))

        try:
            state = self._enter(chat_id, TurnState.EMBEDDING)
            query_vector = await self._embedder.embed(question)

            state = self._enter(chat_id, TurnState.RETRIEVING)
            results = await asyncio.to_thread(
                VectorRetriever(repo).search, area_id, query_vector, self._top_k
            )
            prompt = build_prompt(question, results)

            state = self._enter(chat_id, TurnState.GENERATING)
            buffer: list[str] = []
            stripper = TokenTagStripper()
            cfg = self._generation
            async for token in stream_chat(
                cfg.model,
                cfg.system_prompt,
                prompt,
                api_base=cfg.api_base,
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                timeout=cfg.timeout,
            ):
                buffer.append(token)
                visible = stripper.feed(token)
                if visible:
                    self._bus.publish(topic, MessageChunk(chat_id=chat_id, text=visible))

            state = self._enter(chat_id, TurnState.FINALIZING)
            content_html = sanitize_html("".join(buffer))
            sources = [r.citation() for r in results]
            message = await asyncio.to_thread(
                repo.add_message,
                Message(
                    chat_id=chat_id,
                    role=Role.ASSISTANT,
                    content=html_to_text(content_html),
                    content_html=content_html,
                    sources=serialize_sources(sources),
                ),
            )
        except Exception as exc:
            logger.exception(f"[Answer] chat {chat_id} errored during {state.value}")
            self._enter(chat_id, TurnState.ERRORED)
            self._bus.publish(topic, MessageError(chat_id=chat_id, error=str(exc)))
            return None

        self._bus.publish(
            topic,
            MessageComplete(
                id=message.id,
                chat_id=chat_id,
                content=message.content,
                content_html=message.content_html or "",
                sources=message.sources_list,
                created_at=message.created_at,
            ),
        )
        self._enter(chat_id, TurnState.DELIVERED)
        return message

    @staticmethod
    def _enter(chat_id: int, state: TurnState) -> TurnState:
        logger.debug(f"[Answer] chat {chat_id} → {state.value}")
        return state
