"""Shared CLI plumbing: settings, database handles, service wiring."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from quarry.cli.errors import err_config, err_no_api_key, err_no_db
from quarry.config import ConfigError, QuarryConfig, load_config
from quarry.db.connection import Database
from quarry.db.schema import initialize
from quarry.events import EventBus
from quarry.ingest.chunker import SentenceChunker
from quarry.ingest.pipeline import IngestionOrchestrator
from quarry.log import setup_logger
from quarry.rag.answer import AnswerOrchestrator
from quarry.rag.embeddings import EmbeddingClient
from quarry.rag.llm_client import validate_api_key
from quarry.worker import BackgroundRunner

console = Console()


@dataclass
class Services:
    """Everything one CLI invocation needs to run background pipelines."""

    db: Database
    bus: EventBus
    runner: BackgroundRunner
    ingestion: IngestionOrchestrator
    answers: AnswerOrchestrator


def load_settings() -> QuarryConfig:
    """Load the merged config and configure logging; exit 1 on a bad config."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    setup_logger(cfg.logging.level, cfg.logging.file)
    return cfg


def resolve_db(db: Path | None, cfg: QuarryConfig) -> Path:
    return db if db is not None else Path(cfg.storage.db_path)


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open an existing project database and run pending migrations."""
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def require_api_key(model: str) -> None:
    """Exit 1 with an actionable message if *model*'s provider key is missing."""
    try:
        validate_api_key(model)
    except EnvironmentError as exc:
        provider = model.split("/")[0] if "/" in model else "openai"
        console.print(err_no_api_key(provider))
        raise typer.Exit(1) from exc


def build_services(cfg: QuarryConfig, db_path: Path) -> Services:
    """Wire the event bus, background runner and both orchestrators."""
    db = Database(db_path)
    bus = EventBus()
    runner = BackgroundRunner(db)
    embedder = EmbeddingClient(cfg.embedding)
    chunker = SentenceChunker(cfg.chunking.chunk_size, cfg.chunking.overlap)
    return Services(
        db=db,
        bus=bus,
        runner=runner,
        ingestion=IngestionOrchestrator(bus, embedder, runner, chunker=chunker),
        answers=AnswerOrchestrator(
            bus, embedder, runner, cfg.generation, top_k=cfg.retrieval.top_k
        ),
    )
