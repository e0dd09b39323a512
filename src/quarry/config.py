"""Quarry configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (QUARRY_EMBEDDING_MODEL, QUARRY_GENERATION_MODEL,
                             QUARRY_API_BASE, QUARRY_LOG_LEVEL)
  3. Per-project quarry.yaml
  4. Global ~/.quarry/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quarry"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "quarry.yaml"

# Matches api_key, apikey, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does NOT match max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "generation", "chunking", "retrieval", "storage", "logging"]
)

DEFAULT_API_BASE = "http://localhost:11434"

DEFAULT_SYSTEM_PROMPT = """\
You are an intelligent knowledge assistant. Answer questions based ONLY on the
context provided from the user's documents.

RULES:
1. Use only information from the context. Do not use outside knowledge.
2. If the answer is not in the context, say clearly:
   "I don't have that information in the available documents."
3. Format the response as clean, semantic HTML.
4. Mention document names when you rely on them.

ALLOWED HTML:
- <p> for paragraphs
- <ul>/<ol> with <li> for lists
- <strong> for emphasis, <em> for italics
- <code> for technical terms or commands
- <h4> for section headers (only if needed)
- <blockquote> for quotes
Do not use any other tags and never add attributes.
"""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (quarry.yaml: embedding:)."""

    model: str = "ollama/nomic-embed-text"
    api_base: str | None = DEFAULT_API_BASE


@dataclass
class GenerationCfg:
    """LLM generation configuration (quarry.yaml: generation:).

    Attributes:
        model: LiteLLM model string used for answers.
        api_base: Provider base URL (None for hosted providers).
        temperature: Sampling temperature.
        max_tokens: Maximum answer length in tokens.
        timeout: Request timeout in seconds, enforced by the provider client.
        system_prompt: Fixed instruction sent with every answer request.
    """

    model: str = "ollama_chat/llama3.1:8b"
    api_base: str | None = DEFAULT_API_BASE
    temperature: float = 0.3
    max_tokens: int = 1000
    timeout: float = 300.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class ChunkingCfg:
    """Sentence chunker settings in characters (quarry.yaml: chunking:)."""

    chunk_size: int = 600
    overlap: int = 100


@dataclass
class RetrievalCfg:
    """Retrieval configuration (quarry.yaml: retrieval:)."""

    top_k: int = 7


@dataclass
class StorageCfg:
    """Database and upload locations, relative to the project directory."""

    db_path: str = ".quarry.db"
    uploads_dir: str = "uploads"


@dataclass
class LoggingCfg:
    level: str = "INFO"
    file: str | None = None


@dataclass
class QuarryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: QuarryConfig) -> None:
    if cfg.chunking.chunk_size < 1:
        raise ConfigError(f"chunking.chunk_size must be >= 1, got {cfg.chunking.chunk_size}")
    if not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {cfg.chunking.overlap}"
        )
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if not cfg.generation.system_prompt.strip():
        raise ConfigError("generation.system_prompt must not be empty")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> QuarryConfig:
    """Build a *QuarryConfig* from a merged raw YAML dict."""
    cfg = QuarryConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            api_base=e.get("api_base", cfg.embedding.api_base),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            api_base=g.get("api_base", cfg.generation.api_base),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
            system_prompt=str(g.get("system_prompt", cfg.generation.system_prompt)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(top_k=int(r.get("top_k", cfg.retrieval.top_k)))

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(
            db_path=str(s.get("db_path", cfg.storage.db_path)),
            uploads_dir=str(s.get("uploads_dir", cfg.storage.uploads_dir)),
        )

    if "logging" in data:
        lg = data["logging"] or {}
        cfg.logging = LoggingCfg(
            level=str(lg.get("level", cfg.logging.level)).upper(),
            file=lg.get("file", cfg.logging.file),
        )

    return cfg


def _apply_env_overrides(cfg: QuarryConfig) -> QuarryConfig:
    """Apply QUARRY_* environment variable overrides."""
    if model := os.environ.get("QUARRY_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("QUARRY_GENERATION_MODEL"):
        cfg.generation.model = model
    if api_base := os.environ.get("QUARRY_API_BASE"):
        cfg.embedding.api_base = api_base
        cfg.generation.api_base = api_base
    if level := os.environ.get("QUARRY_LOG_LEVEL"):
        cfg.logging.level = level.upper()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuarryConfig:
    """Load and return a merged *QuarryConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *quarry.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _apply_env_overrides(_cfg_from_dict(merged))
    _validate(cfg)
    return cfg


def write_project_config(project_dir: Path) -> Path:
    """Write a default ``quarry.yaml`` into *project_dir* unless one exists."""
    target = project_dir / PROJECT_CONFIG_NAME
    if not target.exists():
        defaults = QuarryConfig()
        content = {
            "embedding": {"model": defaults.embedding.model, "api_base": defaults.embedding.api_base},
            "generation": {"model": defaults.generation.model, "api_base": defaults.generation.api_base},
            "chunking": {
                "chunk_size": defaults.chunking.chunk_size,
                "overlap": defaults.chunking.overlap,
            },
            "retrieval": {"top_k": defaults.retrieval.top_k},
            "storage": {
                "db_path": defaults.storage.db_path,
                "uploads_dir": defaults.storage.uploads_dir,
            },
        }
        header = (
            "# Quarry project configuration.\n"
            "# NEVER store API keys here; use environment variables.\n\n"
        )
        target.write_text(header + yaml.safe_dump(content, sort_keys=False), encoding="utf-8")
    return target
