"""deskmate configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DESKMATE_COMPLETION_MODEL, DESKMATE_EMBEDDING_MODEL, DESKMATE_DB)
  3. Per-directory deskmate.yaml
  4. Global ~/.deskmate/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
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

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".deskmate"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "deskmate.yaml"
_DEFAULT_DB_PATH: Path = _GLOBAL_CONFIG_DIR / "deskmate.db"

# Fields that suggest an API key, forbidden in global config.
# Does NOT match legitimate config keys like max_history_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # github_token, access_token (suffix)
    r"|^token$"                  # exactly "token"
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret"
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections; unknown keys produce a warning
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["completion", "embedding", "retrieval", "prompt", "tools", "indexing", "storage"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when configuration is invalid, forbidden, or missing a required client."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class CompletionCfg:
    """Completion service configuration (deskmate.yaml: completion:).

    Attributes:
        model: LiteLLM model string in 'provider/model' format. Empty disables chat.
        num_retries: Retries handed to litellm for transient errors. The orchestrator
            itself never retries a failed turn.
        temperature: Sampling temperature, or None for the provider default.
    """

    model: str = "openai/gpt-4.1"
    num_retries: int = 0
    temperature: float | None = None


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (deskmate.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    max_input_chars: int = 4_000


@dataclass
class RetrievalCfg:
    """Memory recall configuration (deskmate.yaml: retrieval:)."""

    memory_limit: int = 3


@dataclass
class PromptCfg:
    """Prompt assembly configuration (deskmate.yaml: prompt:).

    ``max_history_tokens`` of 0 disables history trimming.
    """

    max_history_tokens: int = 32_000


@dataclass
class ToolsCfg:
    """Limits applied by the sandboxed tool handlers (deskmate.yaml: tools:)."""

    max_read_chars: int = 20_000
    max_listing_chars: int = 20_000
    default_depth: int = 3
    max_depth: int = 10


@dataclass
class IndexingCfg:
    """Project scan configuration (deskmate.yaml: indexing:)."""

    max_depth: int = 5
    reindex_delay: float = 0.1


@dataclass
class StorageCfg:
    """Database location (deskmate.yaml: storage:)."""

    db_path: Path = field(default_factory=lambda: _DEFAULT_DB_PATH)


@dataclass
class DeskmateConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    completion: CompletionCfg = field(default_factory=CompletionCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    prompt: PromptCfg = field(default_factory=PromptCfg)
    tools: ToolsCfg = field(default_factory=ToolsCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)


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
                f"Unknown config key '{key}' in '{source}' (ignored).",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: DeskmateConfig) -> None:
    if cfg.retrieval.memory_limit < 0:
        raise ConfigError("retrieval.memory_limit must be >= 0")
    if cfg.tools.default_depth < 0 or cfg.tools.max_depth < cfg.tools.default_depth:
        raise ConfigError("tools.default_depth must be >= 0 and <= tools.max_depth")
    if cfg.tools.max_read_chars < 100 or cfg.tools.max_listing_chars < 100:
        raise ConfigError("tools.max_read_chars and tools.max_listing_chars must be >= 100")
    if cfg.indexing.reindex_delay < 0:
        raise ConfigError("indexing.reindex_delay must be >= 0")


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


def _cfg_from_dict(data: dict[str, Any]) -> DeskmateConfig:
    """Build a *DeskmateConfig* from a merged raw YAML dict."""
    cfg = DeskmateConfig()

    if "completion" in data:
        c = data["completion"] or {}
        temperature = c.get("temperature", cfg.completion.temperature)
        cfg.completion = CompletionCfg(
            model=str(c.get("model", cfg.completion.model) or ""),
            num_retries=int(c.get("num_retries", cfg.completion.num_retries)),
            temperature=float(temperature) if temperature is not None else None,
        )

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            max_input_chars=int(e.get("max_input_chars", cfg.embedding.max_input_chars)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            memory_limit=int(r.get("memory_limit", cfg.retrieval.memory_limit)),
        )

    if "prompt" in data:
        p = data["prompt"] or {}
        cfg.prompt = PromptCfg(
            max_history_tokens=int(p.get("max_history_tokens", cfg.prompt.max_history_tokens)),
        )

    if "tools" in data:
        t = data["tools"] or {}
        cfg.tools = ToolsCfg(
            max_read_chars=int(t.get("max_read_chars", cfg.tools.max_read_chars)),
            max_listing_chars=int(t.get("max_listing_chars", cfg.tools.max_listing_chars)),
            default_depth=int(t.get("default_depth", cfg.tools.default_depth)),
            max_depth=int(t.get("max_depth", cfg.tools.max_depth)),
        )

    if "indexing" in data:
        i = data["indexing"] or {}
        cfg.indexing = IndexingCfg(
            max_depth=int(i.get("max_depth", cfg.indexing.max_depth)),
            reindex_delay=float(i.get("reindex_delay", cfg.indexing.reindex_delay)),
        )

    if "storage" in data:
        s = data["storage"] or {}
        if s.get("db_path"):
            cfg.storage = StorageCfg(db_path=Path(s["db_path"]).expanduser())

    return cfg


def _apply_env_overrides(cfg: DeskmateConfig) -> DeskmateConfig:
    """Apply DESKMATE_* environment variable overrides."""
    if model := os.environ.get("DESKMATE_COMPLETION_MODEL"):
        cfg.completion.model = model
    if model := os.environ.get("DESKMATE_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db_path := os.environ.get("DESKMATE_DB"):
        cfg.storage.db_path = Path(db_path).expanduser()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DeskmateConfig:
    """Load and return a merged *DeskmateConfig*.

    Applies layers in order: global → per-directory → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *deskmate.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DeskmateConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields or a value is
            out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-directory config
    local_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if local_cfg_path.exists():
        raw_local = yaml.safe_load(local_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_local, local_cfg_path)
        merged = _deep_merge(merged, raw_local)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.deskmate/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# deskmate global configuration: model defaults only.\n"
            "# NEVER store API keys here; use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "completion:\n"
            "  model: openai/gpt-4.1\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
