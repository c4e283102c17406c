"""LiteLLM client wrapper for chat completions and embeddings.

All completion and embedding calls made during a turn route through this
module. Any litellm failure is re-raised as TransportError so callers handle a
single exception type; the caller decides whether a failed step is fatal.
API key presence is validated before a client is handed to the orchestrator.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

import litellm

from deskmate.messages import ChatMessage, ToolCall

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class TransportError(RuntimeError):
    """The completion or embedding service call failed."""


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if absent)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(provider: str) -> str | None:
    """Return the env var holding the API key for *provider*, or None if it needs none."""
    provider = provider.lower()
    return _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = api_key_env(provider)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to character-based approximation (4 chars ≈ 1 token) if the model
    is not supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, len(text) // 4)


@dataclass
class LLMClient:
    """Completion + embedding service bound to configured models.

    Attributes:
        model: LiteLLM chat model string (provider/model format).
        embedding_model: LiteLLM embedding model string.
        num_retries: Passed to litellm for transient errors (0 = no retry).
        temperature: Sampling temperature, or None for the provider default.
        max_embed_chars: Embedding input is newline-flattened and capped at this length.
    """

    model: str
    embedding_model: str = "openai/text-embedding-3-small"
    num_retries: int = 0
    temperature: float | None = None
    max_embed_chars: int = 4_000

    def complete(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatMessage:
        """Send *messages* and return the assistant reply.

        When *tools* is given the request offers them with ``tool_choice="auto"``;
        otherwise no tools are offered.

        Raises:
            TransportError: On any service failure or a response without choices.
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_api() for m in messages],
            "num_retries": self.num_retries,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        logger.debug("Completion request: %d messages, tools=%s", len(messages), bool(tools))
        try:
            response = litellm.completion(**kwargs)
            message = response.choices[0].message
        except Exception as exc:
            raise TransportError(f"Completion request to '{self.model}' failed: {exc}") from exc

        return _assistant_from_response(message)

    def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Raises:
            ValueError: If *text* is empty after cleaning.
            TransportError: On any service failure.
        """
        clean = text.replace("\n", " ").strip()[: self.max_embed_chars]
        if not clean:
            raise ValueError("Cannot embed empty text")
        try:
            response = litellm.embedding(
                model=self.embedding_model,
                input=[clean],
                num_retries=self.num_retries,
            )
            vector = response.data[0]["embedding"]
        except Exception as exc:
            raise TransportError(
                f"Embedding request to '{self.embedding_model}' failed: {exc}"
            ) from exc
        return [float(v) for v in vector]


def _assistant_from_response(message: Any) -> ChatMessage:
    content = getattr(message, "content", None)
    raw_calls = getattr(message, "tool_calls", None)
    calls = [ToolCall.from_api(tc) for tc in raw_calls] if isinstance(raw_calls, (list, tuple)) else []
    return ChatMessage.assistant(content if isinstance(content, str) else None, calls)
