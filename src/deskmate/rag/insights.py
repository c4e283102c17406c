"""Long-term memory: insight storage and similarity recall.

Insights are short free-text notes saved by the model (``save_memory``) together
with an embedding of the text. Recall embeds the query and ranks every stored
insight by cosine similarity in a full scan, newest first so ties keep the most
recent note ahead.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from deskmate.db.repository import Repository
from deskmate.db.vectors import cosine_similarity, decode_embedding, vector_norm

logger = logging.getLogger(__name__)


class InsightError(ValueError):
    """An insight could not be stored (empty text, empty vector, embedding failure)."""


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class RelevantInsight:
    """A stored insight together with its similarity to the query."""

    id: int
    text: str
    similarity: float


class InsightStore:
    """Append-only insight store backed by the ``insights`` table."""

    def __init__(self, repo: Repository, embedder: Embedder | None) -> None:
        self._repo = repo
        self._embedder = embedder

    def add(
        self,
        text: str,
        embedding: Sequence[float],
        source_project_id: int | None = None,
    ) -> int:
        """Store *text* with a precomputed *embedding*. Returns the new id.

        Raises:
            InsightError: If *text* is blank or *embedding* is empty.
        """
        if not text or not text.strip():
            raise InsightError("Insight text must not be empty")
        if not embedding:
            raise InsightError("Insight embedding must not be empty")
        insight_id = self._repo.add_insight(text.strip(), embedding, source_project_id)
        logger.debug("Stored insight %d (project=%s)", insight_id, source_project_id)
        return insight_id

    def save(self, text: str, source_project_id: int | None = None) -> int:
        """Embed *text* and store it. Returns the new id.

        Raises:
            InsightError: If *text* is blank or the embedding cannot be obtained.
        """
        if not text or not text.strip():
            raise InsightError("Insight text must not be empty")
        if self._embedder is None:
            raise InsightError("No embedding service configured")
        try:
            embedding = self._embedder.embed(text)
        except Exception as exc:
            raise InsightError(f"Failed to embed insight: {exc}") from exc
        return self.add(text, embedding, source_project_id)

    def find_relevant(self, query_text: str, limit: int = 3) -> list[RelevantInsight]:
        """Return up to *limit* insights ranked by similarity to *query_text*.

        Records whose dimensionality differs from the query, corrupt blobs and
        zero-norm vectors are skipped. An embedding failure yields an empty list.
        """
        if limit <= 0 or not query_text or not query_text.strip():
            return []
        if self._embedder is None:
            return []

        try:
            query_vec = self._embedder.embed(query_text)
        except Exception as exc:
            logger.warning("Memory recall skipped, query embedding failed: %s", exc)
            return []
        if not query_vec or vector_norm(query_vec) == 0.0:
            return []

        scored: list[RelevantInsight] = []
        for record in self._repo.list_insights():
            try:
                vec = decode_embedding(record.embedding)
            except ValueError as exc:
                logger.warning("Skipping insight %d: %s", record.id, exc)
                continue
            if len(vec) != len(query_vec):
                logger.debug(
                    "Skipping insight %d: dimension %d != query dimension %d",
                    record.id, len(vec), len(query_vec),
                )
                continue
            if vector_norm(vec) == 0.0:
                continue
            scored.append(
                RelevantInsight(
                    id=record.id,
                    text=record.text,
                    similarity=cosine_similarity(query_vec, vec),
                )
            )

        # sorted() is stable: equal scores keep newest-first order
        scored = sorted(scored, key=lambda r: r.similarity, reverse=True)
        return scored[:limit]
