"""Retrieval engine: structure lookup + long-term memory recall.

Two independent channels build the context snippets injected next to the
latest user message:

  - Structure: the last path-like token in the message is looked up in the
    active project's stored snapshot (case-insensitive, segment by segment).
  - Memory: the message is embedded and stored insights are ranked by cosine
    similarity (see InsightStore.find_relevant).

Retrieval never aborts a turn: a failing channel is logged and yields ''.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from deskmate.db.models import Project
from deskmate.rag.insights import InsightStore, RelevantInsight
from deskmate.tools.tree import DirectoryNode, find_node

logger = logging.getLogger(__name__)

_PATH_RE = re.compile(r"(?:[\w.-]+/)*[\w.-]+\.?\w+")


@dataclass
class RetrievalResult:
    """Context snippets for one turn ('' when a channel found nothing)."""

    structure_snippet: str = ""
    memory_snippet: str = ""


def last_path_mention(message: str) -> str | None:
    """Return the last path-like token in *message*, or None."""
    matches = _PATH_RE.findall(message)
    return matches[-1] if matches else None


def describe_node(node: DirectoryNode, path: str, project_name: str) -> str:
    """Render the structure snippet for a found snapshot node."""
    snippet = f"Relevant context for \"{path}\" in project '{project_name}':"
    if node.error:
        return snippet + f"\nError accessing this item: {node.error}"
    if node.is_directory:
        names = [f"{c.name}/" if c.is_directory else c.name for c in node.children]
        if names:
            return snippet + f"\nThis directory contains: [{', '.join(names)}]"
        return snippet + "\nThis directory appears to be empty or contains only excluded items."
    return snippet + "\nThis is a file. Use 'read_file' tool to see content."


def format_memories(insights: list[RelevantInsight]) -> str:
    if not insights:
        return ""
    lines = ["Possibly relevant information from past interactions:"]
    lines += [f"- {i.text} (Similarity: {i.similarity:.3f})" for i in insights]
    return "\n".join(lines)


class RetrievalEngine:
    """Builds the structure and memory snippets for the latest user message.

    Args:
        insights: Store used for memory recall; None disables the memory channel.
        memory_limit: Maximum number of recalled insights.
    """

    def __init__(self, insights: InsightStore | None, memory_limit: int = 3) -> None:
        self.insights = insights
        self.memory_limit = memory_limit

    def retrieve(
        self,
        last_user_message: str,
        active_project: Project | None,
        project_tree: DirectoryNode | None,
    ) -> RetrievalResult:
        result = RetrievalResult()
        if not last_user_message:
            return result

        if active_project is not None and project_tree is not None:
            try:
                result.structure_snippet = self._structure(
                    last_user_message, active_project, project_tree
                )
            except Exception as exc:
                logger.warning("Structure lookup failed: %s", exc)

        if self.insights is not None and self.memory_limit > 0:
            try:
                found = self.insights.find_relevant(last_user_message, self.memory_limit)
                result.memory_snippet = format_memories(found)
            except Exception as exc:
                logger.warning("Memory recall failed: %s", exc)

        return result

    def _structure(self, message: str, project: Project, tree: DirectoryNode) -> str:
        target = last_path_mention(message)
        if target is None:
            return ""
        node = find_node(tree, target)
        if node is None:
            logger.debug("Path %r not found in stored tree of %s", target, project.name)
            return ""
        return describe_node(node, target, project.name)
