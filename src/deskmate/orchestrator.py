"""Completion orchestrator: one chat turn from user history to assistant reply.

Turn state machine:

    INIT → CONTEXT_LOADED → FIRST_CALL_PENDING → RESPONDING → DONE
                                  ↓
                              TOOL_LOOP → SECOND_CALL_PENDING → RESPONDING → DONE

Any state may end in ABORTED. Only a missing completion client, a transport
failure or an empty reply abort a turn; each abort yields exactly one
explanatory message. Tool errors are returned to the model as tool results.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from deskmate.config import DeskmateConfig
from deskmate.db.repository import Repository
from deskmate.indexing.reindex import ReindexScheduler
from deskmate.messages import ChatMessage, last_user_text
from deskmate.rag.context import ContextLoader
from deskmate.rag.insights import InsightStore
from deskmate.rag.llm_client import TransportError
from deskmate.rag.prompt import PromptAssembler
from deskmate.rag.retriever import RetrievalEngine
from deskmate.tools.base import ToolExecutionResult
from deskmate.tools.registry import ToolDispatcher, ToolRegistry, default_registry

logger = logging.getLogger(__name__)

CONFIG_ERROR_MESSAGE = (
    "Error: No completion service is configured. Set the API key for the configured "
    "model (or change completion.model in deskmate.yaml) and try again."
)
TRANSPORT_ERROR_MESSAGE = "Error: The request to the completion service failed. Please try again."
EMPTY_RESPONSE_MESSAGE = "Error: Received an empty response from the completion service."
NO_MESSAGES_MESSAGE = "Error: There is no message to respond to."


class TurnState(enum.Enum):
    INIT = "init"
    CONTEXT_LOADED = "context_loaded"
    FIRST_CALL_PENDING = "first_call_pending"
    TOOL_LOOP = "tool_loop"
    SECOND_CALL_PENDING = "second_call_pending"
    RESPONDING = "responding"
    DONE = "done"
    ABORTED = "aborted"


class CompletionClient(Protocol):
    def complete(
        self, messages: list[ChatMessage], tools: list[dict[str, Any]] | None = None
    ) -> ChatMessage: ...

    def embed(self, text: str) -> list[float]: ...


@dataclass
class AssistantContext:
    """Explicit dependencies of a turn.

    Attributes:
        config: Loaded configuration.
        repo: Repository on the calling thread's connection.
        llm: Completion + embedding client; None when no API key is available.
        registry: Tools offered to the model.
        scheduler: Background re-index queue; None disables re-indexing.
        home_dir: Sandbox root for read-only tools when no project is active.
    """

    config: DeskmateConfig
    repo: Repository
    llm: CompletionClient | None
    registry: ToolRegistry = field(default_factory=default_registry)
    scheduler: ReindexScheduler | None = None
    home_dir: Path = field(default_factory=Path.home)


@dataclass
class TurnResult:
    """Outcome of run_turn().

    Attributes:
        content: Assistant reply, or the explanatory message for an aborted turn.
        state: DONE or ABORTED.
        messages: Every message sent in the last completion call, plus the reply.
        completion_calls: Number of completion requests made (0, 1 or 2).
        tool_results: Results of executed tool calls, in call order.
    """

    content: str
    state: TurnState
    messages: list[ChatMessage] = field(default_factory=list)
    completion_calls: int = 0
    tool_results: list[ToolExecutionResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is TurnState.DONE


class CompletionOrchestrator:
    """Runs chat turns against an AssistantContext."""

    def __init__(self, ctx: AssistantContext) -> None:
        self.ctx = ctx
        cfg = ctx.config
        self.insights = InsightStore(ctx.repo, ctx.llm)
        self.loader = ContextLoader(ctx.repo)
        self.retriever = RetrievalEngine(self.insights, memory_limit=cfg.retrieval.memory_limit)
        self.assembler = PromptAssembler(
            model=cfg.completion.model or "openai/gpt-4.1",
            max_history_tokens=cfg.prompt.max_history_tokens,
        )
        self.dispatcher = ToolDispatcher(
            ctx.registry, ctx.home_dir, insights=self.insights, settings=cfg.tools
        )
        self.state = TurnState.INIT

    def run_turn(
        self, messages: list[ChatMessage], active_project_id: int | None = None
    ) -> TurnResult:
        """Process one user turn. Never raises for service or tool failures."""
        self.state = TurnState.INIT
        llm = self.ctx.llm
        if llm is None:
            logger.error("Turn aborted: no completion client configured")
            return self._abort(CONFIG_ERROR_MESSAGE, list(messages), 0, [])
        if not messages:
            logger.error("Turn aborted: no messages")
            return self._abort(NO_MESSAGES_MESSAGE, [], 0, [])

        # CONTEXT_LOADED
        loaded = self.loader.load(active_project_id)
        for problem in loaded.diagnostics:
            logger.warning("Context: %s", problem)
        retrieval = self.retriever.retrieve(
            last_user_text(messages), loaded.active_project, loaded.project_tree
        )
        prompt = self.assembler.assemble(
            messages,
            loaded.project_summary,
            retrieval.structure_snippet,
            retrieval.memory_snippet,
        )
        self.state = TurnState.CONTEXT_LOADED

        # FIRST_CALL_PENDING
        self.state = TurnState.FIRST_CALL_PENDING
        try:
            reply = llm.complete(prompt, tools=self.ctx.registry.schemas())
        except TransportError as exc:
            logger.error("First completion call failed: %s", exc)
            return self._abort(TRANSPORT_ERROR_MESSAGE, prompt, 1, [])
        calls = 1

        tool_results: list[ToolExecutionResult] = []
        if reply.tool_calls:
            # TOOL_LOOP
            self.state = TurnState.TOOL_LOOP
            prompt = prompt + [ChatMessage.assistant(reply.content, reply.tool_calls)]
            for call in reply.tool_calls:
                logger.info("Tool call: %s", call.name)
                result = self.dispatcher.dispatch(call, loaded.active_project)
                tool_results.append(result)
                prompt.append(ChatMessage.tool(call.id, result.result))

            if any(r.needs_reindex for r in tool_results) and loaded.active_project is not None:
                if self.ctx.scheduler is not None:
                    self.ctx.scheduler.schedule(loaded.active_project)

            # SECOND_CALL_PENDING
            self.state = TurnState.SECOND_CALL_PENDING
            try:
                reply = llm.complete(prompt)
            except TransportError as exc:
                logger.error("Second completion call failed: %s", exc)
                return self._abort(TRANSPORT_ERROR_MESSAGE, prompt, 2, tool_results)
            calls = 2
            if reply.tool_calls:
                logger.warning(
                    "Ignoring %d tool call(s) requested in the second response: %s",
                    len(reply.tool_calls),
                    ", ".join(c.name for c in reply.tool_calls),
                )

        # RESPONDING
        self.state = TurnState.RESPONDING
        content = (reply.content or "").strip()
        if not content:
            logger.error("Completion service returned an empty response")
            return self._abort(EMPTY_RESPONSE_MESSAGE, prompt, calls, tool_results)

        self.state = TurnState.DONE
        return TurnResult(
            content=reply.content or "",
            state=TurnState.DONE,
            messages=prompt + [ChatMessage.assistant(reply.content)],
            completion_calls=calls,
            tool_results=tool_results,
        )

    def _abort(
        self,
        message: str,
        prompt: list[ChatMessage],
        calls: int,
        tool_results: list[ToolExecutionResult],
    ) -> TurnResult:
        self.state = TurnState.ABORTED
        return TurnResult(
            content=message,
            state=TurnState.ABORTED,
            messages=prompt,
            completion_calls=calls,
            tool_results=tool_results,
        )
