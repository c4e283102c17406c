"""Prompt assembly: system prompt, retrieval snippets and a token-bounded history.

Output ordering:

    [system, ...older turns..., (memory)?, (structure)?, latest user message]

The combined system prompt is the base instructions followed by the project
summary. Existing system messages in the history are dropped in its favour.
The input list is never mutated.
"""

from __future__ import annotations

import logging

from deskmate.messages import ChatMessage, last_user_index
from deskmate.rag.llm_client import count_tokens

logger = logging.getLogger(__name__)

# Per-message framing overhead added by chat formats
_MESSAGE_OVERHEAD_TOKENS = 4

BASE_PROMPT = """You are an expert-level AI Software Developer and Architect acting as a pair programmer and assistant. Your primary goal is to assist the user with planning, designing, implementing, debugging, and documenting software projects by leveraging the provided context and tools.

**Capabilities & Context Awareness:**
* You can analyze requirements, suggest architectures, generate code (snippets or full files), refactor existing code, explain concepts, write documentation, and identify potential issues.
* **Proactive Planning & Structuring:** When discussing new projects, features, or complex tasks, proactively suggest potential structures (e.g., folder layouts, component breakdowns), relevant technologies or patterns, step-by-step implementation plans, and anticipate potential challenges or edge cases.
* You have access to a list of local projects the user has indexed. The active project (if any) will be specified, along with its location.
* You will receive relevant context, such as specific file structure information or summaries from past conversations related to the current query, via System Messages. You MUST prioritize provided context over your general knowledge when it's available.
* Pay close attention to user preferences regarding languages, frameworks, styling, and coding patterns provided in context messages or saved memories. Apply these preferences in your suggestions and code generation.

**Tool Usage (Mandatory for Filesystem):**
* You MUST use the provided tools for ALL interactions with the user's local file system. Do NOT attempt to access files directly or hallucinate file contents or structures.
* Available tools: 'list_directory', 'list_directory_recursive', 'read_file', 'create_directory', 'create_file', 'edit_file', 'save_memory', 'append_to_ai_context'.
* When using tools requiring a 'path', interpret the path relative to the **active project's root directory** if a project context is active. Otherwise, interpret it relative to the user's home directory (use caution here). Do not use '..' or absolute paths.
* Use 'append_to_ai_context' to save persistent notes, decisions, or summaries SPECIFIC to the active project in its AIContext.md file. Use 'save_memory' for general user preferences or cross-project learnings.
* When using a file modification tool ('create_directory', 'create_file', 'edit_file', 'append_to_ai_context'), clearly state the **full relative path** and a **concise summary** of the change within your response, then call the tool.

**Interaction Style:**
* Be proactive and provide detailed, expert-level explanations and suggestions, but be concise when summarizing or listing steps.
* Use Markdown effectively (lists, code blocks, bolding) for readability. Simple diagrams in **Mermaid syntax** are welcome when they help visualize architecture or flows.
* Ask clarifying questions if a request is ambiguous, lacks sufficient context, or seems potentially problematic.
"""


class PromptAssembler:
    """Builds the message list sent to the completion service.

    Args:
        base_prompt: Fixed instructions placed at the start of the system prompt.
        model: Model name used for token counting.
        max_history_tokens: Token budget for the conversation history
            (non-system messages). 0 disables trimming.
    """

    def __init__(
        self,
        base_prompt: str = BASE_PROMPT,
        model: str = "openai/gpt-4.1",
        max_history_tokens: int = 0,
    ) -> None:
        self.base_prompt = base_prompt
        self.model = model
        self.max_history_tokens = max_history_tokens

    def assemble(
        self,
        history: list[ChatMessage],
        project_summary: str,
        structure_snippet: str = "",
        memory_snippet: str = "",
    ) -> list[ChatMessage]:
        conversation = [m for m in history if m.role != "system"]
        if self.max_history_tokens > 0:
            conversation = self.trim(conversation)

        messages = [ChatMessage.system(self.base_prompt + project_summary)] + conversation

        index = last_user_index(messages)
        insert_at = index if index != -1 else len(messages)
        snippets = [
            ChatMessage.system(s) for s in (memory_snippet, structure_snippet) if s
        ]
        messages[insert_at:insert_at] = snippets
        return messages

    def message_tokens(self, message: ChatMessage) -> int:
        text = message.content or ""
        for call in message.tool_calls:
            text += call.name + call.arguments
        return count_tokens(self.model, text) + _MESSAGE_OVERHEAD_TOKENS

    def trim(self, conversation: list[ChatMessage]) -> list[ChatMessage]:
        """Drop the oldest messages until *conversation* fits the token budget.

        The latest user message and everything after it are always kept. Tool
        messages left without their assistant ``tool_calls`` message are dropped.
        """
        keep_from = last_user_index(conversation)
        if keep_from == -1:
            keep_from = len(conversation)

        sizes = [self.message_tokens(m) for m in conversation]
        total = sum(sizes)
        start = 0
        while total > self.max_history_tokens and start < keep_from:
            total -= sizes[start]
            start += 1
        # A tool message must follow its assistant tool_calls message
        while start < keep_from and conversation[start].role == "tool":
            start += 1

        if start:
            logger.debug("Trimmed %d oldest messages to fit %d tokens", start, self.max_history_tokens)
        return conversation[start:]
