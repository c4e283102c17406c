"""Chat message and tool-call types exchanged with the completion service.

Messages convert to and from the OpenAI-style dict shape that litellm accepts
and returns. Ordering matters: a ``tool`` message must directly follow the
assistant message whose ``tool_calls`` it answers, with a matching
``tool_call_id``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["system", "user", "assistant", "tool"]


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read *key* from a dict or an attribute-style response object."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_api(cls, raw: Any) -> ToolCall:
        function = _get(raw, "function") or {}
        arguments = _get(function, "arguments")
        return cls(
            id=str(_get(raw, "id") or ""),
            name=str(_get(function, "name") or ""),
            arguments=arguments if isinstance(arguments, str) else "{}",
        )


@dataclass
class ChatMessage:
    role: Role
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)

    def to_api(self) -> dict[str, Any]:
        """Return the dict form sent to litellm.completion()."""
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_api() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_api(cls, raw: Any) -> ChatMessage:
        """Build a ChatMessage from a dict or a litellm response message."""
        raw_calls = _get(raw, "tool_calls") or []
        return cls(
            role=_get(raw, "role") or "assistant",
            content=_get(raw, "content"),
            tool_call_id=_get(raw, "tool_call_id"),
            tool_calls=[ToolCall.from_api(tc) for tc in raw_calls],
        )

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCall] | None = None) -> ChatMessage:
        return cls(role="assistant", content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> ChatMessage:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


def last_user_index(messages: list[ChatMessage]) -> int:
    """Return the index of the last user message, or -1 if there is none."""
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == "user":
            return i
    return -1


def last_user_text(messages: list[ChatMessage]) -> str:
    """Return the stripped content of the last user message ('' if none)."""
    index = last_user_index(messages)
    if index == -1:
        return ""
    return (messages[index].content or "").strip()
