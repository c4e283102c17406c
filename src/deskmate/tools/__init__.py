"""deskmate tools: sandboxed filesystem and memory tools callable by the model."""

from deskmate.tools.base import Tool, ToolContext, ToolExecutionResult
from deskmate.tools.registry import ToolDispatcher, ToolRegistry, default_registry
from deskmate.tools.sandbox import SandboxViolation, resolve

__all__ = [
    "Tool",
    "ToolContext",
    "ToolExecutionResult",
    "ToolDispatcher",
    "ToolRegistry",
    "default_registry",
    "SandboxViolation",
    "resolve",
]
