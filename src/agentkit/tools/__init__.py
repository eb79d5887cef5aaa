"""Tool system: typed tools, the registry and built-in tools."""

from agentkit.tools.base import EmptyParams, Tool, ToolCategory, ToolContext
from agentkit.tools.registry import ToolRegistry

__all__ = ["EmptyParams", "Tool", "ToolCategory", "ToolContext", "ToolRegistry"]
