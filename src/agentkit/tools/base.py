"""Base types for the tool system."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ToolCategory(str, Enum):
    """Discovery categories for tools. They carry no behaviour."""

    UTILITY = "utility"
    KNOWLEDGE = "knowledge"
    MEDIA = "media"
    CONNECTOR = "connector"
    DEVELOPER = "developer"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ToolContext:
    """Call context handed to every tool handler.

    Handlers run as coroutines inside the agent's task, so cancelling the
    turn cancels the handler as well. Handlers that push work onto threads
    must not outlive the call.
    """

    agent_id: str
    tool_call_id: str


class EmptyParams(BaseModel):
    """Parameter model for tools that take no arguments."""


# Tool handler signature: async function taking the context and validated params
ToolHandler = Callable[[ToolContext, Any], Awaitable[Any]]


@dataclass
class Tool:
    """A named capability the model can call.

    ``parameters`` is a pydantic model class. Its JSON schema is what the
    model sees, and it validates the arguments of every call before the
    handler runs.
    """

    name: str
    description: str
    handler: ToolHandler
    parameters: type[BaseModel] = EmptyParams
    category: ToolCategory = ToolCategory.CUSTOM
    builtin: bool = False
    version: str = "1.0.0"

    def parameter_schema(self) -> dict[str, Any]:
        """Return the JSON schema of the tool's parameters."""
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        schema.setdefault("type", "object")
        return schema

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format.

        Returns:
            Dictionary matching OpenAI's function schema format
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameter_schema(),
            },
        }

    def specification(self) -> dict[str, Any]:
        """Describe the tool for discovery and export."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameter_schema(),
            "category": self.category.value,
            "is_builtin": self.builtin,
            "version": self.version,
        }

    async def invoke(self, ctx: ToolContext, arguments: dict[str, Any]) -> Any:
        """Validate arguments and run the handler.

        Args:
            ctx: Call context
            arguments: Decoded JSON arguments from the model

        Returns:
            Whatever the handler returns

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema
        """
        params = self.parameters.model_validate(arguments)
        return await self.handler(ctx, params)
