"""Tool registration and discovery."""

from __future__ import annotations

import dataclasses
import inspect
import json
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, get_type_hints

from pydantic import BaseModel

from agentkit.tools.base import EmptyParams, Tool, ToolCategory, ToolHandler

if TYPE_CHECKING:
    from agentkit.agent.loop import Agent

logger = logging.getLogger(__name__)


class ToolRegistry:
    """A name-keyed table of tools with a per-category index.

    Both maps are guarded by one lock. Lookups return the registered
    ``Tool`` value; agents receive copies through ``add_tools_to_agent``.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._by_category: dict[ToolCategory, list[str]] = {}
        self._lock = threading.RLock()

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool to register

        Raises:
            ValueError: If the name is empty, the handler is missing, or the
                name is already taken
        """
        if not tool.name:
            msg = "Tool name must not be empty"
            raise ValueError(msg)
        if tool.handler is None:
            msg = f"Tool '{tool.name}' has no handler"
            raise ValueError(msg)

        with self._lock:
            if tool.name in self._tools:
                msg = f"Tool '{tool.name}' is already registered"
                raise ValueError(msg)
            self._tools[tool.name] = tool
            self._by_category.setdefault(tool.category, []).append(tool.name)

        logger.debug("Registered tool %s (%s)", tool.name, tool.category.value)

    def register_custom(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        parameters: type[BaseModel] = EmptyParams,
        category: ToolCategory = ToolCategory.CUSTOM,
        version: str = "1.0.0",
    ) -> Tool:
        """Build and register a user-defined tool.

        Returns:
            The registered tool
        """
        tool = Tool(
            name=name,
            description=description,
            handler=handler,
            parameters=parameters,
            category=category,
            builtin=False,
            version=version,
        )
        self.register(tool)
        return tool

    def tool(
        self,
        description: str | None = None,
        name: str | None = None,
        category: ToolCategory = ToolCategory.CUSTOM,
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator that registers a coroutine as a tool.

        The parameter model is taken from the type hint of the handler's
        second argument; handlers without one take no parameters. The
        description defaults to the first line of the docstring.

        Example:
            @registry.tool(description="Reverse a string")
            async def reverse(ctx: ToolContext, params: ReverseParams) -> str:
                return params.text[::-1]
        """

        def decorator(fn: ToolHandler) -> ToolHandler:
            params_model = _infer_params_model(fn)
            doc = inspect.getdoc(fn) or ""
            self.register_custom(
                name=name or fn.__name__,
                description=description or doc.split("\n", 1)[0],
                handler=fn,
                parameters=params_model,
                category=category,
            )
            return fn

        return decorator

    def get(self, name: str) -> Tool:
        """Get a registered tool by name.

        Raises:
            KeyError: If the tool is not registered
        """
        with self._lock:
            try:
                return self._tools[name]
            except KeyError:
                msg = f"Tool '{name}' not found"
                raise KeyError(msg) from None

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def list_tools(self) -> list[Tool]:
        """Return all registered tools in registration order."""
        with self._lock:
            return list(self._tools.values())

    def list_by_category(self, category: ToolCategory) -> list[Tool]:
        """Return the tools registered under a category."""
        with self._lock:
            return [self._tools[name] for name in self._by_category.get(category, [])]

    def categories(self) -> list[ToolCategory]:
        """Return categories that currently hold at least one tool."""
        with self._lock:
            return [cat for cat, names in self._by_category.items() if names]

    def unregister(self, name: str) -> None:
        """Remove a tool.

        Raises:
            KeyError: If the tool is not registered
        """
        with self._lock:
            tool = self._tools.pop(name, None)
            if tool is None:
                msg = f"Tool '{name}' not found"
                raise KeyError(msg)
            self._by_category[tool.category].remove(name)

    def add_tools_to_agent(self, agent: Agent, *names: str) -> None:
        """Attach copies of the named tools to an agent.

        All names are resolved under one lock before anything is added, so an
        unknown name leaves the agent untouched.

        Raises:
            KeyError: If any name is not registered
        """
        with self._lock:
            missing = [name for name in names if name not in self._tools]
            if missing:
                msg = f"Tools not found: {', '.join(missing)}"
                raise KeyError(msg)
            copies = [dataclasses.replace(self._tools[name]) for name in names]

        for tool in copies:
            agent.add_tool(tool)

    def export_specifications(self) -> str:
        """Serialize every tool's specification as a JSON array."""
        with self._lock:
            specs = [tool.specification() for tool in self._tools.values()]
        return json.dumps(specs, ensure_ascii=False, indent=2)


def _infer_params_model(fn: Callable[..., Any]) -> type[BaseModel]:
    params = list(inspect.signature(fn).parameters.values())
    if len(params) < 2:
        msg = f"Tool '{fn.__name__}' must accept (ctx, params)"
        raise TypeError(msg)

    hints = get_type_hints(fn)
    hint = hints.get(params[1].name)
    if hint is None:
        return EmptyParams
    if isinstance(hint, type) and issubclass(hint, BaseModel):
        return hint

    msg = f"Second parameter of tool '{fn.__name__}' must be annotated with a pydantic model"
    raise TypeError(msg)
