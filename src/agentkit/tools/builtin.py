"""Built-in tools and their batch registration."""

from __future__ import annotations

import ast
import asyncio
import logging
import math
import operator
import re
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from duckduckgo_search import DDGS
from pydantic import BaseModel, Field

from agentkit.tools.base import Tool, ToolCategory, ToolContext
from agentkit.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

BUILTIN_VERSION = "1.0"
MAX_RESPONSE_CHARS = 20_000

SearchFunction = Callable[[str, int], Awaitable[list[dict[str, Any]]]]
WeatherLookup = Callable[[str, "str | None"], Awaitable[dict[str, Any]]]


# calculator


class CalculatorParams(BaseModel):
    expression: str = Field(min_length=1, description="Arithmetic expression to evaluate, e.g. '(2+3)*4'")


_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
MAX_EXPONENT = 100
MAX_RESULT_DIGITS = 1000


def _check_power(base: int | float, exponent: int | float) -> None:
    if abs(exponent) > MAX_EXPONENT:
        msg = f"Exponent too large: {exponent}"
        raise ValueError(msg)
    if exponent > 0 and abs(base) > 1 and exponent * math.log10(abs(base)) > MAX_RESULT_DIGITS:
        msg = f"Result of power would exceed {MAX_RESULT_DIGITS} digits"
        raise ValueError(msg)


def _evaluate(node: ast.AST) -> int | float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        try:
            return _BINARY_OPS[type(node.op)](left, right)
        except ZeroDivisionError:
            msg = "Division by zero"
            raise ValueError(msg) from None
        except OverflowError:
            msg = "Result out of range"
            raise ValueError(msg) from None
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    msg = f"Unsupported expression element: {type(node).__name__}"
    raise ValueError(msg)


def evaluate_expression(expression: str) -> str:
    """Evaluate an arithmetic expression without ``eval``.

    Only numeric literals, parentheses, unary +/- and the operators
    ``+ - * / // % **`` are accepted.

    Raises:
        ValueError: On syntax errors, unsupported elements or division by zero
    """
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        msg = f"Invalid expression: {expression}"
        raise ValueError(msg) from e

    result = _evaluate(tree)
    if isinstance(result, float) and result.is_integer():
        return str(int(result))
    return str(result)


async def calculator(ctx: ToolContext, params: CalculatorParams) -> dict[str, str]:
    return {"expression": params.expression, "result": evaluate_expression(params.expression)}


# timezone_converter


class TimezoneParams(BaseModel):
    time: str = Field(min_length=1, description="ISO 8601 time to convert, or 'now'")
    from_timezone: str = Field(min_length=1, description="Source zone, e.g. 'Asia/Shanghai' or 'UTC+8'")
    to_timezone: str = Field(min_length=1, description="Target zone, e.g. 'America/New_York' or 'UTC-5'")


_OFFSET_PATTERN = re.compile(r"^(?:UTC|GMT)\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def parse_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name or a fixed ``UTC+H[:MM]`` offset.

    Raises:
        ValueError: If the zone is unknown
    """
    name = name.strip()
    if name.upper() in ("UTC", "GMT", "Z"):
        return timezone.utc

    match = _OFFSET_PATTERN.match(name)
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
        return timezone(-delta if sign == "-" else delta)

    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        msg = f"Unknown timezone: {name}"
        raise ValueError(msg) from None


async def timezone_converter(ctx: ToolContext, params: TimezoneParams) -> dict[str, str]:
    source = parse_timezone(params.from_timezone)
    target = parse_timezone(params.to_timezone)

    if params.time.strip().lower() == "now":
        moment = datetime.now(source)
    else:
        try:
            moment = datetime.fromisoformat(params.time.strip())
        except ValueError:
            msg = f"Time must be ISO 8601: {params.time}"
            raise ValueError(msg) from None
        # An explicit offset in the time string wins over from_timezone
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=source)

    return {
        "original_time": params.time,
        "from_timezone": params.from_timezone,
        "to_timezone": params.to_timezone,
        "converted_time": moment.astimezone(target).isoformat(),
    }


# http_request


class HttpRequestParams(BaseModel):
    url: str = Field(min_length=1, description="URL to request")
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"] = Field(
        default="GET", description="HTTP method"
    )
    headers: dict[str, str] | None = Field(default=None, description="Request headers")
    body: str | None = Field(default=None, description="Request body for POST, PUT and PATCH")


def make_http_request_tool(timeout: float = 30.0) -> Tool:
    """Create the ``http_request`` tool."""

    async def http_request(ctx: ToolContext, params: HttpRequestParams) -> dict[str, Any]:
        content = params.body if params.method not in ("GET", "HEAD") else None
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.request(
                params.method,
                params.url,
                headers=params.headers,
                content=content,
            )

        body = response.text
        if len(body) > MAX_RESPONSE_CHARS:
            body = body[:MAX_RESPONSE_CHARS] + f"\n... (truncated, {len(body) - MAX_RESPONSE_CHARS} chars omitted)"

        return {
            "status_code": response.status_code,
            "headers": dict(response.headers),
            "body": body,
        }

    return Tool(
        name="http_request",
        description="Send an HTTP request to a URL and return the status, headers and body",
        handler=http_request,
        parameters=HttpRequestParams,
        category=ToolCategory.CONNECTOR,
        builtin=True,
        version=BUILTIN_VERSION,
    )


# file_read


class FileReadParams(BaseModel):
    path: str = Field(min_length=1, description="File path relative to the allowed base directory")


def make_file_read_tool(base_path: str | Path) -> Tool:
    """Create the ``file_read`` tool confined to ``base_path``."""
    base = Path(base_path).expanduser().resolve()

    async def file_read(ctx: ToolContext, params: FileReadParams) -> dict[str, str]:
        file_path = (base / params.path).resolve()
        if not file_path.is_relative_to(base):
            msg = "Access denied: path is outside the allowed directory"
            raise PermissionError(msg)
        if not file_path.is_file():
            msg = f"File not found: {params.path}"
            raise FileNotFoundError(msg)

        content = await asyncio.to_thread(file_path.read_text, encoding="utf-8", errors="replace")
        if len(content) > MAX_RESPONSE_CHARS:
            content = (
                content[:MAX_RESPONSE_CHARS]
                + f"\n... (truncated, {len(content) - MAX_RESPONSE_CHARS} chars omitted)"
            )
        return {"path": params.path, "content": content}

    return Tool(
        name="file_read",
        description="Read a text file inside the allowed directory",
        handler=file_read,
        parameters=FileReadParams,
        category=ToolCategory.DEVELOPER,
        builtin=True,
        version=BUILTIN_VERSION,
    )


# web_search


class WebSearchParams(BaseModel):
    query: str = Field(min_length=1, description="Search query")
    max_results: int = Field(default=5, description="Maximum number of results (1-10)")


async def duckduckgo_search(query: str, max_results: int) -> list[dict[str, Any]]:
    """Search DuckDuckGo and normalise the results."""

    def _search() -> list[dict[str, Any]]:
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    results = await asyncio.to_thread(_search)
    return [
        {
            "title": r.get("title", ""),
            "url": r.get("href", ""),
            "snippet": r.get("body", ""),
        }
        for r in results
    ]


def make_web_search_tool(search: SearchFunction | None = None) -> Tool:
    """Create the ``web_search`` tool.

    Args:
        search: Search backend; DuckDuckGo when omitted
    """
    backend = search or duckduckgo_search

    async def web_search(ctx: ToolContext, params: WebSearchParams) -> dict[str, Any]:
        max_results = min(max(1, params.max_results), 10)
        results = await backend(params.query, max_results)
        return {"query": params.query, "results": results}

    return Tool(
        name="web_search",
        description="Search the web for up-to-date information",
        handler=web_search,
        parameters=WebSearchParams,
        category=ToolCategory.KNOWLEDGE,
        builtin=True,
        version=BUILTIN_VERSION,
    )


# weather


class WeatherParams(BaseModel):
    city: str = Field(min_length=1, description="City name")
    country: str | None = Field(default=None, description="Country name, optional")


def make_weather_tool(lookup: WeatherLookup) -> Tool:
    """Create the ``weather`` tool backed by a weather lookup coroutine."""

    async def weather(ctx: ToolContext, params: WeatherParams) -> dict[str, Any]:
        report = await lookup(params.city, params.country)
        return {"city": params.city, **report}

    return Tool(
        name="weather",
        description="Get the current weather for a city",
        handler=weather,
        parameters=WeatherParams,
        category=ToolCategory.UTILITY,
        builtin=True,
        version=BUILTIN_VERSION,
    )


def make_calculator_tool() -> Tool:
    return Tool(
        name="calculator",
        description="Evaluate an arithmetic expression",
        handler=calculator,
        parameters=CalculatorParams,
        category=ToolCategory.UTILITY,
        builtin=True,
        version=BUILTIN_VERSION,
    )


def make_timezone_tool() -> Tool:
    return Tool(
        name="timezone_converter",
        description="Convert a time from one timezone to another",
        handler=timezone_converter,
        parameters=TimezoneParams,
        category=ToolCategory.UTILITY,
        builtin=True,
        version=BUILTIN_VERSION,
    )


def register_builtin_tools(
    registry: ToolRegistry,
    names: Iterable[str],
    *,
    file_base_path: str | Path | None = None,
    search: SearchFunction | None = None,
    weather_lookup: WeatherLookup | None = None,
    http_timeout: float = 30.0,
) -> list[str]:
    """Register built-in tools by name.

    Unknown names, and tools whose backing collaborator was not supplied
    (``file_read`` without a base path, ``weather`` without a lookup), are
    logged and skipped.

    Returns:
        Names of the tools that were registered
    """
    factories: dict[str, Callable[[], Tool | None]] = {
        "calculator": make_calculator_tool,
        "timezone_converter": make_timezone_tool,
        "http_request": lambda: make_http_request_tool(http_timeout),
        "web_search": lambda: make_web_search_tool(search),
        "file_read": lambda: make_file_read_tool(file_base_path) if file_base_path else None,
        "weather": lambda: make_weather_tool(weather_lookup) if weather_lookup else None,
    }

    registered: list[str] = []
    for name in names:
        factory = factories.get(name)
        if factory is None:
            logger.warning("Unknown built-in tool: %s", name)
            continue
        tool = factory()
        if tool is None:
            logger.warning("Skipping built-in tool %s: no backend configured", name)
            continue
        registry.register(tool)
        registered.append(name)

    return registered


BUILTIN_TOOL_NAMES = (
    "calculator",
    "weather",
    "timezone_converter",
    "http_request",
    "file_read",
    "web_search",
)


def register_all_builtin_tools(registry: ToolRegistry, **kwargs: Any) -> list[str]:
    """Register every built-in tool that can be built from ``kwargs``."""
    return register_builtin_tools(registry, BUILTIN_TOOL_NAMES, **kwargs)
