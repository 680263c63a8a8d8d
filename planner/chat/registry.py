"""
Tool Registry

A catalogue of named tools the chat assistant (and MCP clients) may call.
Each tool declares a pydantic input model; arguments are validated before the
tool body runs, so tool code only ever sees well-formed input. Tool results are
plain JSON-ready values; expected failures come back as ``{"error": ...}``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Mapping, Type

from mcp.types import Tool as McpTool
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from planner.chat.context import RunContext, ctx_of

logger = logging.getLogger(__name__)


class ToolInput(BaseModel):
    """Base for tool inputs: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class NoInput(ToolInput):
    pass


ToolResult = dict | list
Executor = Callable[[Any, RunContext], Awaitable[ToolResult]]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    input_model: Type[ToolInput]
    execute: Executor

    @property
    def input_schema(self) -> dict:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return schema


def describe_validation_error(exc: ValidationError) -> str:
    errors = []
    for err in exc.errors():
        field = " -> ".join(str(loc) for loc in err["loc"])
        errors.append(f"{field}: {err['msg']}" if field else err["msg"])
    return "; ".join(errors)


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def tool(self, name: str, description: str, input_model: Type[ToolInput] = NoInput):
        """Decorator registering ``async def fn(args, ctx)`` under ``name``."""

        def decorator(fn: Executor) -> Executor:
            if name in self._tools:
                raise ValueError(f"Tool '{name}' is already registered")
            self._tools[name] = Tool(name=name, description=description, input_model=input_model, execute=fn)
            return fn

        return decorator

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def openai_tools(self) -> list[dict]:
        """Tools in OpenAI function calling format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in self
        ]

    def mcp_tools(self) -> list[McpTool]:
        return [
            McpTool(name=tool.name, description=tool.description, inputSchema=tool.input_schema)
            for tool in self
        ]

    async def call(self, name: str, arguments: dict | None, ctx: RunContext | Mapping) -> ToolResult:
        """Validate arguments and run a tool.

        ``ctx`` is a RunContext or a mapping carrying one under ``context``.

        Unknown tools and invalid input are rejected here without touching the
        tool body; everything else is whatever the tool returns.
        """
        tool = self._tools.get(name)
        if tool is None:
            return {"error": "unknown-tool", "tool": name}
        try:
            args = tool.input_model.model_validate(arguments or {})
        except ValidationError as exc:
            logger.info("Rejected input for tool %s: %s", name, exc.error_count())
            return {"error": "invalid-input", "tool": name, "detail": describe_validation_error(exc)}
        return await tool.execute(args, ctx_of(ctx))


registry = ToolRegistry()
