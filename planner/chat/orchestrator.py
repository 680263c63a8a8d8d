"""
Chat orchestrator.

Runs one user turn against the model: the model may call registry tools, their
results are fed back, and the loop ends when the model answers in plain text.
The turn is bounded twice, by ``TOOL_BUDGET`` tool executions and by a
wall-clock cap of ``CHAT_MAX_DURATION_SECONDS`` for the whole stream.

Progress is reported as a sequence of SSE-ready dicts:
``start``, ``text``, ``tool_call``, ``tool_result``, ``error`` and ``done``.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI

from planner.chat.context import RunContext
from planner.chat.prompts import TOOL_BUDGET, get_system_prompt
from planner.chat.registry import ToolRegistry, registry as default_registry

logger = logging.getLogger(__name__)

CHAT_MAX_DURATION_SECONDS = 30

# Model round trips per turn; one more than the budget leaves room for the final answer
MAX_ROUNDS = TOOL_BUDGET + 2

BUDGET_EXCEEDED = {"error": "tool-budget-exceeded"}


def sse(event: str, data) -> dict:
    return {"event": event, "data": json.dumps(data, default=str)}


def _parse_arguments(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return args if isinstance(args, dict) else None


class ChatRun:
    """State of a single chat turn."""

    def __init__(
        self,
        messages: list[dict],
        ctx: RunContext,
        client: AsyncOpenAI,
        model: str,
        persona: Optional[str] = None,
        tools: Optional[ToolRegistry] = None,
        budget: int = TOOL_BUDGET,
    ):
        self.ctx = ctx
        self.client = client
        self.model = model
        self.persona = persona
        self.tools = tools or default_registry
        self.budget = budget
        self.tool_calls_used = 0
        self.conversation = [{"role": "system", "content": get_system_prompt(persona)}, *messages]

    @property
    def budget_spent(self) -> bool:
        return self.tool_calls_used >= self.budget

    async def complete(self, timeout: float):
        return await asyncio.wait_for(
            self.client.chat.completions.create(
                model=self.model,
                messages=self.conversation,
                tools=self.tools.openai_tools(),
                tool_choice="none" if self.budget_spent else "auto",
            ),
            timeout=timeout,
        )

    async def execute(self, name: str, raw_arguments: Optional[str]):
        if self.budget_spent:
            logger.info("Tool budget exhausted, refusing %s (request %s)", name, self.ctx.request_id)
            return BUDGET_EXCEEDED
        self.tool_calls_used += 1

        arguments = _parse_arguments(raw_arguments)
        if arguments is None:
            return {"error": "invalid-input", "tool": name, "detail": "arguments must be a JSON object"}
        return await self.tools.call(name, arguments, self.ctx)


async def run_chat(
    messages: list[dict],
    ctx: RunContext,
    client: AsyncOpenAI,
    model: str,
    persona: Optional[str] = None,
    tools: Optional[ToolRegistry] = None,
    max_duration: float = CHAT_MAX_DURATION_SECONDS,
) -> AsyncIterator[dict]:
    """Stream one chat turn as SSE event dicts."""
    run = ChatRun(messages, ctx, client, model, persona, tools)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_duration

    yield sse("start", {"requestId": ctx.request_id, "model": model})

    try:
        for _ in range(MAX_ROUNDS):
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError()

            response = await run.complete(remaining)
            message = response.choices[0].message
            tool_calls = message.tool_calls or []

            if message.content:
                yield sse("text", {"delta": message.content})

            if not tool_calls:
                break

            run.conversation.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments or "{}"},
                    }
                    for call in tool_calls
                ],
            })

            for call in tool_calls:
                name = call.function.name
                yield sse("tool_call", {"id": call.id, "name": name, "arguments": call.function.arguments})
                result = await run.execute(name, call.function.arguments)
                yield sse("tool_result", {"id": call.id, "name": name, "result": result})
                run.conversation.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": json.dumps(result, default=str),
                })
        else:
            logger.warning("Chat turn hit the round limit (request %s)", ctx.request_id)

    except asyncio.TimeoutError:
        logger.warning("Chat turn exceeded %ss (request %s)", max_duration, ctx.request_id)
        yield sse("error", {"error": "timeout", "message": "The assistant took too long to answer."})
        return
    except Exception:
        logger.exception("Chat turn failed (request %s)", ctx.request_id)
        yield sse("error", {"error": "internal", "message": "Something went wrong"})
        return

    yield sse("done", {"requestId": ctx.request_id, "toolCalls": run.tool_calls_used})
