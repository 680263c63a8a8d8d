"""
Chat Router

    POST /api/chat               - stream one assistant turn (SSE)
    GET  /api/chat/tools         - tool catalogue
    POST /api/chat/tools/{name}  - call a single tool directly

Headers understood by POST /api/chat: ``x-request-id`` (echoed in the stream),
``x-persona`` (answer tone) and ``x-model`` (model override).
"""

import logging
import uuid
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from planner.auth import Session as AuthSession, get_session
from planner.chat import tools  # noqa: F401  (registers the tool catalogue)
from planner.chat.context import RunContext
from planner.chat.orchestrator import run_chat
from planner.chat.prompts import DEFAULT_PERSONA
from planner.chat.registry import registry
from planner.database import SessionLocal, get_db
from planner.errors import NotFound, ServiceUnavailable
from planner.rate_limit import limiter
from planner.schemas import ChatRequest, ToolCallRequest
from planner.services.llm import get_client, select_model
from planner.services.usage import consume_ai_quota

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def _request_id(request: Request) -> str:
    return (request.headers.get("x-request-id") or "").strip() or str(uuid.uuid4())


@router.post("")
@limiter.limit("30/minute")
async def chat(
    request: Request,
    payload: ChatRequest,
    session: Optional[AuthSession] = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Run one chat turn and stream its progress as Server-Sent Events."""
    client = get_client()
    if client is None:
        raise ServiceUnavailable("No LLM API key configured")

    if session:
        consume_ai_quota(db, session.user.id)

    request_id = _request_id(request)
    persona = (request.headers.get("x-persona") or "").strip() or DEFAULT_PERSONA
    model = select_model(persona, request.headers.get("x-model"))
    headers = dict(request.headers)
    hub = request.app.state.hub
    messages = [m.model_dump() for m in payload.messages]

    logger.info(
        "Chat turn %s: persona=%s model=%s user=%s",
        request_id, persona, model, session.user.id if session else "anon",
    )

    async def event_generator() -> AsyncGenerator[dict, None]:
        # The request-scoped session is gone once streaming starts; tools get their own
        tool_db = SessionLocal()
        try:
            ctx = RunContext(
                session=session,
                headers=headers,
                cache={},
                request_id=request_id,
                db=tool_db,
                hub=hub,
            )
            async for event in run_chat(messages, ctx, client, model, persona):
                yield event
        finally:
            tool_db.close()

    return EventSourceResponse(event_generator(), headers={"x-request-id": request_id})


@router.get("/tools")
def list_tools():
    """List all chat tools with their JSON input schemas."""
    return {
        "tools": [
            {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            }
            for tool in registry
        ]
    }


@router.post("/tools/{tool_name}")
async def call_tool(
    request: Request,
    tool_name: str,
    payload: ToolCallRequest,
    session: Optional[AuthSession] = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Call a single tool with the caller's session, outside of a chat turn."""
    if tool_name not in registry:
        raise NotFound(f"Unknown tool: {tool_name}")

    ctx = RunContext(
        session=session,
        headers=dict(request.headers),
        cache={},
        request_id=_request_id(request),
        db=db,
        hub=request.app.state.hub,
    )
    result = await registry.call(tool_name, payload.arguments, ctx)
    success = not (isinstance(result, dict) and "error" in result)
    return {"success": success, "result": result, "tool": tool_name}
