"""
Action tools: join/leave events, vote on and collect goodies.

Every action checks the session before touching the store and goes through the
same service functions as the REST routes, so the broadcast a WebSocket client
receives is identical whichever side triggered it.
"""

import logging

from pydantic import Field, field_validator

from planner.chat.context import RunContext, assert_auth_session
from planner.chat.registry import ToolInput, registry
from planner.errors import InvalidInput, NotFound
from planner.services import events as event_service
from planner.services import goodies as goodie_service

logger = logging.getLogger(__name__)


class EventActionInput(ToolInput):
    event_id: str = Field(min_length=1)


class GoodieActionInput(ToolInput):
    goodie_id: str = Field(min_length=1)


class VoteInput(GoodieActionInput):
    value: int

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v):
        # Models sometimes send "1"/"-1"
        if isinstance(v, str):
            v = v.strip()
            try:
                v = int(v)
            except ValueError:
                raise ValueError("value must be -1 or 1")
        if isinstance(v, bool) or v not in (-1, 1):
            raise ValueError("value must be -1 or 1")
        return v


@registry.tool("joinEvent", "Join an event (requires auth).", EventActionInput)
async def join_event(args: EventActionInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        attendees = event_service.join_event(ctx.db, ctx.user_id, args.event_id, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    logger.info("joinEvent %s by %s (request %s)", args.event_id, ctx.user_id, ctx.request_id)
    return {"ok": True, "attendees": attendees}


@registry.tool("leaveEvent", "Leave an event (requires auth).", EventActionInput)
async def leave_event(args: EventActionInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        attendees = event_service.leave_event(ctx.db, ctx.user_id, args.event_id, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    logger.info("leaveEvent %s by %s (request %s)", args.event_id, ctx.user_id, ctx.request_id)
    return {"ok": True, "attendees": attendees}


@registry.tool("voteGoodie", "Vote a goodie with value -1 or 1 (requires auth).", VoteInput)
async def vote_goodie(args: VoteInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        result = goodie_service.vote_goodie(ctx.db, ctx.user_id, args.goodie_id, args.value, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    except InvalidInput as exc:
        return {"error": "invalid-input", "detail": exc.detail}
    return {"ok": True, "myValue": args.value, **result}


@registry.tool("clearGoodieVote", "Clear vote for a goodie (requires auth).", GoodieActionInput)
async def clear_goodie_vote(args: GoodieActionInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        result = goodie_service.clear_vote(ctx.db, ctx.user_id, args.goodie_id, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    return {"ok": True, **result}


@registry.tool("toggleCollectGoodie", "Toggle collected status for a goodie (requires auth).", GoodieActionInput)
async def toggle_collect_goodie(args: GoodieActionInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        collected, count = goodie_service.toggle_collected(ctx.db, ctx.user_id, args.goodie_id, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    return {"collected": collected, "collectedCount": count}
