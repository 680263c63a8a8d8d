"""Information tools: full card views for a single event or goodie."""

from pydantic import Field

from planner.chat.context import CacheKey, RunContext, from_cache, session_of
from planner.chat.registry import ToolInput, registry
from planner.services import events as event_service
from planner.services import goodies as goodie_service


class EventIdInput(ToolInput):
    event_id: str = Field(min_length=1)


class GoodieIdInput(ToolInput):
    goodie_id: str = Field(min_length=1)


@registry.tool("getEventInformation", "Return the event card for a given event ID.", EventIdInput)
async def get_event_information(args: EventIdInput, ctx: RunContext):
    session = session_of(ctx)
    user_id = session.user.id if session else None

    async def load():
        event = event_service.get_event(ctx.db, args.event_id)
        if not event:
            return {"error": "Event not found"}
        return event_service.event_card(event, user_id)

    return await from_cache(ctx, CacheKey.event(args.event_id), load)


@registry.tool("getGoodieInformation", "Return the goodie card for a given goodie ID.", GoodieIdInput)
async def get_goodie_information(args: GoodieIdInput, ctx: RunContext):
    session = session_of(ctx)
    user_id = session.user.id if session else None

    async def load():
        goodie = goodie_service.get_goodie(ctx.db, args.goodie_id)
        if not goodie:
            return {"error": "Goodie not found"}
        view = goodie_service.goodie_view(ctx.db, goodie, user_id)
        view["createdById"] = goodie.created_by_id
        return view

    return await from_cache(ctx, CacheKey.goodie(args.goodie_id), load)
