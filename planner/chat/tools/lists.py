"""
List tools: filtered listings of events and goodies, the caller's own items,
participants and counts.

Anonymous callers only ever see public events. Filters that only make sense
for a signed-in user (``mineOnly``, ``joinedOnly``, ``getMy*``) refuse with
``auth-required`` instead of quietly returning a partial list.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Literal, Optional

from pydantic import Field
from sqlalchemy import func, or_

from planner.chat.context import CacheKey, RunContext, assert_auth_session, from_cache, session_of
from planner.chat.registry import NoInput, ToolInput, registry
from planner.database import contains
from planner.models import (
    Event, EventCategory, EventParticipant, Goodie, GoodieCollection, GoodieType, GoodieVote, as_utc,
)
from planner.services.messages import iso

EVENT_SORT_COLUMNS = {
    "startDate": Event.start_date,
    "name": Event.name,
    "createdAt": Event.created_at,
}

GOODIE_SORT_COLUMNS = {
    "createdAt": Goodie.created_at,
    "date": Goodie.date,
    "name": Goodie.name,
}


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _starts_in_ms(value: datetime, now: datetime) -> int:
    return int((as_utc(value) - now).total_seconds() * 1000)


def _ordered(query, column, order: str):
    return query.order_by(column.desc() if order == "desc" else column.asc())


# ============== Events ==============

class EventsAdvancedInput(ToolInput):
    category: Optional[EventCategory] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    day: Optional[date] = None
    mine_only: Optional[bool] = None
    joined_only: Optional[bool] = None
    search: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    sort_by: Literal["startDate", "name", "createdAt"] = "startDate"
    sort_order: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=20, ge=1, le=100)


@registry.tool("getEventsAdvanced", "Advanced event listing with filters.", EventsAdvancedInput)
async def get_events_advanced(args: EventsAdvancedInput, ctx: RunContext):
    session = session_of(ctx)
    if (args.mine_only or args.joined_only) and not session:
        return {"error": "auth-required"}
    user_id = session.user.id if session else None
    now = datetime.now(timezone.utc)

    query = ctx.db.query(Event)
    if args.category:
        query = query.filter(Event.category == args.category)
    if args.search:
        query = query.filter(contains(Event.name, args.search))
    if args.location:
        query = query.filter(contains(Event.location, args.location))
    if args.description:
        query = query.filter(contains(Event.description, args.description))
    if args.day:
        start, end = _day_bounds(args.day)
        query = query.filter(Event.start_date >= start, Event.start_date < end)
    else:
        if args.date_from:
            query = query.filter(Event.start_date >= as_utc(args.date_from))
        if args.date_to:
            query = query.filter(Event.start_date <= as_utc(args.date_to))
    if not session:
        query = query.filter(Event.is_public.is_(True))
    if args.mine_only:
        query = query.filter(Event.created_by_id == user_id)
    if args.joined_only:
        query = query.filter(Event.participants.any(EventParticipant.user_id == user_id))

    query = _ordered(query, EVENT_SORT_COLUMNS[args.sort_by], args.sort_order)
    rows = query.limit(args.limit).all()

    results = []
    for e in rows:
        item = {
            "id": e.id,
            "name": e.name,
            "startDate": iso(e.start_date),
            "endDate": iso(e.end_date),
            "location": e.location,
            "isPublic": bool(e.is_public),
            "category": e.category.value,
            "createdByMe": bool(user_id and e.created_by_id == user_id),
            "startsInMs": _starts_in_ms(e.start_date, now),
        }
        # Only derivable without an extra lookup when the filter itself is about joining
        if args.joined_only and session:
            item["joined"] = True
        results.append(item)
    return results


class EventsInput(ToolInput):
    upcoming_only: Optional[bool] = None
    search: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    day: Optional[date] = None
    sort_by: Literal["startDate", "name", "createdAt"] = "startDate"
    sort_order: Literal["asc", "desc"] = "asc"
    limit: int = Field(default=20, ge=1, le=50)


@registry.tool("getEvents", "List events (optional filters).", EventsInput)
async def get_events(args: EventsInput, ctx: RunContext):
    session = session_of(ctx)
    user_id = session.user.id if session else None
    now = datetime.now(timezone.utc)

    query = ctx.db.query(Event)
    if args.search:
        query = query.filter(contains(Event.name, args.search))
    if args.location:
        query = query.filter(contains(Event.location, args.location))
    if args.description:
        query = query.filter(contains(Event.description, args.description))
    if args.day:
        start, end = _day_bounds(args.day)
        query = query.filter(Event.start_date >= start, Event.start_date < end)
    elif args.upcoming_only:
        query = query.filter(Event.start_date >= now)
    if not session:
        query = query.filter(Event.is_public.is_(True))

    query = _ordered(query, EVENT_SORT_COLUMNS[args.sort_by], args.sort_order)
    rows = query.limit(args.limit).all()

    joined_ids = set()
    if user_id and rows:
        joined_ids = {
            event_id for (event_id,) in ctx.db.query(EventParticipant.event_id).filter(
                EventParticipant.user_id == user_id,
                EventParticipant.event_id.in_([e.id for e in rows]),
            )
        }

    return [
        {
            "id": e.id,
            "name": e.name,
            "startDate": iso(e.start_date),
            "endDate": iso(e.end_date),
            "location": e.location,
            "isPublic": bool(e.is_public),
            "category": e.category.value,
            "joined": e.id in joined_ids,
            "startsInMs": _starts_in_ms(e.start_date, now),
        }
        for e in rows
    ]


class MyEventsInput(ToolInput):
    role: Literal["joined", "created"] = "joined"
    limit: int = Field(default=20, ge=1, le=50)


@registry.tool("getMyEvents", "List events the current user joined or created.", MyEventsInput)
async def get_my_events(args: MyEventsInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    user_id = ctx.user_id
    now = datetime.now(timezone.utc)

    def summary(e: Event, created_by_me: bool) -> dict:
        return {
            "id": e.id,
            "name": e.name,
            "startDate": iso(e.start_date),
            "endDate": iso(e.end_date),
            "location": e.location,
            "category": e.category.value,
            "joined": True,
            "createdByMe": created_by_me,
            "startsInMs": _starts_in_ms(e.start_date, now),
        }

    if args.role == "created":
        rows = (
            ctx.db.query(Event)
            .filter(Event.created_by_id == user_id)
            .order_by(Event.start_date.asc())
            .limit(args.limit)
            .all()
        )
        return [summary(e, True) for e in rows]

    rows = (
        ctx.db.query(EventParticipant)
        .filter(EventParticipant.user_id == user_id)
        .order_by(EventParticipant.created_at.desc())
        .limit(args.limit)
        .all()
    )
    return [summary(p.event, p.event.created_by_id == user_id) for p in rows]


class EventParticipantsInput(ToolInput):
    event_id: str = Field(min_length=1)
    limit: int = Field(default=8, ge=1, le=24)


@registry.tool(
    "getEventParticipants", "List participants for an event (top N) + total count.", EventParticipantsInput,
)
async def get_event_participants(args: EventParticipantsInput, ctx: RunContext):
    async def load():
        rows = (
            ctx.db.query(EventParticipant)
            .filter(EventParticipant.event_id == args.event_id)
            .order_by(EventParticipant.created_at.asc())
            .limit(args.limit)
            .all()
        )
        total = (
            ctx.db.query(func.count(EventParticipant.id))
            .filter(EventParticipant.event_id == args.event_id)
            .scalar()
        )
        return {
            "total": total or 0,
            "participants": [
                {"id": p.user.id, "name": p.user.name, "image": p.user.image}
                for p in rows
                if p.user is not None
            ],
        }

    return await from_cache(ctx, CacheKey.event_participants(args.event_id, args.limit), load)


@registry.tool("getStats", "Quick stats (counts) for dashboard-ish summaries.", NoInput)
async def get_stats(args: NoInput, ctx: RunContext):
    return {
        "events": ctx.db.query(func.count(Event.id)).scalar() or 0,
        "goodies": ctx.db.query(func.count(Goodie.id)).scalar() or 0,
        "votes": ctx.db.query(func.count(GoodieVote.id)).scalar() or 0,
    }


# ============== Goodies ==============

def _goodie_summary(g: Goodie, collected: bool) -> dict:
    return {
        "id": g.id,
        "name": g.name,
        "type": g.type.value,
        "location": g.location,
        "date": iso(g.date),
        "collected": collected,
    }


class MyGoodiesInput(ToolInput):
    role: Literal["collected", "created"] = "collected"
    limit: int = Field(default=20, ge=1, le=50)


@registry.tool("getMyGoodies", "List goodies collected/created by current user.", MyGoodiesInput)
async def get_my_goodies(args: MyGoodiesInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    user_id = ctx.user_id

    if args.role == "created":
        rows = (
            ctx.db.query(Goodie)
            .filter(Goodie.created_by_id == user_id)
            .order_by(Goodie.created_at.desc())
            .limit(args.limit)
            .all()
        )
        collected_ids = {
            goodie_id for (goodie_id,) in ctx.db.query(GoodieCollection.goodie_id).filter(
                GoodieCollection.user_id == user_id,
            )
        }
        return [_goodie_summary(g, g.id in collected_ids) for g in rows]

    rows = (
        ctx.db.query(GoodieCollection)
        .filter(GoodieCollection.user_id == user_id)
        .order_by(GoodieCollection.collected_at.desc())
        .limit(args.limit)
        .all()
    )
    return [_goodie_summary(c.goodie, True) for c in rows]


class GoodiesInput(ToolInput):
    type: Optional[GoodieType] = None
    collected_only: Optional[bool] = None
    search: Optional[str] = Field(default=None, min_length=1, max_length=200)
    location: Optional[str] = Field(default=None, min_length=1, max_length=200)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    day: Optional[date] = None
    sort_by: Literal["createdAt", "date", "name"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=50)


@registry.tool("getGoodies", "List goodies (optional filters).", GoodiesInput)
async def get_goodies(args: GoodiesInput, ctx: RunContext):
    if args.collected_only:
        err = assert_auth_session(ctx)
        if err:
            return err
    user_id = ctx.user_id

    query = ctx.db.query(Goodie)
    if args.type:
        query = query.filter(Goodie.type == args.type)
    if args.search:
        query = query.filter(or_(contains(Goodie.name, args.search), contains(Goodie.instructions, args.search)))
    if args.location:
        query = query.filter(contains(Goodie.location, args.location))
    if args.day:
        start, end = _day_bounds(args.day)
        query = query.filter(Goodie.date >= start, Goodie.date < end)
    else:
        if args.date_from:
            query = query.filter(Goodie.date >= as_utc(args.date_from))
        if args.date_to:
            query = query.filter(Goodie.date <= as_utc(args.date_to))
    if args.collected_only:
        query = query.filter(Goodie.collections.any(GoodieCollection.user_id == user_id))

    query = _ordered(query, GOODIE_SORT_COLUMNS[args.sort_by], args.sort_order)
    rows = query.limit(args.limit).all()

    collected_ids = set()
    if user_id and rows:
        collected_ids = {
            goodie_id for (goodie_id,) in ctx.db.query(GoodieCollection.goodie_id).filter(
                GoodieCollection.user_id == user_id,
                GoodieCollection.goodie_id.in_([g.id for g in rows]),
            )
        }
    return [_goodie_summary(g, g.id in collected_ids) for g in rows]
