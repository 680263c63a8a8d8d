"""Resolvers: turn a loose name, slug or id into an entity id. Public, no auth."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from planner.chat.context import RunContext
from planner.chat.registry import ToolInput, registry
from planner.database import contains
from planner.models import Event, Goodie
from planner.services.messages import iso

CANDIDATE_POOL = 20


def rank(name: str, query: str) -> int:
    """100 exact, 80 prefix, 50 substring, 0 otherwise (case-insensitive)."""
    n = name.lower()
    q = query.lower()
    if n == q:
        return 100
    if n.startswith(q):
        return 80
    if q in n:
        return 50
    return 0


def rank_matches(items: list[dict], query: str, limit: int) -> list[dict]:
    ranked = [{**item, "rank": rank(item["name"], query)} for item in items]
    # sorted() is stable, so equal ranks keep store order
    ranked = sorted(ranked, key=lambda i: i["rank"], reverse=True)
    return ranked[:limit]


class IdInput(ToolInput):
    id: str = Field(min_length=1)


class SlugInput(ToolInput):
    slug: str = Field(min_length=1)


class EventNameInput(ToolInput):
    query: str = Field(min_length=1, max_length=200)
    limit: int = Field(default=3, ge=1, le=5)
    upcoming_only: Optional[bool] = None


class GoodieNameInput(ToolInput):
    query: str = Field(min_length=1, max_length=200)
    limit: int = Field(default=3, ge=1, le=5)


@registry.tool("resolveEventById", "Resolve event by ID (light).", IdInput)
async def resolve_event_by_id(args: IdInput, ctx: RunContext):
    event = ctx.db.query(Event).filter(Event.id == args.id).first()
    if not event:
        return {"error": "Event not found"}
    return {"id": event.id, "name": event.name, "slug": event.slug}


@registry.tool("resolveEventBySlug", "Resolve a single event by slug.", SlugInput)
async def resolve_event_by_slug(args: SlugInput, ctx: RunContext):
    event = ctx.db.query(Event).filter(Event.slug == args.slug).first()
    if not event:
        return {"error": "Event not found"}
    return {"id": event.id, "name": event.name, "slug": event.slug}


@registry.tool("resolveEventByName", "Resolve events by (partial) name (limit 3).", EventNameInput)
async def resolve_event_by_name(args: EventNameInput, ctx: RunContext):
    query = ctx.db.query(Event).filter(contains(Event.name, args.query))
    if args.upcoming_only:
        query = query.filter(Event.start_date >= datetime.now(timezone.utc))
    events = query.order_by(Event.start_date.asc()).limit(CANDIDATE_POOL).all()
    items = [
        {
            "id": e.id,
            "name": e.name,
            "slug": e.slug,
            "startDate": iso(e.start_date),
            "location": e.location,
            "category": e.category.value,
        }
        for e in events
    ]
    return rank_matches(items, args.query, args.limit)


@registry.tool("resolveGoodieById", "Resolve goodie by ID (light).", IdInput)
async def resolve_goodie_by_id(args: IdInput, ctx: RunContext):
    goodie = ctx.db.query(Goodie).filter(Goodie.id == args.id).first()
    if not goodie:
        return {"error": "Goodie not found"}
    return {"id": goodie.id, "name": goodie.name}


@registry.tool("resolveGoodieBySlug", "Resolve a single goodie by slug (its exact name).", SlugInput)
async def resolve_goodie_by_slug(args: SlugInput, ctx: RunContext):
    # Goodies have no slug column; the exact name stands in for it
    goodie = ctx.db.query(Goodie).filter(Goodie.name == args.slug).first()
    if not goodie:
        return {"error": "Goodie not found"}
    return {"id": goodie.id, "name": goodie.name}


@registry.tool("resolveGoodieByName", "Resolve goodies by (partial) name (limit 3).", GoodieNameInput)
async def resolve_goodie_by_name(args: GoodieNameInput, ctx: RunContext):
    goodies = (
        ctx.db.query(Goodie)
        .filter(contains(Goodie.name, args.query))
        .order_by(Goodie.name.asc())
        .limit(CANDIDATE_POOL)
        .all()
    )
    items = [{"id": g.id, "name": g.name} for g in goodies]
    return rank_matches(items, args.query, args.limit)
