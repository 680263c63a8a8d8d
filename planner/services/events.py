"""
Event planner actions: events, participation and comments.

Each mutation follows the same shape: authorize, write, commit, then publish
the change on the broadcast hub. Authorization failures raise the errors in
``planner.errors``; callers decide how to present them.
"""

import logging
import re
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from planner.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from planner.models import Comment, Event, EventParticipant, EventStatus, as_utc
from planner.schemas import EventCreate, EventUpdate
from planner.services.broadcast import BroadcastHub
from planner.services.messages import (
    CommentChanged, CommentDeleted, CommentProjection, EventChanged, EventDeleted, ParticipantChanged,
    comment_projection, event_projection, iso, to_wire,
)

logger = logging.getLogger(__name__)

CARD_PARTICIPANTS = 8
DESCRIPTION_PREVIEW = 240
REQUIRED_EVENT_FIELDS = {"name", "start_date", "end_date", "status", "category", "is_public", "is_fixed"}


def _publish(hub: Optional[BroadcastHub], message) -> None:
    if hub is not None:
        hub.publish(message)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def _owned_event(db: Session, user_id: str, event_id: str) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFound("Event not found")
    if event.created_by_id != user_id:
        raise Forbidden()
    return event


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "event"


def _unique_slug(db: Session, name: str) -> str:
    base = slugify(name)
    slug = base
    n = 2
    while db.query(Event.id).filter(Event.slug == slug).first():
        slug = f"{base}-{n}"
        n += 1
    return slug


def count_attendees(db: Session, event_id: str) -> int:
    return db.query(func.count(EventParticipant.id)).filter(EventParticipant.event_id == event_id).scalar() or 0


# ============== Read side ==============

def event_card(event: Event, user_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    """Card view of an event with attendee count and the caller's join state."""
    now = now or datetime.now(timezone.utc)
    start = as_utc(event.start_date)
    participants = list(event.participants)
    description = event.summary or (event.description[:DESCRIPTION_PREVIEW] if event.description else None)
    return {
        "id": event.id,
        "title": event.name,
        "slug": event.slug,
        "time": start.strftime("%H:%M"),
        "dateISO": start.strftime("%Y-%m-%d"),
        "location": event.location,
        "url": event.url,
        "description": description,
        "attendees": len(participants),
        "userJoined": bool(user_id and any(p.user_id == user_id for p in participants)),
        "startDate": iso(event.start_date),
        "endDate": iso(event.end_date),
        "startsInMs": int((start - now).total_seconds() * 1000),
        "createdById": event.created_by_id,
        "createdBy": (
            {"name": event.created_by.name, "image": event.created_by.image}
            if event.created_by else None
        ),
        "category": event.category.value,
        "isPublic": bool(event.is_public),
        "participants": [
            {"id": p.user.id, "name": p.user.name, "image": p.user.image}
            for p in participants[:CARD_PARTICIPANTS]
            if p.user is not None
        ],
    }


def get_event(db: Session, event_id: str) -> Optional[Event]:
    return (
        db.query(Event)
        .options(
            joinedload(Event.created_by),
            joinedload(Event.participants).joinedload(EventParticipant.user),
        )
        .filter(Event.id == event_id)
        .first()
    )


def list_published_events(db: Session, user_id: Optional[str]) -> list[dict]:
    """Published events grouped into day buckets, anonymous callers only see public ones."""
    query = (
        db.query(Event)
        .options(
            joinedload(Event.created_by),
            joinedload(Event.participants).joinedload(EventParticipant.user),
        )
        .filter(Event.status == EventStatus.PUBLISHED)
    )
    if not user_id:
        query = query.filter(Event.is_public.is_(True))
    events = query.order_by(Event.start_date.asc()).all()

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    for event in events:
        card = event_card(event, user_id)
        bucket = buckets.get(card["dateISO"])
        if bucket is None:
            bucket = {
                "dateISO": card["dateISO"],
                "dayLabel": as_utc(event.start_date).strftime("%b %d"),
                "events": [],
                "isAuthenticated": bool(user_id),
            }
            buckets[card["dateISO"]] = bucket
        bucket["events"].append(card)

    result = sorted(buckets.values(), key=lambda b: b["dateISO"])
    for bucket in result:
        bucket["events"].sort(key=lambda e: e["time"])
    return result


# ============== Event mutations ==============

def create_event(db: Session, user_id: Optional[str], data: EventCreate, hub: Optional[BroadcastHub] = None) -> Event:
    user_id = _require_user(user_id)
    if as_utc(data.end_date) < as_utc(data.start_date):
        raise InvalidInput("end_date must not be before start_date")

    event = Event(
        name=data.name,
        slug=_unique_slug(db, data.name),
        summary=data.summary,
        description=data.description or "",
        start_date=as_utc(data.start_date),
        end_date=as_utc(data.end_date),
        location=data.location,
        url=data.url,
        is_public=data.is_public,
        is_fixed=data.is_fixed,
        status=data.status,
        category=data.category,
        created_by_id=user_id,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Event created: %s by %s", event.id, user_id)

    _publish(hub, EventChanged(type="event_created", event=event_projection(event)))
    return event


def update_event(
    db: Session, user_id: Optional[str], event_id: str, patch: EventUpdate, hub: Optional[BroadcastHub] = None,
) -> Event:
    user_id = _require_user(user_id)
    event = _owned_event(db, user_id, event_id)

    for field, value in patch.model_dump(exclude_unset=True).items():
        if value is None and field in REQUIRED_EVENT_FIELDS:
            continue
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(event, field, value)
    if as_utc(event.end_date) < as_utc(event.start_date):
        db.rollback()
        raise InvalidInput("end_date must not be before start_date")

    db.commit()
    db.refresh(event)

    _publish(hub, EventChanged(type="event_updated", event=event_projection(event)))
    return event


def delete_event(db: Session, user_id: Optional[str], event_id: str, hub: Optional[BroadcastHub] = None) -> dict:
    user_id = _require_user(user_id)
    event = _owned_event(db, user_id, event_id)
    db.delete(event)
    db.commit()
    logger.info("Event deleted: %s by %s", event_id, user_id)

    _publish(hub, EventDeleted(id=event_id))
    return {"ok": True}


# ============== Participation ==============

def join_event(db: Session, user_id: Optional[str], event_id: str, hub: Optional[BroadcastHub] = None) -> int:
    """Join an event; joining twice is a no-op. Returns the fresh attendee count."""
    user_id = _require_user(user_id)
    if not db.query(Event.id).filter(Event.id == event_id).first():
        raise NotFound("Event not found")

    exists = (
        db.query(EventParticipant.id)
        .filter(EventParticipant.user_id == user_id, EventParticipant.event_id == event_id)
        .first()
    )
    if not exists:
        db.add(EventParticipant(user_id=user_id, event_id=event_id))
        try:
            db.commit()
        except IntegrityError:
            # Concurrent join won the race on the unique constraint
            db.rollback()

    attendees = count_attendees(db, event_id)
    _publish(hub, ParticipantChanged(event_id=event_id, attendees=attendees))
    return attendees


def leave_event(db: Session, user_id: Optional[str], event_id: str, hub: Optional[BroadcastHub] = None) -> int:
    user_id = _require_user(user_id)
    if not db.query(Event.id).filter(Event.id == event_id).first():
        raise NotFound("Event not found")
    db.query(EventParticipant).filter(
        EventParticipant.user_id == user_id, EventParticipant.event_id == event_id,
    ).delete(synchronize_session=False)
    db.commit()

    attendees = count_attendees(db, event_id)
    _publish(hub, ParticipantChanged(event_id=event_id, attendees=attendees))
    return attendees


# ============== Comments ==============

def list_comments(db: Session, event_id: str, limit: Optional[int] = None) -> list[dict]:
    """Comments for an event, newest first."""
    query = (
        db.query(Comment)
        .options(joinedload(Comment.created_by))
        .filter(Comment.event_id == event_id)
        .order_by(Comment.created_at.desc())
    )
    if limit:
        query = query.limit(limit)
    return [to_wire(comment_projection(c)) for c in query.all()]


def _clean_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Content required")
    return content


def add_comment(
    db: Session, user_id: Optional[str], event_id: str, content: str, hub: Optional[BroadcastHub] = None,
) -> CommentProjection:
    user_id = _require_user(user_id)
    content = _clean_content(content)
    if not db.query(Event.id).filter(Event.id == event_id).first():
        raise NotFound("Event not found")

    comment = Comment(event_id=event_id, content=content, created_by_id=user_id)
    db.add(comment)
    db.commit()
    db.refresh(comment)

    projection = comment_projection(comment)
    _publish(hub, CommentChanged(type="comment_created", event_id=event_id, comment=projection))
    return projection


def _owned_comment(db: Session, user_id: str, comment_id: str) -> Comment:
    comment = db.query(Comment).filter(Comment.id == comment_id).first()
    if not comment:
        raise NotFound("Comment not found")
    if comment.created_by_id != user_id:
        raise Forbidden()
    return comment


def update_comment(
    db: Session, user_id: Optional[str], comment_id: str, content: str, hub: Optional[BroadcastHub] = None,
) -> CommentProjection:
    user_id = _require_user(user_id)
    content = _clean_content(content)
    comment = _owned_comment(db, user_id, comment_id)
    comment.content = content
    db.commit()
    db.refresh(comment)

    projection = comment_projection(comment)
    _publish(hub, CommentChanged(type="comment_updated", event_id=comment.event_id, comment=projection))
    return projection


def delete_comment(db: Session, user_id: Optional[str], comment_id: str, hub: Optional[BroadcastHub] = None) -> dict:
    user_id = _require_user(user_id)
    comment = _owned_comment(db, user_id, comment_id)
    event_id = comment.event_id
    db.delete(comment)
    db.commit()

    _publish(hub, CommentDeleted(event_id=event_id, comment_id=comment_id))
    return {"ok": True}
