"""
Broadcast messages and the projections they carry.

Every domain mutation that clients should see live is described by one of the
message models below. REST actions and chat tools build their payloads with
the same projection helpers, so a WebSocket client and the assistant always
see the same ids and field names.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from planner.config import get_settings
from planner.models import Comment, Event, EventCategory, Goodie, GoodieType, User, as_utc

EVENTS_CHANNEL = "events:update"
GOODIES_CHANNEL = "goodies:update"


def iso(value: datetime | None) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ============== Projections ==============

class UserProjection(WireModel):
    id: str
    name: str
    image: Optional[str] = None


class EventProjection(WireModel):
    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    start_date: str
    end_date: str
    created_by_id: str
    category: EventCategory


class GoodieProjection(WireModel):
    id: str
    name: str
    location: str
    instructions: str
    type: GoodieType
    date: Optional[str] = None
    registration_url: Optional[str] = None
    image_url: Optional[str] = None
    total_score: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[UserProjection] = None


class GoodieScore(WireModel):
    id: str
    total_score: int


class CommentProjection(WireModel):
    id: str
    content: str
    created_at: str
    created_by_id: str
    created_by: Optional[UserProjection] = None


# ============== Messages ==============

class EventChanged(WireModel):
    type: Literal["event_created", "event_updated"]
    event: EventProjection


class EventDeleted(WireModel):
    type: Literal["event_deleted"] = "event_deleted"
    id: str


class ParticipantChanged(WireModel):
    type: Literal["participant_changed"] = "participant_changed"
    event_id: str
    attendees: int


class GoodieChanged(WireModel):
    type: Literal["goodie_created", "goodie_edited"]
    goodie: GoodieProjection


class GoodieUpdated(WireModel):
    type: Literal["goodie_updated"] = "goodie_updated"
    goodie: GoodieScore


class GoodieDeleted(WireModel):
    type: Literal["goodie_deleted"] = "goodie_deleted"
    id: str


class GoodieCollected(WireModel):
    type: Literal["goodie_collected"] = "goodie_collected"
    goodie_id: str
    collected_count: int


class CommentChanged(WireModel):
    type: Literal["comment_created", "comment_updated"]
    event_id: str
    comment: CommentProjection


class CommentDeleted(WireModel):
    type: Literal["comment_deleted"] = "comment_deleted"
    event_id: str
    comment_id: str


BroadcastMessage = Annotated[
    Union[
        EventChanged, EventDeleted, ParticipantChanged,
        GoodieChanged, GoodieUpdated, GoodieDeleted, GoodieCollected,
        CommentChanged, CommentDeleted,
    ],
    Field(discriminator="type"),
]

MESSAGE_TYPES = get_args(get_args(BroadcastMessage)[0])


def to_wire(message: WireModel) -> dict:
    """Plain JSON-ready dict with camelCase keys."""
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)


def channel_for(message: WireModel) -> str:
    return GOODIES_CHANNEL if message.type.startswith("goodie_") else EVENTS_CHANNEL


# ============== Projection builders ==============

def user_projection(user: User | None) -> Optional[UserProjection]:
    if user is None:
        return None
    return UserProjection(id=user.id, name=user.name, image=user.image)


def event_projection(event: Event) -> EventProjection:
    return EventProjection(
        id=event.id,
        title=event.name,
        description=event.description,
        location=event.location,
        url=event.url,
        start_date=iso(event.start_date),
        end_date=iso(event.end_date),
        created_by_id=event.created_by_id,
        category=event.category,
    )


def goodie_image_url(goodie: Goodie) -> Optional[str]:
    if not goodie.image_bytes:
        return None
    return f"{get_settings().base_url.rstrip('/')}/api/goodies/{goodie.id}/image"


def goodie_projection(goodie: Goodie, total_score: int | None = None, with_creator: bool = True) -> GoodieProjection:
    return GoodieProjection(
        id=goodie.id,
        name=goodie.name,
        location=goodie.location,
        instructions=goodie.instructions,
        type=goodie.type,
        date=iso(goodie.date),
        registration_url=goodie.registration_url,
        image_url=goodie_image_url(goodie),
        total_score=total_score,
        created_at=iso(goodie.created_at),
        updated_at=iso(goodie.updated_at),
        created_by=user_projection(goodie.created_by) if with_creator else None,
    )


def comment_projection(comment: Comment) -> CommentProjection:
    return CommentProjection(
        id=comment.id,
        content=comment.content,
        created_at=iso(comment.created_at),
        created_by_id=comment.created_by_id,
        created_by=user_projection(comment.created_by),
    )
