from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Literal, Optional
from planner.models import EventCategory, EventStatus, GoodieType


# ============== Event Schemas ==============

class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    summary: Optional[str] = None
    start_date: datetime
    end_date: datetime
    location: Optional[str] = None
    url: Optional[str] = None
    is_public: bool = False
    is_fixed: bool = False
    status: EventStatus = EventStatus.PUBLISHED
    category: EventCategory = EventCategory.MEETUP


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    summary: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    url: Optional[str] = None
    is_public: Optional[bool] = None
    is_fixed: Optional[bool] = None
    status: Optional[EventStatus] = None
    category: Optional[EventCategory] = None


# ============== Comment Schemas ==============

class CommentCreate(BaseModel):
    content: str = Field(max_length=2000)

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Content required")
        return v


class CommentUpdate(CommentCreate):
    pass


# ============== Post Schemas ==============

class PostCreate(CommentCreate):
    content: str = Field(max_length=5000)
    image_url: Optional[str] = None
    goodie_id: Optional[str] = None
    event_id: Optional[str] = None
    tagged_user_ids: list[str] = []


class PostUpdate(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    image_url: Optional[str] = None


# ============== Admin Schemas ==============

class AdminManageRequest(BaseModel):
    email: str = Field(min_length=1)
    key: str = Field(min_length=1)
    action: Literal["promote", "demote"]


# ============== Goodie Schemas ==============

class GoodieCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=500)
    instructions: str = ""
    type: GoodieType = GoodieType.GIFT
    date: Optional[datetime] = None
    registration_url: Optional[str] = None
    image_base64: Optional[str] = None


class GoodieUpdate(BaseModel):
    """Fields left out stay untouched; ``image_base64: null`` clears the image."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    location: Optional[str] = None
    instructions: Optional[str] = None
    type: Optional[GoodieType] = None
    date: Optional[datetime] = None
    registration_url: Optional[str] = None
    image_base64: Optional[str] = None
    reminder_enabled: Optional[bool] = None


class VoteRequest(BaseModel):
    value: Literal[-1, 1]


class CollectRequest(BaseModel):
    collected: bool


# ============== Chat Schemas ==============

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


class ToolCallRequest(BaseModel):
    arguments: dict = {}
