from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Enum, Boolean, LargeBinary, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum
import uuid

from planner.database import Base


def utcnow():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC. Naive values (SQLite drops tzinfo) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"


class EventCategory(str, enum.Enum):
    MEETUP = "MEETUP"
    EXPO = "EXPO"
    FOOD = "FOOD"
    PARTY = "PARTY"
    TRAVEL = "TRAVEL"
    TOURNAMENT = "TOURNAMENT"


class GoodieType(str, enum.Enum):
    GIFT = "GIFT"
    FOOD = "FOOD"
    DRINK = "DRINK"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    image = Column(String(500), nullable=True)
    is_admin = Column(Boolean, default=False)

    # Daily AI chat quota
    ai_usage_count = Column(Integer, default=0)
    ai_usage_limit = Column(Integer, nullable=True)  # None = settings default
    ai_usage_reset = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    auth_sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")


class AuthSession(Base):
    """Session rows written by the auth provider, read by the session resolver."""
    __tablename__ = "auth_sessions"

    token = Column(String(255), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="auth_sessions")


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=True, index=True)
    summary = Column(Text, nullable=True)
    description = Column(Text, nullable=False, default="")
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(500), nullable=True)
    url = Column(String(500), nullable=True)
    is_public = Column(Boolean, default=False)
    is_fixed = Column(Boolean, default=False)
    status = Column(Enum(EventStatus), default=EventStatus.PUBLISHED)
    category = Column(Enum(EventCategory), default=EventCategory.MEETUP)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    created_by = relationship("User")
    participants = relationship(
        "EventParticipant", back_populates="event", cascade="all, delete-orphan",
        order_by="EventParticipant.created_at",
    )
    comments = relationship("Comment", back_populates="event", cascade="all, delete-orphan")


class EventParticipant(Base):
    __tablename__ = "event_participants"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_participant_user_event"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User")
    event = relationship("Event", back_populates="participants")


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    created_by = relationship("User")
    event = relationship("Event", back_populates="comments")


class Goodie(Base):
    __tablename__ = "goodies"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    location = Column(String(500), nullable=False)
    instructions = Column(Text, nullable=False, default="")
    type = Column(Enum(GoodieType), nullable=False, default=GoodieType.GIFT)
    date = Column(DateTime(timezone=True), nullable=True)
    registration_url = Column(String(500), nullable=True)
    image_bytes = Column(LargeBinary, nullable=True)
    reminder_enabled = Column(Boolean, default=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    created_by = relationship("User")
    votes = relationship("GoodieVote", back_populates="goodie", cascade="all, delete-orphan")
    collections = relationship("GoodieCollection", back_populates="goodie", cascade="all, delete-orphan")


class GoodieVote(Base):
    __tablename__ = "goodie_votes"
    __table_args__ = (UniqueConstraint("user_id", "goodie_id", name="uq_vote_user_goodie"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    goodie_id = Column(String(36), ForeignKey("goodies.id"), nullable=False, index=True)
    value = Column(Integer, nullable=False)  # -1 or 1
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    goodie = relationship("Goodie", back_populates="votes")


class GoodieCollection(Base):
    __tablename__ = "goodie_collections"
    __table_args__ = (UniqueConstraint("user_id", "goodie_id", name="uq_collection_user_goodie"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    goodie_id = Column(String(36), ForeignKey("goodies.id"), nullable=False, index=True)
    collected_at = Column(DateTime(timezone=True), default=utcnow)

    goodie = relationship("Goodie", back_populates="collections")


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=new_id)
    content = Column(Text, nullable=False)
    image_url = Column(String(500), nullable=True)
    goodie_id = Column(String(36), ForeignKey("goodies.id", ondelete="SET NULL"), nullable=True)
    event_id = Column(String(36), ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    created_by = relationship("User")
    likes = relationship("PostLike", back_populates="post", cascade="all, delete-orphan")
    comments = relationship(
        "PostComment", back_populates="post", cascade="all, delete-orphan", order_by="PostComment.created_at",
    )
    tags = relationship("PostTag", back_populates="post", cascade="all, delete-orphan")


class PostLike(Base):
    __tablename__ = "post_likes"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_like_post_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    post_id = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    post = relationship("Post", back_populates="likes")


class PostComment(Base):
    __tablename__ = "post_comments"

    id = Column(String(36), primary_key=True, default=new_id)
    post_id = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    created_by = relationship("User")
    post = relationship("Post", back_populates="comments")


class PostTag(Base):
    """A user tagged in a post."""
    __tablename__ = "post_tags"
    __table_args__ = (UniqueConstraint("post_id", "user_id", name="uq_tag_post_user"),)

    id = Column(String(36), primary_key=True, default=new_id)
    post_id = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    post = relationship("Post", back_populates="tags")
