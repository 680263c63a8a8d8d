"""
Admin user management: listing, deleting and promoting users.

Deleting a user removes everything they own or contributed, then publishes the
resulting deletions and fresh counters so live clients stay in step with the
store.
"""

import hmac
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from planner.config import get_settings
from planner.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from planner.models import (
    AuthSession, Comment, Event, EventParticipant, Goodie, GoodieCollection, GoodieVote, Post, PostComment,
    PostLike, PostTag, User,
)
from planner.services.broadcast import BroadcastHub
from planner.services.events import count_attendees
from planner.services.goodies import collected_count, vote_totals
from planner.services.messages import (
    EventDeleted, GoodieCollected, GoodieDeleted, GoodieScore, GoodieUpdated, ParticipantChanged, iso,
)

logger = logging.getLogger(__name__)


def _publish(hub: Optional[BroadcastHub], message) -> None:
    if hub is not None:
        hub.publish(message)


def _require_admin(db: Session, user_id: Optional[str]) -> User:
    if not user_id:
        raise Unauthorized()
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_admin:
        raise Forbidden("Admin only")
    return user


def is_admin(db: Session, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return bool(db.query(User.is_admin).filter(User.id == user_id).scalar())


def user_summary(user: User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "isAdmin": bool(user.is_admin)}


def list_users(db: Session, user_id: Optional[str]) -> list[dict]:
    """All users, newest first, with the time of their latest session."""
    _require_admin(db, user_id)
    last_session = (
        db.query(AuthSession.user_id, func.max(AuthSession.created_at).label("last_at"))
        .group_by(AuthSession.user_id)
        .subquery()
    )
    rows = (
        db.query(User, last_session.c.last_at)
        .outerjoin(last_session, last_session.c.user_id == User.id)
        .order_by(User.created_at.desc())
        .all()
    )
    return [
        {**user_summary(user), "createdAt": iso(user.created_at), "lastSessionAt": iso(last_at)}
        for user, last_at in rows
    ]


def delete_user(db: Session, user_id: Optional[str], target_id: str, hub: Optional[BroadcastHub] = None) -> dict:
    admin = _require_admin(db, user_id)
    if target_id == admin.id:
        raise InvalidInput("Cannot delete your own user here")
    target = db.query(User).filter(User.id == target_id).first()
    if not target:
        raise NotFound("User not found")
    if target.is_admin:
        raise Forbidden("Cannot delete an admin user")

    owned_events = db.query(Event).filter(Event.created_by_id == target_id).all()
    owned_goodies = db.query(Goodie).filter(Goodie.created_by_id == target_id).all()
    removed_events = {e.id for e in owned_events}
    removed_goodies = {g.id for g in owned_goodies}

    joined = {eid for (eid,) in db.query(EventParticipant.event_id).filter(EventParticipant.user_id == target_id)}
    voted = {gid for (gid,) in db.query(GoodieVote.goodie_id).filter(GoodieVote.user_id == target_id)}
    collected = {
        gid for (gid,) in db.query(GoodieCollection.goodie_id).filter(GoodieCollection.user_id == target_id)
    }

    for post in db.query(Post).filter(Post.created_by_id == target_id).all():
        db.delete(post)
    for item in owned_events + owned_goodies:
        db.delete(item)
    db.flush()

    db.query(EventParticipant).filter(EventParticipant.user_id == target_id).delete(synchronize_session=False)
    db.query(Comment).filter(Comment.created_by_id == target_id).delete(synchronize_session=False)
    db.query(GoodieVote).filter(GoodieVote.user_id == target_id).delete(synchronize_session=False)
    db.query(GoodieCollection).filter(GoodieCollection.user_id == target_id).delete(synchronize_session=False)
    db.query(PostLike).filter(PostLike.user_id == target_id).delete(synchronize_session=False)
    db.query(PostComment).filter(PostComment.created_by_id == target_id).delete(synchronize_session=False)
    db.query(PostTag).filter(PostTag.user_id == target_id).delete(synchronize_session=False)
    db.delete(target)
    db.commit()
    logger.info("User deleted: %s by admin %s", target_id, admin.id)

    for event_id in sorted(removed_events):
        _publish(hub, EventDeleted(id=event_id))
    for goodie_id in sorted(removed_goodies):
        _publish(hub, GoodieDeleted(id=goodie_id))
    for event_id in sorted(joined - removed_events):
        _publish(hub, ParticipantChanged(event_id=event_id, attendees=count_attendees(db, event_id)))
    for goodie_id in sorted(voted - removed_goodies):
        total, _ = vote_totals(db, goodie_id)
        _publish(hub, GoodieUpdated(goodie=GoodieScore(id=goodie_id, total_score=total)))
    for goodie_id in sorted(collected - removed_goodies):
        _publish(hub, GoodieCollected(goodie_id=goodie_id, collected_count=collected_count(db, goodie_id)))
    return {"ok": True}


def manage_admin(db: Session, email: str, key: str, action: str) -> dict:
    """Promote or demote a user by email, authorized by the management key."""
    expected = get_settings().admin_management_key
    if not expected or not hmac.compare_digest(key.encode(), expected.encode()):
        raise Unauthorized("Invalid admin key")

    user = db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
    if not user:
        raise NotFound("User not found")

    promote = action == "promote"
    if bool(user.is_admin) == promote:
        state = "already an admin" if promote else "already not an admin"
        return {"message": f"User is {state}", "user": user_summary(user), "action": "no_change"}

    user.is_admin = promote
    db.commit()
    db.refresh(user)
    logger.info("User %s %s", user.id, "promoted to admin" if promote else "demoted from admin")
    verb = "promoted to" if promote else "demoted from"
    return {"message": f"User {verb} admin successfully", "user": user_summary(user), "action": action}
