"""
Goodie tracker actions: goodies, votes and collections.

Vote totals are never tracked in memory. Every vote write re-reads the
aggregate from the votes table inside the same transaction, so repeated votes
by one user can only ever count once.
"""

import base64
import binascii
import logging
import math
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from planner.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from planner.models import Goodie, GoodieCollection, GoodieVote, as_utc
from planner.schemas import GoodieCreate, GoodieUpdate
from planner.services.broadcast import BroadcastHub
from planner.services.messages import (
    GoodieChanged, GoodieCollected, GoodieDeleted, GoodieScore, GoodieUpdated, goodie_projection, to_wire,
)

logger = logging.getLogger(__name__)

# Sorting heuristic weights
PERSONAL_WEIGHT = 3
TOTAL_WEIGHT = 1
TIME_DECAY_HOURS = 8  # relevance falls off by 1/e every 8 hours away from now


def _publish(hub: Optional[BroadcastHub], message) -> None:
    if hub is not None:
        hub.publish(message)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def _decode_image(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInput("image_base64 is not valid base64")


def goodie_exists(db: Session, goodie_id: str) -> bool:
    return db.query(Goodie.id).filter(Goodie.id == goodie_id).first() is not None


def vote_totals(db: Session, goodie_id: str) -> tuple[int, int]:
    """(sum of vote values, number of votes) for a goodie."""
    total, count = (
        db.query(func.coalesce(func.sum(GoodieVote.value), 0), func.count(GoodieVote.id))
        .filter(GoodieVote.goodie_id == goodie_id)
        .one()
    )
    return int(total or 0), int(count or 0)


def collected_count(db: Session, goodie_id: str) -> int:
    return db.query(func.count(GoodieCollection.id)).filter(GoodieCollection.goodie_id == goodie_id).scalar() or 0


def _user_vote(db: Session, user_id: Optional[str], goodie_id: str) -> int:
    if not user_id:
        return 0
    vote = (
        db.query(GoodieVote.value)
        .filter(GoodieVote.user_id == user_id, GoodieVote.goodie_id == goodie_id)
        .first()
    )
    return vote[0] if vote else 0


def _is_collected(db: Session, user_id: Optional[str], goodie_id: str) -> bool:
    if not user_id:
        return False
    return db.query(GoodieCollection.id).filter(
        GoodieCollection.user_id == user_id, GoodieCollection.goodie_id == goodie_id,
    ).first() is not None


# ============== Read side ==============

def goodie_view(db: Session, goodie: Goodie, user_id: Optional[str] = None) -> dict:
    """Goodie projection decorated with score and the caller's vote/collection state."""
    total, _ = vote_totals(db, goodie.id)
    view = to_wire(goodie_projection(goodie, total_score=total))
    view.update({
        "date": view.get("date"),
        "registrationUrl": view.get("registrationUrl"),
        "userVote": _user_vote(db, user_id, goodie.id),
        "collected": _is_collected(db, user_id, goodie.id),
        "reminderEnabled": bool(goodie.reminder_enabled),
    })
    return view


def relevance(view: dict, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    ref = view.get("date") or view.get("createdAt")
    hours = (datetime.fromisoformat(ref) - now).total_seconds() / 3600 if ref else 0.0
    time_score = math.exp(-abs(hours) / TIME_DECAY_HOURS)
    return view["userVote"] * PERSONAL_WEIGHT + view["totalScore"] * TOTAL_WEIGHT + time_score


def list_goodies(db: Session, user_id: Optional[str]) -> list[dict]:
    """All goodies, most relevant to the caller first."""
    goodies = (
        db.query(Goodie)
        .options(joinedload(Goodie.created_by))
        .order_by(Goodie.created_at.desc())
        .all()
    )
    now = datetime.now(timezone.utc)
    views = [goodie_view(db, g, user_id) for g in goodies]
    views.sort(key=lambda v: relevance(v, now), reverse=True)
    return views


def get_goodie(db: Session, goodie_id: str) -> Optional[Goodie]:
    return db.query(Goodie).options(joinedload(Goodie.created_by)).filter(Goodie.id == goodie_id).first()


def goodie_image(db: Session, goodie_id: str) -> Optional[bytes]:
    row = db.query(Goodie.image_bytes).filter(Goodie.id == goodie_id).first()
    return row[0] if row and row[0] else None


# ============== Goodie mutations ==============

def _owned_goodie(db: Session, user_id: str, goodie_id: str) -> Goodie:
    goodie = get_goodie(db, goodie_id)
    if not goodie:
        raise NotFound("Goodie not found")
    if goodie.created_by_id != user_id:
        raise Forbidden()
    return goodie


def create_goodie(db: Session, user_id: Optional[str], data: GoodieCreate, hub: Optional[BroadcastHub] = None) -> Goodie:
    user_id = _require_user(user_id)
    goodie = Goodie(
        name=data.name,
        location=data.location,
        instructions=data.instructions,
        type=data.type,
        date=as_utc(data.date),
        registration_url=data.registration_url,
        image_bytes=_decode_image(data.image_base64) if data.image_base64 else None,
        created_by_id=user_id,
    )
    db.add(goodie)
    db.commit()
    goodie = get_goodie(db, goodie.id)
    logger.info("Goodie created: %s by %s", goodie.id, user_id)

    _publish(hub, GoodieChanged(type="goodie_created", goodie=goodie_projection(goodie, total_score=0)))
    return goodie


def update_goodie(
    db: Session, user_id: Optional[str], goodie_id: str, patch: GoodieUpdate, hub: Optional[BroadcastHub] = None,
) -> Goodie:
    user_id = _require_user(user_id)
    goodie = _owned_goodie(db, user_id, goodie_id)

    for field, value in patch.model_dump(exclude_unset=True).items():
        if field == "image_base64":
            goodie.image_bytes = _decode_image(value) if value else None
        elif value is None and field in ("name", "location", "instructions", "type", "reminder_enabled"):
            continue
        elif field == "date":
            goodie.date = as_utc(value)
        else:
            setattr(goodie, field, value)
    db.commit()
    db.refresh(goodie)

    _publish(hub, GoodieChanged(
        type="goodie_edited", goodie=goodie_projection(goodie, with_creator=False),
    ))
    return goodie


def delete_goodie(db: Session, user_id: Optional[str], goodie_id: str, hub: Optional[BroadcastHub] = None) -> dict:
    user_id = _require_user(user_id)
    goodie = _owned_goodie(db, user_id, goodie_id)
    db.delete(goodie)
    db.commit()
    logger.info("Goodie deleted: %s by %s", goodie_id, user_id)

    _publish(hub, GoodieDeleted(id=goodie_id))
    return {"ok": True}


# ============== Votes ==============

def vote_goodie(
    db: Session, user_id: Optional[str], goodie_id: str, value: int, hub: Optional[BroadcastHub] = None,
) -> dict:
    """Upsert the caller's vote and recompute the aggregate in one transaction."""
    user_id = _require_user(user_id)
    if value not in (-1, 1):
        raise InvalidInput("value must be -1 or 1")
    if not goodie_exists(db, goodie_id):
        raise NotFound("Goodie not found")

    try:
        vote = (
            db.query(GoodieVote)
            .filter(GoodieVote.user_id == user_id, GoodieVote.goodie_id == goodie_id)
            .with_for_update()
            .first()
        )
        if vote:
            vote.value = value
        else:
            db.add(GoodieVote(user_id=user_id, goodie_id=goodie_id, value=value))
        db.flush()
        total, votes = vote_totals(db, goodie_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    _publish(hub, GoodieUpdated(goodie=GoodieScore(id=goodie_id, total_score=total)))
    return {"totalScore": total, "votes": votes}


def clear_vote(db: Session, user_id: Optional[str], goodie_id: str, hub: Optional[BroadcastHub] = None) -> dict:
    user_id = _require_user(user_id)
    if not goodie_exists(db, goodie_id):
        raise NotFound("Goodie not found")
    try:
        db.query(GoodieVote).filter(
            GoodieVote.user_id == user_id, GoodieVote.goodie_id == goodie_id,
        ).delete(synchronize_session=False)
        db.flush()
        total, votes = vote_totals(db, goodie_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    _publish(hub, GoodieUpdated(goodie=GoodieScore(id=goodie_id, total_score=total)))
    return {"totalScore": total, "votes": votes}


# ============== Collections ==============

def set_collected(
    db: Session, user_id: Optional[str], goodie_id: str, collected: bool, hub: Optional[BroadcastHub] = None,
) -> int:
    """Mark or unmark a goodie as collected by the caller. Returns the collector count."""
    user_id = _require_user(user_id)
    if not goodie_exists(db, goodie_id):
        raise NotFound("Goodie not found")
    if collected:
        if not _is_collected(db, user_id, goodie_id):
            db.add(GoodieCollection(user_id=user_id, goodie_id=goodie_id))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
    else:
        db.query(GoodieCollection).filter(
            GoodieCollection.user_id == user_id, GoodieCollection.goodie_id == goodie_id,
        ).delete(synchronize_session=False)
        db.commit()

    count = collected_count(db, goodie_id)
    _publish(hub, GoodieCollected(goodie_id=goodie_id, collected_count=count))
    return count


def toggle_collected(
    db: Session, user_id: Optional[str], goodie_id: str, hub: Optional[BroadcastHub] = None,
) -> tuple[bool, int]:
    """Flip the caller's collected state. Returns (new state, collector count)."""
    user_id = _require_user(user_id)
    collected = not _is_collected(db, user_id, goodie_id)
    count = set_collected(db, user_id, goodie_id, collected, hub)
    return collected, count
