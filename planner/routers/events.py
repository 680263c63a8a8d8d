from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from planner.auth import get_user_id
from planner.database import get_db
from planner.schemas import CommentCreate, EventCreate, EventUpdate
from planner.services import events as event_service
from planner.services.messages import event_projection, to_wire

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
def list_events(
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Published events grouped by day. Anonymous callers only see public events."""
    return event_service.list_published_events(db, user_id)


@router.post("", status_code=201)
async def create_event(
    request: Request,
    data: EventCreate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    event = event_service.create_event(db, user_id, data, request.app.state.hub)
    return to_wire(event_projection(event))


@router.put("/{event_id}")
async def update_event(
    request: Request,
    event_id: str,
    patch: EventUpdate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Update an event. Only its creator may do this."""
    event = event_service.update_event(db, user_id, event_id, patch, request.app.state.hub)
    return to_wire(event_projection(event))


@router.delete("/{event_id}")
async def delete_event(
    request: Request,
    event_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return event_service.delete_event(db, user_id, event_id, request.app.state.hub)


# ============== Participation ==============

@router.post("/{event_id}/join")
async def join_event(
    request: Request,
    event_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    attendees = event_service.join_event(db, user_id, event_id, request.app.state.hub)
    return {"ok": True, "attendees": attendees}


@router.delete("/{event_id}/join")
async def leave_event(
    request: Request,
    event_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    attendees = event_service.leave_event(db, user_id, event_id, request.app.state.hub)
    return {"ok": True, "attendees": attendees}


# ============== Comments ==============

@router.get("/{event_id}/comments")
def list_comments(
    event_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Comments on an event, newest first."""
    return event_service.list_comments(db, event_id, limit)


@router.post("/{event_id}/comments", status_code=201)
async def add_comment(
    request: Request,
    event_id: str,
    data: CommentCreate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    comment = event_service.add_comment(db, user_id, event_id, data.content, request.app.state.hub)
    return to_wire(comment)
