from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from planner.auth import get_user_id
from planner.database import get_db
from planner.schemas import CommentUpdate
from planner.services import events as event_service
from planner.services.messages import to_wire

router = APIRouter(prefix="/comments", tags=["comments"])


@router.put("/{comment_id}")
async def update_comment(
    request: Request,
    comment_id: str,
    data: CommentUpdate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Edit a comment. Only its author may do this."""
    comment = event_service.update_comment(db, user_id, comment_id, data.content, request.app.state.hub)
    return to_wire(comment)


@router.delete("/{comment_id}")
async def delete_comment(
    request: Request,
    comment_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return event_service.delete_comment(db, user_id, comment_id, request.app.state.hub)
