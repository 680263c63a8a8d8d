from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from planner.auth import get_user_id
from planner.database import get_db
from planner.schemas import AdminManageRequest
from planner.services import users as user_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/is-admin")
def is_admin(
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return {"isAdmin": user_service.is_admin(db, user_id)}


@router.get("/users")
def list_users(
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, user_id)


@router.delete("/users/{target_id}")
async def delete_user(
    request: Request,
    target_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Delete a non-admin user and everything they created."""
    return user_service.delete_user(db, user_id, target_id, request.app.state.hub)


@router.post("/manage")
def manage_admin(data: AdminManageRequest, db: Session = Depends(get_db)):
    """Promote or demote a user by email. Authorized by the management key, not a session."""
    return user_service.manage_admin(db, data.email, data.key, data.action)
