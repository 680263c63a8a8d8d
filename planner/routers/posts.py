from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from planner.auth import get_user_id
from planner.database import get_db
from planner.schemas import CommentCreate, PostCreate, PostUpdate
from planner.services import posts as post_service

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
def list_posts(db: Session = Depends(get_db)):
    """Newest posts first."""
    return post_service.list_posts(db)


@router.post("", status_code=201)
def create_post(
    data: PostCreate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    post = post_service.create_post(db, user_id, data)
    return post_service.post_view(post)


@router.get("/{post_id}")
def get_post(post_id: str, db: Session = Depends(get_db)):
    return post_service.get_post(db, post_id)


@router.put("/{post_id}")
def update_post(
    post_id: str,
    patch: PostUpdate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Edit a post. Its author or an admin may do this."""
    post = post_service.update_post(db, user_id, post_id, patch)
    return post_service.post_view(post)


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return post_service.delete_post(db, user_id, post_id)


@router.post("/{post_id}/like")
def toggle_like(
    post_id: str,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return {"liked": post_service.toggle_like(db, user_id, post_id)}


@router.get("/{post_id}/comments")
def list_post_comments(post_id: str, db: Session = Depends(get_db)):
    return post_service.list_post_comments(db, post_id)


@router.post("/{post_id}/comments", status_code=201)
def add_post_comment(
    post_id: str,
    data: CommentCreate,
    user_id: Optional[str] = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    comment = post_service.add_post_comment(db, user_id, post_id, data.content)
    return post_service.post_comment_view(comment)
