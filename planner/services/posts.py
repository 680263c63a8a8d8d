"""
Community feed: posts, likes and post comments.

The feed is not part of the live broadcast channel; clients reload it. Post
authors and admins may edit or delete a post.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from planner.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from planner.models import Event, Goodie, Post, PostComment, PostLike, PostTag, User
from planner.schemas import PostCreate, PostUpdate
from planner.services.messages import iso, to_wire, user_projection

logger = logging.getLogger(__name__)

FEED_LIMIT = 50


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def _counts(db: Session, post_ids: list[str]) -> dict[str, dict]:
    counts = {pid: {"likes": 0, "comments": 0} for pid in post_ids}
    if not post_ids:
        return counts
    for pid, n in (
        db.query(PostLike.post_id, func.count(PostLike.id))
        .filter(PostLike.post_id.in_(post_ids))
        .group_by(PostLike.post_id)
    ):
        counts[pid]["likes"] = n
    for pid, n in (
        db.query(PostComment.post_id, func.count(PostComment.id))
        .filter(PostComment.post_id.in_(post_ids))
        .group_by(PostComment.post_id)
    ):
        counts[pid]["comments"] = n
    return counts


def post_view(post: Post, counts: Optional[dict] = None, with_creator: bool = True) -> dict:
    view = {
        "id": post.id,
        "content": post.content,
        "imageUrl": post.image_url,
        "goodieId": post.goodie_id,
        "eventId": post.event_id,
        "createdById": post.created_by_id,
        "createdAt": iso(post.created_at),
        "updatedAt": iso(post.updated_at),
    }
    if counts is not None:
        view["_count"] = counts
    if with_creator and post.created_by is not None:
        view["createdBy"] = to_wire(user_projection(post.created_by))
    return view


def post_comment_view(comment: PostComment) -> dict:
    view = {
        "id": comment.id,
        "postId": comment.post_id,
        "content": comment.content,
        "createdById": comment.created_by_id,
        "createdAt": iso(comment.created_at),
    }
    if comment.created_by is not None:
        view["createdBy"] = to_wire(user_projection(comment.created_by))
    return view


# ============== Read side ==============

def list_posts(db: Session, limit: int = FEED_LIMIT) -> list[dict]:
    """Newest posts first, with like and comment counts."""
    posts = (
        db.query(Post)
        .options(joinedload(Post.created_by))
        .order_by(Post.created_at.desc())
        .limit(limit)
        .all()
    )
    counts = _counts(db, [p.id for p in posts])
    return [post_view(p, counts[p.id]) for p in posts]


def get_post(db: Session, post_id: str) -> dict:
    post = (
        db.query(Post)
        .options(joinedload(Post.created_by), joinedload(Post.comments).joinedload(PostComment.created_by))
        .filter(Post.id == post_id)
        .first()
    )
    if not post:
        raise NotFound("Post not found")
    view = post_view(post, _counts(db, [post.id])[post.id])
    view["comments"] = [post_comment_view(c) for c in post.comments]
    return view


def list_post_comments(db: Session, post_id: str) -> list[dict]:
    if not db.query(Post.id).filter(Post.id == post_id).first():
        raise NotFound("Post not found")
    comments = (
        db.query(PostComment)
        .options(joinedload(PostComment.created_by))
        .filter(PostComment.post_id == post_id)
        .order_by(PostComment.created_at.asc())
        .all()
    )
    return [post_comment_view(c) for c in comments]


# ============== Mutations ==============

def _editable_post(db: Session, user_id: str, post_id: str) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise NotFound("Post not found")
    if post.created_by_id != user_id:
        is_admin = db.query(User.is_admin).filter(User.id == user_id).scalar()
        if not is_admin:
            raise Forbidden()
    return post


def create_post(db: Session, user_id: Optional[str], data: PostCreate) -> Post:
    user_id = _require_user(user_id)
    if data.goodie_id and not db.query(Goodie.id).filter(Goodie.id == data.goodie_id).first():
        raise InvalidInput("goodie_id does not exist")
    if data.event_id and not db.query(Event.id).filter(Event.id == data.event_id).first():
        raise InvalidInput("event_id does not exist")

    post = Post(
        content=data.content,
        image_url=data.image_url,
        goodie_id=data.goodie_id,
        event_id=data.event_id,
        created_by_id=user_id,
    )
    tagged = set(data.tagged_user_ids)
    if tagged:
        known = {uid for (uid,) in db.query(User.id).filter(User.id.in_(tagged))}
        post.tags = [PostTag(user_id=uid) for uid in sorted(known)]
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Post created: %s by %s", post.id, user_id)
    return post


def update_post(db: Session, user_id: Optional[str], post_id: str, patch: PostUpdate) -> Post:
    user_id = _require_user(user_id)
    post = _editable_post(db, user_id, post_id)
    for field, value in patch.model_dump(exclude_unset=True).items():
        if field == "content":
            if value is None or not value.strip():
                continue
            value = value.strip()
        setattr(post, field, value)
    db.commit()
    db.refresh(post)
    return post


def delete_post(db: Session, user_id: Optional[str], post_id: str) -> dict:
    user_id = _require_user(user_id)
    post = _editable_post(db, user_id, post_id)
    db.delete(post)
    db.commit()
    logger.info("Post deleted: %s by %s", post_id, user_id)
    return {"ok": True}


def toggle_like(db: Session, user_id: Optional[str], post_id: str) -> bool:
    """Like the post, or remove the caller's like. Returns the new liked state."""
    user_id = _require_user(user_id)
    if not db.query(Post.id).filter(Post.id == post_id).first():
        raise NotFound("Post not found")

    existing = db.query(PostLike).filter(PostLike.post_id == post_id, PostLike.user_id == user_id).first()
    if existing:
        db.delete(existing)
        db.commit()
        return False

    db.add(PostLike(post_id=post_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent like already landed
        db.rollback()
    return True


def add_post_comment(db: Session, user_id: Optional[str], post_id: str, content: str) -> PostComment:
    user_id = _require_user(user_id)
    content = (content or "").strip()
    if not content:
        raise InvalidInput("Content required")
    if not db.query(Post.id).filter(Post.id == post_id).first():
        raise NotFound("Post not found")

    comment = PostComment(post_id=post_id, content=content, created_by_id=user_id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return comment
