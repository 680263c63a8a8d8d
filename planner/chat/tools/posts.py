"""Community feed tools."""

from typing import Optional

from pydantic import Field

from planner.chat.context import RunContext, assert_auth_session
from planner.chat.registry import ToolInput, registry
from planner.errors import InvalidInput, NotFound
from planner.schemas import PostCreate
from planner.services import posts as post_service


class ListPostsInput(ToolInput):
    limit: int = Field(default=10, ge=1, le=50)


class CreatePostInput(ToolInput):
    content: str = Field(min_length=1, max_length=5000)
    image_url: Optional[str] = None


class PostActionInput(ToolInput):
    post_id: str = Field(min_length=1)


class AddPostCommentInput(PostActionInput):
    content: str = Field(min_length=1, max_length=2000)


@registry.tool("listPosts", "List recent community posts (newest first).", ListPostsInput)
async def list_posts(args: ListPostsInput, ctx: RunContext):
    return {"posts": post_service.list_posts(ctx.db, args.limit)}


@registry.tool("createPost", "Create a community post (requires auth).", CreatePostInput)
async def create_post(args: CreatePostInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    post = post_service.create_post(
        ctx.db, ctx.user_id, PostCreate(content=args.content, image_url=args.image_url),
    )
    return {"post": post_service.post_view(post)}


@registry.tool("likePost", "Like or unlike a post (requires auth).", PostActionInput)
async def like_post(args: PostActionInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        return {"liked": post_service.toggle_like(ctx.db, ctx.user_id, args.post_id)}
    except NotFound:
        return {"error": "not-found"}


@registry.tool("addPostComment", "Comment on a post (requires auth).", AddPostCommentInput)
async def add_post_comment(args: AddPostCommentInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        comment = post_service.add_post_comment(ctx.db, ctx.user_id, args.post_id, args.content)
    except NotFound:
        return {"error": "not-found"}
    except InvalidInput as e:
        return {"error": "invalid-input", "detail": e.detail}
    return {"comment": post_service.post_comment_view(comment)}
