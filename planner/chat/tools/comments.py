"""Comment tools."""

from pydantic import Field

from planner.chat.context import RunContext, assert_auth_session
from planner.chat.registry import ToolInput, registry
from planner.errors import Forbidden, NotFound
from planner.services import events as event_service
from planner.services.messages import to_wire


class ListCommentsInput(ToolInput):
    event_id: str = Field(min_length=1)
    limit: int = Field(default=20, ge=1, le=50)


class CreateCommentInput(ToolInput):
    event_id: str = Field(min_length=1)
    content: str = Field(min_length=1, max_length=2000)


class DeleteCommentInput(ToolInput):
    comment_id: str = Field(min_length=1)


@registry.tool("listEventComments", "List comments for an event (newest first).", ListCommentsInput)
async def list_event_comments(args: ListCommentsInput, ctx: RunContext):
    return event_service.list_comments(ctx.db, args.event_id, args.limit)


@registry.tool("createEventComment", "Create a comment on an event (requires auth).", CreateCommentInput)
async def create_event_comment(args: CreateCommentInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        comment = event_service.add_comment(ctx.db, ctx.user_id, args.event_id, args.content, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    return {"eventId": args.event_id, **to_wire(comment)}


@registry.tool("deleteMyEventComment", "Delete my own comment by id (requires auth).", DeleteCommentInput)
async def delete_my_event_comment(args: DeleteCommentInput, ctx: RunContext):
    err = assert_auth_session(ctx)
    if err:
        return err
    try:
        return event_service.delete_comment(ctx.db, ctx.user_id, args.comment_id, ctx.hub)
    except NotFound:
        return {"error": "not-found"}
    except Forbidden:
        return {"error": "forbidden"}
