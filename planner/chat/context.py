"""
Tool execution context.

One ``RunContext`` is built per chat request and shared by every tool call in
that request. It carries the resolved session, a per-request result cache, the
request id, and the collaborators tools need (database session, broadcast hub).
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from sqlalchemy.orm import Session as DbSession

from planner.auth import Session, resolve_session
from planner.services.broadcast import BroadcastHub

T = TypeVar("T")

# Marks "session not resolved yet", distinct from None (= anonymous)
UNRESOLVED: Any = object()


@dataclass
class RunContext:
    session: Optional[Session] = UNRESOLVED
    headers: Optional[Mapping[str, str]] = None
    cache: Optional[dict[str, Any]] = None
    request_id: Optional[str] = None
    db: Optional[DbSession] = None
    hub: Optional[BroadcastHub] = None

    @property
    def user_id(self) -> Optional[str]:
        session = session_of(self)
        return session.user.id if session else None


def ctx_of(options: Any) -> RunContext:
    """Pull the RunContext out of whatever a caller handed to a tool."""
    if isinstance(options, RunContext):
        return options
    if isinstance(options, Mapping):
        for key in ("context", "experimental_context"):
            value = options.get(key)
            if isinstance(value, RunContext):
                return value
    return RunContext()


def session_of(ctx: RunContext) -> Optional[Session]:
    """The context's session, resolving it from headers on first use."""
    if ctx.session is UNRESOLVED:
        ctx.session = resolve_session(ctx.headers, ctx.db) if ctx.headers else None
    return ctx.session


def assert_auth_session(ctx: RunContext) -> Optional[dict]:
    """``{"error": "auth-required"}`` for anonymous callers, else None."""
    if not session_of(ctx):
        return {"error": "auth-required"}
    return None


async def from_cache(ctx: RunContext, key: str, loader: Callable[[], Awaitable[T]]) -> T:
    """Return the cached value for ``key`` or load and store it.

    Without a cache the loader runs every time. A loader that raises leaves the
    key empty so the next call retries.
    """
    if ctx.cache is None:
        return await loader()
    if key in ctx.cache:
        return ctx.cache[key]
    value = await loader()
    ctx.cache[key] = value
    return value


class CacheKey:
    """Cache keys, one builder per query shape."""

    @staticmethod
    def event(event_id: str) -> str:
        return f"evt:{event_id}"

    @staticmethod
    def goodie(goodie_id: str) -> str:
        return f"good:{goodie_id}"

    @staticmethod
    def event_participants(event_id: str, limit: int) -> str:
        return f"evt:participants:{event_id}:{limit}"
