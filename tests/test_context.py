"""Tests for the tool execution context and the per-request cache."""

import asyncio

import pytest

from planner.auth import Session, SessionUser
from planner.chat.context import (
    UNRESOLVED, CacheKey, RunContext, assert_auth_session, ctx_of, from_cache, session_of,
)


class CountingLoader:
    def __init__(self, value="loaded"):
        self.calls = 0
        self.value = value

    async def __call__(self):
        self.calls += 1
        return self.value


class TestFromCache:
    def test_loads_once_per_key(self):
        ctx = RunContext(session=None, cache={})
        loader = CountingLoader()

        async def twice():
            return await from_cache(ctx, "k", loader), await from_cache(ctx, "k", loader)

        assert asyncio.run(twice()) == ("loaded", "loaded")
        assert loader.calls == 1
        assert ctx.cache == {"k": "loaded"}

    def test_distinct_keys_load_separately(self):
        ctx = RunContext(session=None, cache={})
        loader = CountingLoader()

        async def both():
            await from_cache(ctx, CacheKey.event("1"), loader)
            await from_cache(ctx, CacheKey.goodie("1"), loader)

        asyncio.run(both())
        assert loader.calls == 2

    def test_without_cache_always_loads(self):
        ctx = RunContext(session=None)
        loader = CountingLoader()

        async def twice():
            await from_cache(ctx, "k", loader)
            await from_cache(ctx, "k", loader)

        asyncio.run(twice())
        assert loader.calls == 2

    def test_failed_load_is_not_cached(self):
        ctx = RunContext(session=None, cache={})

        async def boom():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            asyncio.run(from_cache(ctx, "k", boom))
        assert "k" not in ctx.cache

        assert asyncio.run(from_cache(ctx, "k", CountingLoader("ok"))) == "ok"

    def test_cached_error_values_are_reused(self):
        ctx = RunContext(session=None, cache={})
        loader = CountingLoader({"error": "Event not found"})

        async def twice():
            await from_cache(ctx, "k", loader)
            return await from_cache(ctx, "k", loader)

        assert asyncio.run(twice()) == {"error": "Event not found"}
        assert loader.calls == 1


class TestCacheKey:
    def test_formats(self):
        assert CacheKey.event("abc") == "evt:abc"
        assert CacheKey.goodie("abc") == "good:abc"
        assert CacheKey.event_participants("abc", 8) == "evt:participants:abc:8"

    def test_participant_limits_do_not_collide(self):
        assert CacheKey.event_participants("abc", 8) != CacheKey.event_participants("abc", 12)


class TestCtxOf:
    def test_passes_context_through(self):
        ctx = RunContext(session=None)
        assert ctx_of(ctx) is ctx

    def test_extracts_from_options(self):
        ctx = RunContext(session=None)
        assert ctx_of({"context": ctx}) is ctx
        assert ctx_of({"experimental_context": ctx}) is ctx

    def test_missing_context_is_empty(self):
        ctx = ctx_of(None)
        assert ctx.cache is None
        assert session_of(ctx) is None


class TestSession:
    def test_auth_required_without_session(self):
        assert assert_auth_session(RunContext(session=None)) == {"error": "auth-required"}

    def test_passes_with_session(self):
        ctx = RunContext(session=Session(user=SessionUser(id="u1")))
        assert assert_auth_session(ctx) is None
        assert ctx.user_id == "u1"

    def test_lazy_resolution_happens_once(self, monkeypatch):
        calls = []

        def fake_resolve(headers, db=None):
            calls.append(headers)
            return Session(user=SessionUser(id="u9"))

        monkeypatch.setattr("planner.chat.context.resolve_session", fake_resolve)
        ctx = RunContext(headers={"authorization": "Bearer t"})
        assert ctx.session is UNRESOLVED

        assert session_of(ctx).user.id == "u9"
        assert session_of(ctx).user.id == "u9"
        assert len(calls) == 1

    def test_anonymous_resolution_is_remembered(self, monkeypatch):
        calls = []

        def fake_resolve(headers, db=None):
            calls.append(headers)
            return None

        monkeypatch.setattr("planner.chat.context.resolve_session", fake_resolve)
        ctx = RunContext(headers={"authorization": "Bearer nope"})

        assert assert_auth_session(ctx) == {"error": "auth-required"}
        assert assert_auth_session(ctx) == {"error": "auth-required"}
        assert len(calls) == 1
