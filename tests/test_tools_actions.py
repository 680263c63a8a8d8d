"""Tests for the mutating chat tools: auth gate, idempotency and broadcasts."""

import pytest
from sqlalchemy import func

from planner.models import Comment, EventParticipant, GoodieCollection, GoodieVote


def _row_counts(db):
    return {
        model.__name__: db.query(func.count(model.id)).scalar()
        for model in (EventParticipant, GoodieVote, GoodieCollection, Comment)
    }


class TestAuthGate:
    @pytest.mark.parametrize("name, args", [
        ("joinEvent", {"eventId": "EVENT"}),
        ("leaveEvent", {"eventId": "EVENT"}),
        ("voteGoodie", {"goodieId": "GOODIE", "value": 1}),
        ("clearGoodieVote", {"goodieId": "GOODIE"}),
        ("toggleCollectGoodie", {"goodieId": "GOODIE"}),
        ("createEventComment", {"eventId": "EVENT", "content": "hi"}),
        ("deleteMyEventComment", {"commentId": "COMMENT"}),
        ("getMyEvents", {}),
        ("getMyGoodies", {}),
    ])
    def test_anonymous_gets_auth_required_and_nothing_changes(
        self, name, args, db, create_event, create_goodie, create_user, tool_ctx, call_tool, recorder,
    ):
        event = create_event()
        goodie = create_goodie()
        author = create_user()
        comment = Comment(event_id=event.id, content="existing", created_by_id=author.id)
        db.add(comment)
        db.commit()
        ids = {"EVENT": event.id, "GOODIE": goodie.id, "COMMENT": comment.id}
        args = {k: ids.get(v, v) if isinstance(v, str) else v for k, v in args.items()}
        before = _row_counts(db)

        result = call_tool(name, args, tool_ctx())

        assert result == {"error": "auth-required"}
        assert _row_counts(db) == before
        assert recorder.messages == []


class TestJoinLeave:
    def test_join_then_leave_broadcasts_fresh_counts(self, create_event, create_user, tool_ctx, call_tool, recorder):
        event = create_event()
        ctx = tool_ctx(create_user())

        joined = call_tool("joinEvent", {"eventId": event.id}, ctx)
        left = call_tool("leaveEvent", {"eventId": event.id}, ctx)

        assert joined == {"ok": True, "attendees": 1}
        assert left == {"ok": True, "attendees": 0}
        assert recorder.of_type("participant_changed") == [
            {"type": "participant_changed", "eventId": event.id, "attendees": 1},
            {"type": "participant_changed", "eventId": event.id, "attendees": 0},
        ]

    def test_join_twice_counts_once(self, db, create_event, create_user, tool_ctx, call_tool):
        event = create_event()
        ctx = tool_ctx(create_user())

        call_tool("joinEvent", {"eventId": event.id}, ctx)
        result = call_tool("joinEvent", {"eventId": event.id}, ctx)

        assert result["attendees"] == 1
        assert db.query(EventParticipant).filter(EventParticipant.event_id == event.id).count() == 1

    def test_join_unknown_event(self, create_user, tool_ctx, call_tool, recorder):
        result = call_tool("joinEvent", {"eventId": "nope"}, tool_ctx(create_user()))
        assert result == {"error": "not-found"}
        assert recorder.messages == []


class TestVotes:
    def test_repeated_votes_count_once(self, db, create_goodie, create_user, tool_ctx, call_tool, recorder):
        goodie = create_goodie()
        ctx = tool_ctx(create_user())

        results = [
            call_tool("voteGoodie", {"goodieId": goodie.id, "value": value}, ctx)
            for value in (1, 1, -1, 1)
        ]

        assert [r["totalScore"] for r in results] == [1, 1, -1, 1]
        assert results[-1] == {"ok": True, "myValue": 1, "totalScore": 1, "votes": 1}
        assert db.query(GoodieVote).filter(GoodieVote.goodie_id == goodie.id).count() == 1
        assert [m["goodie"]["totalScore"] for m in recorder.of_type("goodie_updated")] == [1, 1, -1, 1]

    def test_aggregate_across_users(self, create_goodie, create_user, tool_ctx, call_tool):
        goodie = create_goodie()
        call_tool("voteGoodie", {"goodieId": goodie.id, "value": 1}, tool_ctx(create_user()))
        call_tool("voteGoodie", {"goodieId": goodie.id, "value": 1}, tool_ctx(create_user()))
        result = call_tool("voteGoodie", {"goodieId": goodie.id, "value": -1}, tool_ctx(create_user()))

        assert result["totalScore"] == 1
        assert result["votes"] == 3

    def test_string_values_are_accepted(self, create_goodie, create_user, tool_ctx, call_tool):
        goodie = create_goodie()
        result = call_tool("voteGoodie", {"goodieId": goodie.id, "value": "-1"}, tool_ctx(create_user()))
        assert result["myValue"] == -1
        assert result["totalScore"] == -1

    @pytest.mark.parametrize("value", [0, 2, "up", True])
    def test_invalid_values_are_rejected(self, value, create_goodie, create_user, tool_ctx, call_tool, recorder):
        goodie = create_goodie()
        result = call_tool("voteGoodie", {"goodieId": goodie.id, "value": value}, tool_ctx(create_user()))
        assert result["error"] == "invalid-input"
        assert recorder.messages == []

    def test_vote_unknown_goodie(self, create_user, tool_ctx, call_tool):
        result = call_tool("voteGoodie", {"goodieId": "nope", "value": 1}, tool_ctx(create_user()))
        assert result == {"error": "not-found"}

    def test_clear_vote(self, create_goodie, create_user, tool_ctx, call_tool, recorder):
        goodie = create_goodie()
        ctx = tool_ctx(create_user())
        call_tool("voteGoodie", {"goodieId": goodie.id, "value": 1}, ctx)

        result = call_tool("clearGoodieVote", {"goodieId": goodie.id}, ctx)

        assert result == {"ok": True, "totalScore": 0, "votes": 0}
        assert recorder.of_type("goodie_updated")[-1]["goodie"] == {"id": goodie.id, "totalScore": 0}


class TestCollect:
    def test_toggle_twice(self, create_goodie, create_user, tool_ctx, call_tool, recorder):
        goodie = create_goodie()
        ctx = tool_ctx(create_user())

        first = call_tool("toggleCollectGoodie", {"goodieId": goodie.id}, ctx)
        second = call_tool("toggleCollectGoodie", {"goodieId": goodie.id}, ctx)

        assert first == {"collected": True, "collectedCount": 1}
        assert second == {"collected": False, "collectedCount": 0}
        assert recorder.of_type("goodie_collected") == [
            {"type": "goodie_collected", "goodieId": goodie.id, "collectedCount": 1},
            {"type": "goodie_collected", "goodieId": goodie.id, "collectedCount": 0},
        ]

    def test_toggle_unknown_goodie(self, create_user, tool_ctx, call_tool):
        result = call_tool("toggleCollectGoodie", {"goodieId": "nope"}, tool_ctx(create_user()))
        assert result == {"error": "not-found"}


class TestUnknownTargets:
    def test_leave_unknown_event(self, create_user, tool_ctx, call_tool, recorder):
        result = call_tool("leaveEvent", {"eventId": "does-not-exist"}, tool_ctx(create_user()))
        assert result == {"error": "not-found"}
        assert recorder.messages == []

    def test_clear_vote_on_unknown_goodie(self, create_user, tool_ctx, call_tool, recorder):
        result = call_tool("clearGoodieVote", {"goodieId": "does-not-exist"}, tool_ctx(create_user()))
        assert result == {"error": "not-found"}
        assert recorder.messages == []
