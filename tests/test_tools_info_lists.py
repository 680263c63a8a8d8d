"""Tests for information and list tools."""

from datetime import datetime, timedelta, timezone

from planner.models import EventCategory, EventParticipant, GoodieCollection, GoodieType, GoodieVote


class TestEventInformation:
    def test_card_for_member(self, db, create_event, create_user, tool_ctx, call_tool):
        event = create_event(name="Speedrun Finals", summary="Fast games")
        me = create_user()
        others = [create_user() for _ in range(9)]
        for user in [me, *others]:
            db.add(EventParticipant(user_id=user.id, event_id=event.id))
        db.commit()

        card = call_tool("getEventInformation", {"eventId": event.id}, tool_ctx(me))

        assert card["id"] == event.id
        assert card["title"] == "Speedrun Finals"
        assert card["description"] == "Fast games"
        assert card["attendees"] == 10
        assert card["userJoined"] is True
        assert len(card["participants"]) == 8
        assert card["startsInMs"] > 0
        assert card["category"] == "MEETUP"

    def test_anonymous_defaults(self, db, create_event, create_user, tool_ctx, call_tool):
        event = create_event()
        db.add(EventParticipant(user_id=create_user().id, event_id=event.id))
        db.commit()

        card = call_tool("getEventInformation", {"eventId": event.id}, tool_ctx())

        assert card["attendees"] == 1
        assert card["userJoined"] is False

    def test_not_found(self, tool_ctx, call_tool):
        assert call_tool("getEventInformation", {"eventId": "nope"}, tool_ctx()) == {"error": "Event not found"}

    def test_second_lookup_is_served_from_cache(self, db, create_event, create_user, tool_ctx, call_tool):
        event = create_event()
        ctx = tool_ctx(create_user())

        first = call_tool("getEventInformation", {"eventId": event.id}, ctx)
        db.add(EventParticipant(user_id=create_user().id, event_id=event.id))
        db.commit()
        second = call_tool("getEventInformation", {"eventId": event.id}, ctx)

        assert second is first
        assert second["attendees"] == 0
        assert f"evt:{event.id}" in ctx.cache


class TestGoodieInformation:
    def test_personalized_fields(self, db, create_goodie, create_user, tool_ctx, call_tool):
        goodie = create_goodie(name="Energy Drink", type=GoodieType.DRINK)
        me, other = create_user(), create_user()
        db.add_all([
            GoodieVote(user_id=me.id, goodie_id=goodie.id, value=1),
            GoodieVote(user_id=other.id, goodie_id=goodie.id, value=1),
            GoodieCollection(user_id=me.id, goodie_id=goodie.id),
        ])
        db.commit()

        view = call_tool("getGoodieInformation", {"goodieId": goodie.id}, tool_ctx(me))

        assert view["name"] == "Energy Drink"
        assert view["type"] == "DRINK"
        assert view["totalScore"] == 2
        assert view["userVote"] == 1
        assert view["collected"] is True
        assert view["createdById"] == goodie.created_by_id

    def test_anonymous_defaults(self, create_goodie, tool_ctx, call_tool):
        goodie = create_goodie()
        view = call_tool("getGoodieInformation", {"goodieId": goodie.id}, tool_ctx())
        assert view["userVote"] == 0
        assert view["collected"] is False

    def test_not_found(self, tool_ctx, call_tool):
        assert call_tool("getGoodieInformation", {"goodieId": "nope"}, tool_ctx()) == {"error": "Goodie not found"}


class TestEventsAdvanced:
    def test_anonymous_sees_public_only(self, create_event, tool_ctx, call_tool):
        create_event(name="Open", is_public=True)
        create_event(name="Members", is_public=False)

        result = call_tool("getEventsAdvanced", {}, tool_ctx())

        assert [e["name"] for e in result] == ["Open"]
        assert "joined" not in result[0]
        assert result[0]["createdByMe"] is False

    def test_personal_filters_require_session(self, tool_ctx, call_tool):
        assert call_tool("getEventsAdvanced", {"mineOnly": True}, tool_ctx()) == {"error": "auth-required"}
        assert call_tool("getEventsAdvanced", {"joinedOnly": True}, tool_ctx()) == {"error": "auth-required"}

    def test_joined_only(self, db, create_event, create_user, tool_ctx, call_tool):
        me = create_user()
        joined = create_event(name="Joined")
        create_event(name="Not joined")
        db.add(EventParticipant(user_id=me.id, event_id=joined.id))
        db.commit()

        result = call_tool("getEventsAdvanced", {"joinedOnly": True}, tool_ctx(me))

        assert [(e["id"], e["joined"]) for e in result] == [(joined.id, True)]

    def test_mine_only(self, create_event, create_user, tool_ctx, call_tool):
        me = create_user()
        mine = create_event(creator=me, name="Mine", is_public=False)
        create_event(name="Theirs")

        result = call_tool("getEventsAdvanced", {"mineOnly": True}, tool_ctx(me))

        assert [e["id"] for e in result] == [mine.id]
        assert result[0]["createdByMe"] is True

    def test_filters_and_sorting(self, create_event, tool_ctx, call_tool):
        day = datetime(2030, 8, 21, 10, 0, tzinfo=timezone.utc)
        create_event(name="Food Court", category=EventCategory.FOOD, start_date=day, end_date=day + timedelta(hours=1))
        create_event(
            name="Afternoon Food", category=EventCategory.FOOD,
            start_date=day + timedelta(hours=5), end_date=day + timedelta(hours=6),
        )
        create_event(
            name="Next Day Food", category=EventCategory.FOOD,
            start_date=day + timedelta(days=1), end_date=day + timedelta(days=1, hours=1),
        )
        create_event(name="Party", category=EventCategory.PARTY, start_date=day, end_date=day + timedelta(hours=1))

        result = call_tool("getEventsAdvanced", {
            "category": "FOOD", "day": "2030-08-21", "sortBy": "name", "sortOrder": "asc",
        }, tool_ctx())

        assert [e["name"] for e in result] == ["Afternoon Food", "Food Court"]

    def test_invalid_category(self, tool_ctx, call_tool):
        assert call_tool("getEventsAdvanced", {"category": "OPERA"}, tool_ctx())["error"] == "invalid-input"


class TestGetEvents:
    def test_joined_flag_and_upcoming(self, db, create_event, create_user, tool_ctx, call_tool):
        me = create_user()
        past = datetime.now(timezone.utc) - timedelta(days=2)
        create_event(name="Yesterday", start_date=past, end_date=past + timedelta(hours=1))
        upcoming = create_event(name="Tomorrow")
        db.add(EventParticipant(user_id=me.id, event_id=upcoming.id))
        db.commit()

        result = call_tool("getEvents", {"upcomingOnly": True}, tool_ctx(me))

        assert [(e["name"], e["joined"]) for e in result] == [("Tomorrow", True)]


class TestMyLists:
    def test_my_events_joined_and_created(self, db, create_event, create_user, tool_ctx, call_tool):
        me = create_user()
        created = create_event(creator=me, name="My Meetup")
        joined = create_event(name="Their Party")
        db.add(EventParticipant(user_id=me.id, event_id=joined.id))
        db.commit()
        ctx = tool_ctx(me)

        joined_result = call_tool("getMyEvents", {}, ctx)
        created_result = call_tool("getMyEvents", {"role": "created"}, ctx)

        assert [e["id"] for e in joined_result] == [joined.id]
        assert joined_result[0]["createdByMe"] is False
        assert [e["id"] for e in created_result] == [created.id]
        assert created_result[0]["createdByMe"] is True

    def test_my_goodies(self, db, create_goodie, create_user, tool_ctx, call_tool):
        me = create_user()
        collected = create_goodie(name="Keychain")
        created = create_goodie(creator=me, name="My Flyer")
        db.add(GoodieCollection(user_id=me.id, goodie_id=collected.id))
        db.commit()
        ctx = tool_ctx(me)

        assert [g["id"] for g in call_tool("getMyGoodies", {}, ctx)] == [collected.id]
        created_result = call_tool("getMyGoodies", {"role": "created"}, ctx)
        assert [(g["id"], g["collected"]) for g in created_result] == [(created.id, False)]


class TestGoodieListing:
    def test_filters(self, db, create_goodie, create_user, tool_ctx, call_tool):
        me = create_user()
        drink = create_goodie(name="Cold Brew", type=GoodieType.DRINK, location="Hall 5")
        create_goodie(name="Mug", type=GoodieType.GIFT, instructions="Free cold brew refill")
        db.add(GoodieCollection(user_id=me.id, goodie_id=drink.id))
        db.commit()
        ctx = tool_ctx(me)

        by_search = call_tool("getGoodies", {"search": "cold brew", "sortBy": "name", "sortOrder": "asc"}, ctx)
        by_type = call_tool("getGoodies", {"type": "DRINK"}, ctx)
        collected = call_tool("getGoodies", {"collectedOnly": True}, ctx)

        assert [g["name"] for g in by_search] == ["Cold Brew", "Mug"]
        assert [g["id"] for g in by_type] == [drink.id]
        assert [(g["id"], g["collected"]) for g in collected] == [(drink.id, True)]


class TestParticipantsAndStats:
    def test_participants_top_n_and_total(self, db, create_event, create_user, tool_ctx, call_tool):
        event = create_event()
        users = [create_user() for _ in range(5)]
        for user in users:
            db.add(EventParticipant(user_id=user.id, event_id=event.id))
            db.commit()
        ctx = tool_ctx()

        result = call_tool("getEventParticipants", {"eventId": event.id, "limit": 3}, ctx)

        assert result["total"] == 5
        assert [p["id"] for p in result["participants"]] == [u.id for u in users[:3]]
        assert f"evt:participants:{event.id}:3" in ctx.cache

    def test_participants_limit_bounds(self, tool_ctx, call_tool):
        result = call_tool("getEventParticipants", {"eventId": "x", "limit": 25}, tool_ctx())
        assert result["error"] == "invalid-input"

    def test_stats(self, db, create_event, create_goodie, create_user, tool_ctx, call_tool):
        create_event()
        goodie = create_goodie()
        db.add(GoodieVote(user_id=create_user().id, goodie_id=goodie.id, value=1))
        db.commit()

        assert call_tool("getStats", {}, tool_ctx()) == {"events": 1, "goodies": 1, "votes": 1}
