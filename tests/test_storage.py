"""
Storage Tests
=============
"""

from datetime import datetime

from copyright_matcher.models.match import (
    ActionStatus,
    ActionType,
    CopyrightAction,
    DataQuality,
)
from copyright_matcher.storage import (
    count_actions,
    ensure_schema,
    get_match,
    insert_action,
    insert_activity,
    list_actions,
    list_activity,
    list_matches,
)


def action(action_id, match_id, action_type=ActionType.IGNORED, status=ActionStatus.IGNORED):
    return CopyrightAction(
        id=action_id,
        match_id=match_id,
        action_type=action_type,
        status=status,
        created_at=datetime(2024, 3, 2, 9, 30, 0),
    )


class TestMatches:

    def test_round_trip(self, conn, make_match):
        match = make_match(data_quality=DataQuality.LIMITED, aligned_pairs=3)

        loaded = get_match(conn, match.id)

        assert loaded == match
        assert loaded.requires_review

    def test_unknown_match(self, conn):
        assert get_match(conn, "nope") is None

    def test_list_filters_by_original(self, conn, make_match):
        make_match(original_ref="a.mp4")
        make_match(original_ref="b.mp4")
        make_match(original_ref="a.mp4")

        assert len(list_matches(conn)) == 3
        assert {m.original_ref for m in list_matches(conn, original_ref="a.mp4")} == {"a.mp4"}
        assert len(list_matches(conn, original_ref="a.mp4")) == 2

    def test_schema_is_idempotent(self, conn, make_match):
        match = make_match()
        ensure_schema(conn)
        assert get_match(conn, match.id) is not None


class TestActions:

    def test_most_recent_first_even_with_equal_timestamps(self, conn, make_match):
        match = make_match()
        insert_action(conn, action("first", match.id))
        insert_action(conn, action("second", match.id, ActionType.TAKEDOWN, ActionStatus.SENT))

        actions = list_actions(conn, match.id)

        assert [a.id for a in actions] == ["second", "first"]
        assert [a.id for a in get_match(conn, match.id).actions] == ["second", "first"]

    def test_counts(self, conn, make_match):
        a, b = make_match(), make_match()
        insert_action(conn, action("x1", a.id))
        insert_action(conn, action("x2", a.id))
        insert_action(conn, action("y1", b.id))

        assert count_actions(conn) == 3
        assert count_actions(conn, a.id) == 2


class TestActivity:

    def test_entries_in_insertion_order(self, conn, make_match):
        match = make_match()
        insert_activity(conn, match.id, "takedown:sent", action_id="a1", detail="file:///n.txt")
        insert_activity(conn, match.id, "ignored:ignored", action_id="a2")

        entries = list_activity(conn, match.id)

        assert [e["event"] for e in entries] == ["takedown:sent", "ignored:ignored"]
        assert entries[0]["detail"] == "file:///n.txt"
        assert entries[1]["detail"] is None
