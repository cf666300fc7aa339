"""
Action Workflow Tests
=====================
"""

from datetime import datetime

import pytest

from copyright_matcher.actions import (
    ActionWorkflow,
    DispatchError,
    InvalidActionError,
    LoggingNotifier,
    MatchNotFoundError,
    NoticeGenerator,
    ReviewRequiredError,
)
from copyright_matcher.models.match import (
    ActionStatus,
    ActionType,
    DataQuality,
    MatchState,
)
from copyright_matcher.storage import count_actions, get_match, list_activity


class BrokenNotifier:

    def send_infringement_email(self, match, action_id):
        raise DispatchError("SMTP relay refused the message")


@pytest.fixture
def notices(tmp_path):
    return NoticeGenerator(notice_dir=str(tmp_path / "notices"), sender_name="Rights Desk")


@pytest.fixture
def workflow(conn, notices):
    return ActionWorkflow(conn, notices, clock=lambda: datetime(2024, 3, 5, 10, 0, 0))


class TestTakedown:

    def test_takedown_is_sent_with_document(self, workflow, make_match):
        match = make_match()

        action = workflow.apply_action(match.id, "takedown")

        assert action.status == ActionStatus.SENT
        assert action.action_type == ActionType.TAKEDOWN
        assert action.document_url is not None
        assert action.document_url.startswith("file://")

    def test_notice_document_written(self, workflow, make_match, tmp_path):
        match = make_match()

        action = workflow.apply_action(match.id, "takedown")

        notice = tmp_path / "notices" / f"takedown-{action.id}.txt"
        text = notice.read_text(encoding="utf-8")
        assert match.candidate_url in text
        assert match.original_ref in text
        assert "Rights Desk" in text

    def test_second_takedown_is_a_new_action(self, conn, workflow, make_match):
        match = make_match()

        first = workflow.apply_action(match.id, "takedown")
        second = workflow.apply_action(match.id, "takedown")

        assert first.id != second.id
        assert first.document_url != second.document_url
        stored = get_match(conn, match.id)
        assert [a.id for a in stored.actions] == [second.id, first.id]
        assert stored.actions[1] == first

    def test_public_base_url(self, conn, tmp_path, make_match):
        workflow = ActionWorkflow(
            conn,
            NoticeGenerator(str(tmp_path / "n"), base_url="https://notices.example.com/"),
        )
        match = make_match()

        action = workflow.apply_action(match.id, ActionType.TAKEDOWN)

        assert action.document_url == f"https://notices.example.com/takedown-{action.id}.txt"

    def test_unwritable_notice_dir_records_failure(self, conn, tmp_path, make_match):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        workflow = ActionWorkflow(conn, NoticeGenerator(str(blocker)))
        match = make_match()

        action = workflow.apply_action(match.id, "takedown")

        assert action.status == ActionStatus.FAILED
        assert action.document_url is None
        assert workflow.current_state(match.id) == MatchState.FAILED


class TestEmailAndIgnore:

    def test_infringement_email_sent(self, conn, notices, make_match):
        notifier = LoggingNotifier()
        workflow = ActionWorkflow(conn, notices, notifier=notifier)
        match = make_match()

        action = workflow.apply_action(match.id, "infringement_email")

        assert action.status == ActionStatus.SENT
        assert action.document_url is None
        assert notifier.sent_count == 1

    def test_failed_dispatch_is_persisted_as_failed(self, conn, notices, make_match):
        workflow = ActionWorkflow(conn, notices, notifier=BrokenNotifier())
        match = make_match()

        action = workflow.apply_action(match.id, "infringement_email")

        assert action.status == ActionStatus.FAILED
        assert get_match(conn, match.id).actions[0].status == ActionStatus.FAILED

    def test_ignored(self, workflow, make_match):
        match = make_match()

        action = workflow.apply_action(match.id, "ignored")

        assert action.status == ActionStatus.IGNORED
        assert action.document_url is None


class TestValidation:

    def test_unsupported_type_rejected_before_any_write(self, conn, workflow, make_match):
        match = make_match()

        with pytest.raises(InvalidActionError):
            workflow.apply_action(match.id, "unsupported_type")

        assert count_actions(conn) == 0
        assert list_activity(conn, match.id) == []
        assert workflow.current_state(match.id) == MatchState.UNACTIONED

    @pytest.mark.parametrize("value", ["email", "TAKEDOWN", "", "sent"])
    def test_no_aliases_or_downgrades(self, workflow, make_match, value):
        match = make_match()
        with pytest.raises(InvalidActionError):
            workflow.apply_action(match.id, value)

    def test_unknown_match(self, conn, workflow):
        with pytest.raises(MatchNotFoundError):
            workflow.apply_action("missing", "takedown")
        assert count_actions(conn) == 0

    def test_automated_enforcement_needs_verified_data(self, conn, workflow, make_match):
        match = make_match(data_quality=DataQuality.LIMITED, aligned_pairs=2)

        with pytest.raises(ReviewRequiredError):
            workflow.apply_action(match.id, "takedown", automated=True)

        assert count_actions(conn) == 0

    def test_operator_may_act_on_limited_match(self, workflow, make_match):
        match = make_match(data_quality=DataQuality.LIMITED, aligned_pairs=2)

        action = workflow.apply_action(match.id, "takedown")

        assert action.status == ActionStatus.SENT
        assert not action.automated

    def test_automated_action_on_verified_match(self, workflow, make_match):
        match = make_match()

        action = workflow.apply_action(match.id, "infringement_email", automated=True)

        assert action.automated


class TestStateAndAudit:

    def test_state_follows_latest_action(self, workflow, make_match):
        match = make_match()
        assert workflow.current_state(match.id) == MatchState.UNACTIONED

        workflow.apply_action(match.id, "ignored")
        assert workflow.current_state(match.id) == MatchState.IGNORED

        workflow.apply_action(match.id, "takedown")
        assert workflow.current_state(match.id) == MatchState.SENT

    def test_every_action_is_logged(self, conn, workflow, make_match):
        match = make_match()
        takedown = workflow.apply_action(match.id, "takedown")
        workflow.apply_action(match.id, "ignored")

        entries = list_activity(conn, match.id)

        assert [e["event"] for e in entries] == ["takedown:sent", "ignored:ignored"]
        assert entries[0]["action_id"] == takedown.id
        assert entries[0]["detail"] == takedown.document_url

    def test_match_record_is_not_mutated(self, conn, workflow, make_match):
        match = make_match()

        workflow.apply_action(match.id, "takedown")

        stored = get_match(conn, match.id)
        assert stored.model_dump(exclude={"actions"}) == match.model_dump(exclude={"actions"})

    def test_metrics(self, workflow, make_match):
        match = make_match()
        workflow.apply_action(match.id, "ignored")
        with pytest.raises(InvalidActionError):
            workflow.apply_action(match.id, "bogus")

        assert workflow.get_metrics() == {
            "actions_applied": 1,
            "actions_failed": 0,
            "actions_rejected": 1,
        }


class TestAtomicRecording:

    def test_failed_activity_write_leaves_no_trace(
        self, conn, workflow, make_match, tmp_path, monkeypatch
    ):
        from copyright_matcher.storage import repository

        def refuse(*args, **kwargs):
            raise RuntimeError("activity log unavailable")

        monkeypatch.setattr(repository, "insert_activity", refuse)
        match = make_match()

        with pytest.raises(RuntimeError):
            workflow.apply_action(match.id, "takedown")

        assert count_actions(conn, match.id) == 0
        assert list_activity(conn, match.id) == []
        assert list((tmp_path / "notices").glob("*.txt")) == []
        assert workflow.current_state(match.id) == MatchState.UNACTIONED

    def test_recording_recovers_after_rollback(self, conn, workflow, make_match, monkeypatch):
        from copyright_matcher.storage import repository

        original_insert = repository.insert_activity
        calls = {"n": 0}

        def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("activity log unavailable")
            return original_insert(*args, **kwargs)

        monkeypatch.setattr(repository, "insert_activity", flaky)
        match = make_match()

        with pytest.raises(RuntimeError):
            workflow.apply_action(match.id, "ignored")
        action = workflow.apply_action(match.id, "ignored")

        assert count_actions(conn, match.id) == 1
        assert [entry["action_id"] for entry in list_activity(conn, match.id)] == [action.id]
