"""Tests for the issue flows."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from linear_relay.alert_cache import AlertDeduper
from linear_relay.change_detector import ChangeDetector
from linear_relay.changes import ChangeDiff, FieldChange, LabelChange, LabelConfidence
from linear_relay.flows import (
    CycleStatusFlow,
    FiremanValidationFlow,
    FlowStatus,
    ReleaseFlow,
    build_issue_flows,
)
from linear_relay.models import CycleData, IssueData, WorkflowState
from linear_relay.release import ReleaseSyncResult, SyncAction

from conftest import STATES, STORY_PARENT_ID, TEAM_NAME, make_event, make_issue

FIREMAN_STATE = {"id": "state-fireman", "name": "Fireman Validation", "type": "started"}
DONE_STATE = {"id": "state-done", "name": "Done", "type": "completed"}
FLAGGED = {"id": "label-flag", "name": "🔴 FLAGGED"}
STORY = {"id": "label-story", "name": "Story A", "parentId": STORY_PARENT_ID}

ACTIVE_CYCLE = CycleData(id="cycle-1", name="Sprint 7")
COMPLETED_CYCLE = CycleData(id="cycle-1", name="Sprint 7", completedAt="2024-01-01")


@pytest.fixture
def notifier():
    """Slack notifier with a mocked send."""
    n = MagicMock()
    n.send = AsyncMock(return_value=True)
    return n


def status_change(previous: str, current: str) -> FieldChange:
    return FieldChange(
        True,
        WorkflowState(id=f"id-{current}", name=current),
        WorkflowState(id=f"id-{previous}", name=previous),
    )


class TestFiremanValidationFlow:
    """Tests for the urgent-status alert."""

    @pytest.fixture
    def flow(self, settings, notifier):
        return FiremanValidationFlow(settings, notifier)

    @pytest.mark.asyncio
    async def test_fires_on_transition_into_fireman(self, flow, notifier, gateway, settings):
        """Todo -> Fireman Validation with priority 1 fires."""
        event = make_event(
            data=make_issue(state=FIREMAN_STATE, priority=1),
            updated_from={"stateId": "state-todo"},
        )
        diff = await ChangeDetector(gateway, settings).detect_changes(event)

        outcome = await flow.run(event, diff)

        assert outcome.status == FlowStatus.TRIGGERED
        assert outcome.details == {"sent": True}
        url, text = notifier.send.call_args.args
        assert url == "https://hooks.slack.test/fireman"
        assert "`URGENT`" in text
        assert "<https://linear.app/acme/issue/ENG-42|ENG-42 Fix checkout>" in text

    def test_priority_two_does_not_fire(self, flow):
        issue = IssueData.model_validate(make_issue(state=FIREMAN_STATE, priority=2))
        diff = ChangeDiff(status=status_change("Todo", "Fireman Validation"))

        decision = flow.evaluate(issue, diff)

        assert decision.triggered is False
        assert decision.reason == "priority is 2"

    def test_priority_change_alone_fires(self, flow):
        """Already in the status, priority 2 -> 1 is a trigger."""
        issue = IssueData.model_validate(make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(priority=FieldChange(True, 1, 2))

        assert flow.evaluate(issue, diff).triggered is True

    def test_title_change_fires(self, flow):
        issue = IssueData.model_validate(make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(title=FieldChange(True, "New", "Old"))

        assert flow.evaluate(issue, diff).triggered is True

    def test_status_name_case_insensitive(self, flow):
        state = {**FIREMAN_STATE, "name": "fireman validation"}
        issue = IssueData.model_validate(make_issue(state=state, priority=1))
        diff = ChangeDiff(status=status_change("Todo", "fireman validation"))

        assert flow.evaluate(issue, diff).triggered is True

    def test_other_field_change_does_not_fire(self, flow):
        issue = IssueData.model_validate(make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(estimate=FieldChange(True, 5, 3))

        assert flow.evaluate(issue, diff).triggered is False

    def test_other_status_does_not_fire(self, flow):
        issue = IssueData.model_validate(make_issue(priority=1))
        diff = ChangeDiff(priority=FieldChange(True, 1, 2))

        assert flow.evaluate(issue, diff).triggered is False

    @pytest.mark.asyncio
    async def test_missing_webhook_url_skips(self, settings, notifier):
        settings.slack_webhook_fireman_url = ""
        flow = FiremanValidationFlow(settings, notifier)
        event = make_event(data=make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(priority=FieldChange(True, 1, 2))

        outcome = await flow.run(event, diff)

        assert outcome.status == FlowStatus.SKIPPED
        notifier.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_sink_failure_is_not_a_flow_failure(self, flow, notifier):
        notifier.send.return_value = False
        event = make_event(data=make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(priority=FieldChange(True, 1, 2))

        outcome = await flow.run(event, diff)

        assert outcome.status == FlowStatus.TRIGGERED
        assert outcome.details["sent"] is False

    @pytest.mark.asyncio
    async def test_repeated_saves_alert_again_by_default(self, flow, notifier):
        event = make_event(data=make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(title=FieldChange(True, "New", "Old"))

        await flow.run(event, diff)
        await flow.run(event, diff)

        assert notifier.send.await_count == 2

    @pytest.mark.asyncio
    async def test_dedupe_cache_suppresses_repeat(self, settings, notifier):
        flow = FiremanValidationFlow(settings, notifier, AlertDeduper(ttl_seconds=300))
        event = make_event(data=make_issue(state=FIREMAN_STATE, priority=1))
        diff = ChangeDiff(title=FieldChange(True, "New", "Old"))

        first = await flow.run(event, diff)
        second = await flow.run(event, diff)

        assert first.status == FlowStatus.TRIGGERED
        assert second.status == FlowStatus.SKIPPED
        assert notifier.send.await_count == 1


class TestCycleStatusFlow:
    """Tests for the cycle-milestone alert."""

    @pytest.fixture
    def flow(self, settings, notifier):
        return CycleStatusFlow(settings, notifier)

    def issue(self, **overrides) -> IssueData:
        overrides.setdefault("cycle", {"id": "cycle-1"})
        return IssueData.model_validate(make_issue(**overrides))

    @pytest.mark.parametrize("state", [STATES["state-todo"], STATES["state-done"]])
    def test_flagged_fires_regardless_of_status(self, flow, state):
        issue = self.issue(labels=[FLAGGED], state=state.model_dump(by_alias=True))
        diff = ChangeDiff(
            labels=LabelChange(True, LabelConfidence.HEURISTIC),
            cycle_details=ACTIVE_CYCLE,
        )

        decision = flow.evaluate(issue, diff)

        assert decision.triggered is True
        assert decision.reason == "flagged"

    def test_flagged_without_label_change_does_not_fire(self, flow):
        issue = self.issue(labels=[FLAGGED])
        diff = ChangeDiff(
            labels=LabelChange(False, LabelConfidence.CONFIRMED),
            cycle_details=ACTIVE_CYCLE,
        )

        assert flow.evaluate(issue, diff).triggered is False

    def test_transition_into_done_fires(self, flow):
        issue = self.issue(state=DONE_STATE)
        diff = ChangeDiff(
            status=status_change("In Progress", "Done"), cycle_details=ACTIVE_CYCLE
        )

        decision = flow.evaluate(issue, diff)

        assert decision.triggered is True
        assert decision.reason == "Done"

    def test_completed_cycle_suppresses(self, flow):
        issue = self.issue(state=DONE_STATE)
        diff = ChangeDiff(
            status=status_change("In Progress", "Done"), cycle_details=COMPLETED_CYCLE
        )

        assert flow.evaluate(issue, diff).triggered is False

    def test_done_to_done_does_not_fire(self, flow):
        issue = self.issue(state=DONE_STATE)
        diff = ChangeDiff(status=status_change("Done", "Done"), cycle_details=ACTIVE_CYCLE)

        decision = flow.evaluate(issue, diff)

        assert decision.triggered is False
        assert decision.reason == "already in Done"

    def test_non_target_status_does_not_fire(self, flow):
        issue = self.issue()
        diff = ChangeDiff(
            status=status_change("Todo", "In Progress"), cycle_details=ACTIVE_CYCLE
        )

        assert flow.evaluate(issue, diff).triggered is False

    def test_other_team_short_circuits(self, flow):
        issue = self.issue(state=DONE_STATE, team={"id": "t2", "name": "Design"})
        diff = ChangeDiff(
            status=status_change("In Progress", "Done"), cycle_details=ACTIVE_CYCLE
        )

        assert flow.evaluate(issue, diff).triggered is False

    def test_issue_without_cycle(self, flow):
        issue = self.issue(state=DONE_STATE, cycle=None)
        diff = ChangeDiff(status=status_change("In Progress", "Done"))

        assert flow.evaluate(issue, diff).reason == "issue not in a cycle"

    def test_unavailable_cycle_details_suppress(self, flow):
        issue = self.issue(state=DONE_STATE)
        diff = ChangeDiff(status=status_change("In Progress", "Done"))

        assert flow.evaluate(issue, diff).reason == "cycle details unavailable"

    @pytest.mark.asyncio
    async def test_messages(self, flow, notifier):
        event = make_event(data=make_issue(state=DONE_STATE, cycle={"id": "cycle-1"}))
        diff = ChangeDiff(
            status=status_change("QA Testing", "Done"), cycle_details=ACTIVE_CYCLE
        )

        outcome = await flow.run(event, diff)

        assert outcome.status == FlowStatus.TRIGGERED
        assert outcome.details == {"sent": True, "cycle": "Sprint 7"}
        url, text = notifier.send.call_args.args
        assert url == "https://hooks.slack.test/cycle"
        assert text.startswith('✅ Issue moved to "Done" in active cycle "Sprint 7"')

    @pytest.mark.asyncio
    async def test_flagged_message(self, flow, notifier):
        event = make_event(data=make_issue(labels=[FLAGGED], cycle={"id": "cycle-1"}))
        diff = ChangeDiff(
            labels=LabelChange(True, LabelConfidence.HEURISTIC),
            cycle_details=ACTIVE_CYCLE,
        )

        await flow.run(event, diff)

        _, text = notifier.send.call_args.args
        assert text.startswith('🚩 Issue flagged in active cycle "Sprint 7"')


class TestReleaseFlow:
    """Tests for the release document flow gate and outcome mapping."""

    @pytest.fixture
    def sync(self):
        s = MagicMock()
        s.sync = AsyncMock(
            return_value=ReleaseSyncResult(
                SyncAction.CREATED,
                "Story A",
                "created",
                document_id="doc-1",
                ticket_count=2,
                release_at="2026-03-09",
            )
        )
        return s

    @pytest.fixture
    def flow(self, settings, sync):
        return ReleaseFlow(settings, sync)

    def test_story_label_found_by_parent(self, flow):
        issue = IssueData.model_validate(
            make_issue(labels=[{"id": "l-bug", "name": "Bug"}, STORY])
        )
        assert flow.story_label(issue).name == "Story A"

    def test_requires_story_label(self, flow):
        issue = IssueData.model_validate(make_issue())
        diff = ChangeDiff(status=status_change("Todo", "In Progress"))

        assert flow.evaluate(issue, diff).reason == "no story label"

    def test_requires_status_change(self, flow):
        issue = IssueData.model_validate(make_issue(labels=[STORY]))
        diff = ChangeDiff(title=FieldChange(True, "a", "b"))

        assert flow.evaluate(issue, diff).triggered is False

    def test_created_issue_has_no_previous_status(self, flow):
        issue = IssueData.model_validate(make_issue(labels=[STORY]))
        diff = ChangeDiff(status=FieldChange(True, WorkflowState(name="Todo")))

        assert flow.evaluate(issue, diff).triggered is False

    @pytest.mark.asyncio
    async def test_triggers_sync(self, flow, sync):
        event = make_event(data=make_issue(labels=[STORY]))
        diff = ChangeDiff(status=status_change("Todo", "In Progress"))

        outcome = await flow.run(event, diff)

        sync.sync.assert_awaited_once_with("label-story", "Story A")
        assert outcome.status == FlowStatus.TRIGGERED
        assert outcome.to_dict()["documentId"] == "doc-1"
        assert outcome.to_dict()["action"] == "created"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "action,status",
        [(SyncAction.SKIPPED, FlowStatus.SKIPPED), (SyncAction.FAILED, FlowStatus.FAILED)],
    )
    async def test_outcome_mapping(self, flow, sync, action, status):
        sync.sync.return_value = ReleaseSyncResult(action, "Story A", "x")
        event = make_event(data=make_issue(labels=[STORY]))
        diff = ChangeDiff(status=status_change("Todo", "In Progress"))

        outcome = await flow.run(event, diff)

        assert outcome.status == status


class TestBuildIssueFlows:
    """Test build_issue_flows factory."""

    def test_builds_three_flows(self, settings, gateway, store, notifier):
        flows = build_issue_flows(settings, gateway, store, notifier)
        assert sorted(f.name for f in flows) == [
            "cycle_status",
            "fireman_validation",
            "release",
        ]

    def test_team_name_from_settings(self, settings, gateway, store, notifier):
        flows = build_issue_flows(settings, gateway, store, notifier)
        cycle_flow = next(f for f in flows if f.name == "cycle_status")
        assert cycle_flow.team_name == TEAM_NAME
