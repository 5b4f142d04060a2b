"""Cycle-milestone alert: flagged issues and QA/Done transitions in active cycles."""

import logging

from ..changes import ChangeDiff
from ..config import Settings
from ..events import WebhookEvent
from ..models import IssueData
from ..notifier import SlackNotifier, format_cycle_status_message
from .base import Flow, FlowDecision, FlowOutcome

logger = logging.getLogger(__name__)

FLAGGED_REASON = "flagged"


class CycleStatusFlow(Flow):
    """Alerts the team channel about milestones of issues in the active cycle.

    Only issues of the configured team are considered. A flagged label wins
    over a status transition; a status transition only counts when the issue
    moved into a target status from a different one.
    """

    name = "cycle_status"

    def __init__(self, settings: Settings, notifier: SlackNotifier):
        self.webhook_url = settings.slack_webhook_cycle_status_url
        self.team_name = settings.cycle_team_name
        self.target_statuses = list(settings.cycle_target_statuses)
        self.flagged_label_name = settings.flagged_label_name
        self.notifier = notifier

    def _target_for(self, state_name: str):
        return next(
            (t for t in self.target_statuses if t.lower() == state_name.lower()),
            None,
        )

    def _reason(self, issue: IssueData, diff: ChangeDiff) -> FlowDecision:
        """Flagged label first, then a genuine transition into a target status."""
        flagged = any(label.name == self.flagged_label_name for label in issue.labels)
        if flagged and diff.is_changed("labels"):
            return FlowDecision(True, FLAGGED_REASON)

        if not diff.is_changed("status"):
            return FlowDecision(False, "no flagged label or status change")

        state_name = issue.state.name if issue.state else ""
        target = self._target_for(state_name)
        if target is None:
            return FlowDecision(False, f"status {state_name!r} is not a target")

        previous = diff.previous_status_name
        if previous is None:
            return FlowDecision(False, "previous status unknown")
        if previous.lower() == target.lower():
            return FlowDecision(False, f"already in {target}")

        return FlowDecision(True, target)

    def evaluate(self, issue: IssueData, diff: ChangeDiff) -> FlowDecision:
        team_name = issue.team.name if issue.team else None
        if team_name != self.team_name:
            return FlowDecision(False, f"team {team_name!r} not tracked")

        decision = self._reason(issue, diff)
        if not decision.triggered:
            return decision

        if not issue.cycle or not issue.cycle.id:
            return FlowDecision(False, "issue not in a cycle")
        if diff.cycle_details is None:
            return FlowDecision(False, "cycle details unavailable")
        if not diff.cycle_details.is_active:
            return FlowDecision(False, "cycle completed")

        return decision

    async def execute(
        self,
        event: WebhookEvent,
        issue: IssueData,
        diff: ChangeDiff,
        decision: FlowDecision,
    ) -> FlowOutcome:
        if not self.webhook_url:
            logger.warning(
                "SLACK_WEBHOOK_CYCLE_STATUS_URL not configured, skipping Slack notification"
            )
            return self.skipped("notification sink not configured")

        cycle_name = diff.cycle_details.display_name
        logger.info(
            f"Issue {issue.id} reached {decision.reason!r} in active cycle "
            f"{cycle_name!r}, sending notification"
        )
        message = format_cycle_status_message(
            issue,
            decision.reason,
            cycle_name,
            flagged=decision.reason == FLAGGED_REASON,
        )
        sent = await self.notifier.send(self.webhook_url, message, issue_id=issue.id)
        return self.triggered(decision.reason, sent=sent, cycle=cycle_name)
