"""Urgent-status alert: urgent issues landing in Fireman Validation."""

import logging
from typing import Optional

from ..alert_cache import AlertDeduper
from ..changes import ChangeDiff
from ..config import Settings
from ..events import WebhookEvent
from ..models import IssueData
from ..notifier import SlackNotifier, format_fireman_message
from .base import Flow, FlowDecision, FlowOutcome

logger = logging.getLogger(__name__)

TRIGGER_FIELDS = ("status", "priority", "title")


class FiremanValidationFlow(Flow):
    """Alerts when an urgent issue is in the fireman status.

    Fires on any status, priority or title change while the issue is both
    in the target status and at the urgent priority, so repeated saves can
    alert again unless the dedupe cache is enabled.
    """

    name = "fireman_validation"

    def __init__(
        self,
        settings: Settings,
        notifier: SlackNotifier,
        deduper: Optional[AlertDeduper] = None,
    ):
        self.webhook_url = settings.slack_webhook_fireman_url
        self.status_name = settings.fireman_status_name
        self.urgent_priority = settings.urgent_priority
        self.notifier = notifier
        self.deduper = deduper or AlertDeduper(settings.alert_dedupe_ttl_seconds)

    def evaluate(self, issue: IssueData, diff: ChangeDiff) -> FlowDecision:
        if not any(diff.is_changed(name) for name in TRIGGER_FIELDS):
            return FlowDecision(False, "no status, priority or title change")

        state_name = issue.state.name if issue.state else ""
        if state_name.lower() != self.status_name.lower():
            return FlowDecision(False, f"status is {state_name!r}")
        if issue.priority != self.urgent_priority:
            return FlowDecision(False, f"priority is {issue.priority}")

        return FlowDecision(True, "urgent issue in fireman validation")

    def _dedupe_key(self, issue: IssueData) -> str:
        state_id = issue.state.id if issue.state else ""
        return f"{self.name}:{issue.id}:{state_id}:{issue.priority}"

    async def execute(
        self,
        event: WebhookEvent,
        issue: IssueData,
        diff: ChangeDiff,
        decision: FlowDecision,
    ) -> FlowOutcome:
        if not self.webhook_url:
            logger.warning(
                "SLACK_WEBHOOK_FIREMAN_URL not configured, skipping Slack notification"
            )
            return self.skipped("notification sink not configured")

        key = self._dedupe_key(issue)
        if self.deduper.seen(key):
            logger.info(f"Fireman alert for {issue.id} already sent, skipping")
            return self.skipped("alert already sent recently")

        logger.info(
            f"Issue {issue.id} meets Fireman Validation criteria, sending notification"
        )
        sent = await self.notifier.send(
            self.webhook_url,
            format_fireman_message(issue, self.status_name),
            issue_id=issue.id,
        )
        if sent:
            self.deduper.record(key)
        return self.triggered(decision.reason, sent=sent)
