"""Release document sync flow for story-labelled issues."""

import logging
from typing import Optional

from ..changes import ChangeDiff
from ..config import Settings
from ..events import WebhookEvent
from ..models import IssueData, Label
from ..release import ReleaseDocumentSync, SyncAction
from .base import Flow, FlowDecision, FlowOutcome

logger = logging.getLogger(__name__)


class ReleaseFlow(Flow):
    """Refreshes the release document when a story issue changes status."""

    name = "release"

    def __init__(self, settings: Settings, sync: ReleaseDocumentSync):
        self.story_label_parent_id = settings.story_label_parent_id
        self.sync = sync

    def story_label(self, issue: IssueData) -> Optional[Label]:
        for label in issue.labels:
            if label.parent_id == self.story_label_parent_id:
                return label
        return None

    def evaluate(self, issue: IssueData, diff: ChangeDiff) -> FlowDecision:
        if not diff.is_changed("status"):
            return FlowDecision(False, "no status change")

        label = self.story_label(issue)
        if label is None:
            return FlowDecision(False, "no story label")

        if diff.status.current is None or diff.status.previous is None:
            return FlowDecision(False, "previous or current status unresolved")

        return FlowDecision(True, label.name)

    async def execute(
        self,
        event: WebhookEvent,
        issue: IssueData,
        diff: ChangeDiff,
        decision: FlowDecision,
    ) -> FlowOutcome:
        label = self.story_label(issue)
        logger.info(
            f"Story issue {issue.id} moved {diff.status.previous.name!r} -> "
            f"{diff.status.current.name!r}, syncing release {label.name!r}"
        )

        result = await self.sync.sync(label.id, label.name)
        details = {
            "label": result.label_name,
            "action": result.action.value,
            "documentId": result.document_id,
            "ticketCount": result.ticket_count,
            "releaseAt": result.release_at,
        }
        if result.action == SyncAction.FAILED:
            return self.failed(result.message, **details)
        if result.action == SyncAction.SKIPPED:
            return self.skipped(result.message, **details)
        return self.triggered(result.message, **details)
