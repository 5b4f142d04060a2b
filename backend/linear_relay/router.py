"""Flow router: runs the issue flows for a change diff."""

import asyncio
import logging

from .changes import ChangeDiff
from .events import EventAction, WebhookEvent
from .flows.base import Flow, FlowOutcome, FlowStatus
from .models import IssueData

logger = logging.getLogger(__name__)


class FlowRouter:
    """Runs independent flows concurrently, isolating their failures."""

    def __init__(self, flows: list[Flow]):
        self.flows = flows

    def should_run(self, event: WebhookEvent, diff: ChangeDiff) -> bool:
        if event.action == EventAction.CREATE:
            return True
        if event.action == EventAction.UPDATE:
            return diff.has_changes
        return False

    async def _run_isolated(
        self, flow: Flow, event: WebhookEvent, issue: IssueData, diff: ChangeDiff
    ) -> FlowOutcome:
        try:
            outcome = await flow.run(event, diff, issue)
        except Exception as e:
            logger.exception(f"Flow {flow.name} failed for issue {issue.id}")
            return flow.failed(f"{type(e).__name__}: {e}")

        logger.debug(
            f"Flow {flow.name} for {issue.id}: {outcome.status.value} ({outcome.message})"
        )
        return outcome

    async def run(self, event: WebhookEvent, diff: ChangeDiff) -> list[FlowOutcome]:
        """Run every flow for the event and collect the outcomes.

        Args:
            event: Issue webhook
            diff: Its change diff

        Returns:
            One outcome per flow, or an empty list when nothing should run
        """
        if not self.should_run(event, diff):
            logger.debug(
                f"Skipping flows for {event.entity_id}: action={event.action.value} "
                f"has_changes={diff.has_changes}"
            )
            return []

        issue = event.issue()
        outcomes = await asyncio.gather(
            *(self._run_isolated(flow, event, issue, diff) for flow in self.flows)
        )

        failed = [o.flow for o in outcomes if o.status == FlowStatus.FAILED]
        if failed:
            logger.warning(f"Flows failed for issue {issue.id}: {failed}")
        return list(outcomes)
