"""Webhook processors, one per entity type."""

import logging

from .change_detector import ChangeDetector
from .config import Settings
from .events import EntityType, EventAction, WebhookEvent
from .retrospective import RetrospectiveGenerator
from .router import FlowRouter

logger = logging.getLogger(__name__)


class WebhookProcessor:
    """Dispatches parsed webhooks to the issue and cycle pipelines."""

    def __init__(
        self,
        settings: Settings,
        detector: ChangeDetector,
        router: FlowRouter,
        retrospectives: RetrospectiveGenerator,
    ):
        self.detector = detector
        self.router = router
        self.retrospectives = retrospectives
        self.retro_require_completed = settings.retro_require_completed

    async def process(self, event: WebhookEvent) -> dict:
        """Process an event and return a summary for the webhook response."""
        logger.info(
            f"Processing {event.raw_type} webhook: action={event.action.value} "
            f"id={event.entity_id} org={event.organization_id}"
        )

        if event.entity_type == EntityType.ISSUE:
            return await self.process_issue(event)
        if event.entity_type == EntityType.CYCLE:
            return await self.process_cycle(event)
        if event.entity_type == EntityType.COMMENT:
            return {"success": True, "action": event.action.value, "commentId": event.entity_id}
        if event.entity_type == EntityType.PROJECT:
            return {"success": True, "action": event.action.value, "projectId": event.entity_id}

        logger.warning(f"Unknown webhook type: {event.raw_type}")
        return {"success": True, "message": f"Received {event.raw_type} webhook"}

    async def process_issue(self, event: WebhookEvent) -> dict:
        """Detect changes and run the issue flows."""
        diff = await self.detector.detect_changes(event)

        if event.action == EventAction.REMOVE:
            logger.info(f"Issue removed: {event.entity_id}")
        elif event.action == EventAction.UNKNOWN:
            logger.warning(f"Unknown issue action for {event.entity_id}")

        outcomes = await self.router.run(event, diff)
        return {
            "success": True,
            "action": event.action.value,
            "issueId": event.entity_id,
            "hasChanges": diff.has_changes,
            "changeTypes": diff.changed_fields(),
            "flows": [outcome.to_dict() for outcome in outcomes],
        }

    async def process_cycle(self, event: WebhookEvent) -> dict:
        """Regenerate the retrospective on cycle updates."""
        cycle = event.cycle()
        if event.action != EventAction.UPDATE:
            return {"success": True, "action": event.action.value, "cycleId": cycle.id}

        if self.retro_require_completed and cycle.is_active:
            logger.info(f"Cycle {cycle.id} not completed, skipping retrospective")
            return {
                "success": True,
                "action": "retrospective-skipped",
                "cycleId": cycle.id,
            }

        result = await self.retrospectives.generate(cycle)
        return result.to_dict()
