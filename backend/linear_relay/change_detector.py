"""Change detector for issue webhooks.

Builds a ChangeDiff from the current issue snapshot and the partial prior
state Linear embeds in update webhooks (``updatedFrom``). Nothing is stored
between requests: prior values come from the payload plus on-demand lookups
through the injected gateway.
"""

import logging
from typing import Optional

from .changes import ChangeDiff, FieldChange, LabelChange, LabelConfidence
from .config import Settings
from .events import EventAction, WebhookEvent
from .gateways.base import EntityGateway
from .models import (
    CycleData,
    CycleRef,
    IssueData,
    Label,
    ProjectRef,
    UpdatedFrom,
    UserRef,
    WorkflowState,
)

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Detects semantically meaningful changes in issue events."""

    def __init__(self, gateway: EntityGateway, settings: Settings):
        self.gateway = gateway
        self.flagged_label_name = settings.flagged_label_name

    async def detect_changes(self, event: WebhookEvent) -> ChangeDiff:
        """Produce the diff for an issue event.

        Args:
            event: Parsed issue webhook

        Returns:
            ChangeDiff; empty for removals, unknown actions and updates
            without prior state
        """
        issue = event.issue()

        if event.action == EventAction.CREATE:
            diff = self._diff_created(issue)
        elif event.action == EventAction.UPDATE and event.prior is not None:
            diff = await self._diff_updated(issue, event.prior)
        else:
            logger.debug(
                f"No changes detected for {issue.id}: action={event.action.value} "
                f"has_prior={event.prior is not None}"
            )
            return ChangeDiff()

        diff.cycle_details = await self._fetch_cycle_details(issue)

        logger.info(
            f"Change detection completed for {issue.id}: "
            f"changes={diff.changed_fields()}"
        )
        return diff

    def _diff_created(self, issue: IssueData) -> ChangeDiff:
        """Everything on a new issue counts as changed."""
        return ChangeDiff(
            status=FieldChange(True, issue.state or WorkflowState()),
            priority=FieldChange(True, issue.priority or 0),
            assignee=FieldChange(True, issue.assignee),
            cycle=FieldChange(True, issue.cycle),
            project=FieldChange(True, issue.project),
            title=FieldChange(True, issue.title or ""),
            description=FieldChange(True, issue.description),
            estimate=FieldChange(True, issue.estimate),
            labels=LabelChange(
                changed=True,
                confidence=LabelConfidence.CONFIRMED,
                added=list(issue.labels),
                current=list(issue.labels),
            ),
        )

    async def _diff_updated(self, issue: IssueData, prior: UpdatedFrom) -> ChangeDiff:
        diff = ChangeDiff()
        diff.status = await self._status_change(issue, prior)

        # Missing priority means "No priority" (0) on both sides
        current_priority = issue.priority or 0
        previous_priority = prior.priority or 0
        if prior.has("priority") and previous_priority != current_priority:
            diff.priority = FieldChange(True, current_priority, previous_priority)
            logger.info(
                f"Priority change detected for {issue.id}: "
                f"{previous_priority} -> {current_priority}"
            )

        if prior.has("assignee_id"):
            current_id = issue.assignee.id if issue.assignee else None
            if current_id != prior.assignee_id:
                previous = (
                    UserRef(id=prior.assignee_id) if prior.assignee_id else None
                )
                diff.assignee = FieldChange(True, issue.assignee, previous)
                logger.info(
                    f"Assignee change detected for {issue.id}: "
                    f"{prior.assignee_id or 'Unassigned'} -> {current_id or 'Unassigned'}"
                )

        if prior.has("cycle_id"):
            current_id = issue.cycle.id if issue.cycle else None
            if current_id != prior.cycle_id:
                previous = CycleRef(id=prior.cycle_id) if prior.cycle_id else None
                diff.cycle = FieldChange(True, issue.cycle, previous)
                logger.info(
                    f"Cycle change detected for {issue.id}: "
                    f"{prior.cycle_id or 'No cycle'} -> {current_id or 'No cycle'}"
                )

        if prior.has("project_id"):
            current_id = issue.project.id if issue.project else None
            if current_id != prior.project_id:
                previous = (
                    ProjectRef(id=prior.project_id) if prior.project_id else None
                )
                diff.project = FieldChange(True, issue.project, previous)
                logger.info(
                    f"Project change detected for {issue.id}: "
                    f"{prior.project_id or 'No project'} -> {current_id or 'No project'}"
                )

        if prior.has("title") and prior.title != issue.title:
            diff.title = FieldChange(True, issue.title or "", prior.title)
            logger.info(f"Title change detected for {issue.id}")

        if prior.has("description") and prior.description != issue.description:
            diff.description = FieldChange(True, issue.description, prior.description)
            logger.info(f"Description change detected for {issue.id}")

        if prior.has("estimate") and prior.estimate != issue.estimate:
            diff.estimate = FieldChange(True, issue.estimate, prior.estimate)
            logger.info(
                f"Estimate change detected for {issue.id}: "
                f"{prior.estimate} -> {issue.estimate}"
            )

        diff.labels = self._label_change(issue, prior, other_changes=diff.has_changes)
        return diff

    async def _status_change(
        self, issue: IssueData, prior: UpdatedFrom
    ) -> Optional[FieldChange]:
        """Status change, confirmed by resolving the prior state id.

        An unresolvable prior state is insufficient evidence: no change is
        reported even though the ids differ.
        """
        current = issue.state
        if not prior.state_id or not current or not current.id:
            return None
        if prior.state_id == current.id:
            return None

        previous = await self.gateway.get_workflow_state(prior.state_id)
        if previous is None:
            logger.warning(
                f"Previous state {prior.state_id} of {issue.id} could not be "
                "resolved, not reporting a status change"
            )
            return None

        logger.info(
            f"Status change detected for {issue.id}: "
            f"{previous.name} -> {current.name}"
        )
        return FieldChange(True, current, previous)

    def _label_change(
        self, issue: IssueData, prior: UpdatedFrom, other_changes: bool
    ) -> LabelChange:
        """Label diff; exact when prior label ids are known, heuristic otherwise."""
        current = list(issue.labels)

        if prior.has("label_ids") and prior.label_ids is not None:
            previous_ids = set(prior.label_ids)
            current_ids = {label.id for label in current}
            added = [label for label in current if label.id not in previous_ids]
            removed = [
                Label(id=label_id, name="Unknown")
                for label_id in prior.label_ids
                if label_id not in current_ids
            ]
            return LabelChange(
                changed=bool(added or removed),
                confidence=LabelConfidence.CONFIRMED,
                added=added,
                removed=removed,
                current=current,
            )

        flagged = [label for label in current if label.name == self.flagged_label_name]
        if flagged or (current and not other_changes):
            logger.debug(
                f"Label change assumed for {issue.id}: flagged={bool(flagged)} "
                f"labels={[label.name for label in current]} other_changes={other_changes}"
            )
            return LabelChange(
                changed=True,
                confidence=LabelConfidence.HEURISTIC,
                added=flagged,
                current=current,
            )

        return LabelChange(
            changed=False, confidence=LabelConfidence.UNKNOWN, current=current
        )

    async def _fetch_cycle_details(self, issue: IssueData) -> Optional[CycleData]:
        """Fetch the issue's current cycle; None when absent or unavailable."""
        if not issue.cycle or not issue.cycle.id:
            return None

        try:
            details = await self.gateway.get_cycle(issue.cycle.id)
        except Exception as e:
            logger.warning(
                f"Error fetching cycle {issue.cycle.id} for {issue.id}: {e}"
            )
            return None

        if details is None:
            logger.warning(f"Cycle {issue.cycle.id} for {issue.id} not available")
        return details
