"""Issue flows: independent notification and document-sync behaviors."""

from typing import Optional

from ..alert_cache import AlertDeduper
from ..config import Settings
from ..gateways.base import DocumentStore, EntityGateway
from ..notifier import SlackNotifier
from ..release import ReleaseDocumentSync
from .base import Flow, FlowDecision, FlowOutcome, FlowStatus
from .cycle_status import CycleStatusFlow
from .fireman import FiremanValidationFlow
from .release import ReleaseFlow

__all__ = [
    "Flow",
    "FlowDecision",
    "FlowOutcome",
    "FlowStatus",
    "CycleStatusFlow",
    "FiremanValidationFlow",
    "ReleaseFlow",
    "build_issue_flows",
]


def build_issue_flows(
    settings: Settings,
    gateway: EntityGateway,
    store: DocumentStore,
    notifier: SlackNotifier,
    deduper: Optional[AlertDeduper] = None,
) -> list[Flow]:
    """Build the flows run for every changed issue.

    Args:
        settings: Application settings
        gateway: Tracker gateway
        store: Document store for release documents
        notifier: Slack sink
        deduper: Alert cache shared across requests (optional)

    Returns:
        Flows in no particular order; they are independent
    """
    return [
        FiremanValidationFlow(settings, notifier, deduper),
        CycleStatusFlow(settings, notifier),
        ReleaseFlow(settings, ReleaseDocumentSync(gateway, store, settings)),
    ]
