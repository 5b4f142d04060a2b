"""Release document synchronisation.

One release document per story label, titled with the label name. The
document is (re)generated from every issue carrying the label, but only
while its front matter says ``release_status: not_released``; any other
status is a manual lock.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from .config import Settings
from .formatter import ReleaseStatus, format_release_document, parse_front_matter
from .gateways.base import DocumentStore, EntityGateway, GatewayError

logger = logging.getLogger(__name__)


class SyncAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ReleaseSyncResult:
    """Result of a release document sync.

    Attributes:
        action: What happened to the document
        label_name: Story label the document belongs to
        message: Human-readable result message
        document_id: Created or updated document
        ticket_count: Issues listed in the document
        release_at: Release date written to the document
    """

    action: SyncAction
    label_name: str
    message: str = ""
    document_id: Optional[str] = None
    ticket_count: int = 0
    release_at: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.action != SyncAction.FAILED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReleaseDocumentSync:
    """Creates or refreshes the release document of a story label."""

    def __init__(
        self,
        gateway: EntityGateway,
        store: DocumentStore,
        settings: Settings,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.gateway = gateway
        self.store = store
        self.collection_id = settings.slite_release_collection_id
        self.lead_days = settings.release_lead_days
        self._now = now

    def default_release_date(self) -> str:
        today: date = self._now().date()
        return (today + timedelta(days=self.lead_days)).isoformat()

    async def sync(self, label_id: str, label_name: str) -> ReleaseSyncResult:
        """Sync the release document for a story label.

        Args:
            label_id: Story label id, used to fetch the label's issues
            label_name: Story label name, used as document title

        Returns:
            ReleaseSyncResult describing what was done
        """
        try:
            existing = await self.store.find_document_by_title(
                label_name, self.collection_id
            )
        except GatewayError as e:
            logger.error(f"Release document lookup failed for {label_name!r}: {e}")
            return ReleaseSyncResult(SyncAction.FAILED, label_name, str(e))

        release_at = self.default_release_date()
        if existing is not None:
            metadata = parse_front_matter(existing.content)
            if metadata.status.is_locked:
                logger.info(
                    f"Release document {label_name!r} is {metadata.raw_status!r}, "
                    "leaving it untouched"
                )
                return ReleaseSyncResult(
                    SyncAction.SKIPPED,
                    label_name,
                    f"document locked ({metadata.raw_status})",
                    document_id=existing.id,
                    release_at=metadata.release_at,
                )
            release_at = metadata.release_at or release_at

        issues = await self.gateway.get_issues_by_label(label_id)
        if not issues:
            logger.error(f"No issues fetched for story label {label_name!r}")
            return ReleaseSyncResult(
                SyncAction.FAILED, label_name, "no issues fetched for label"
            )
        logger.info(f"Found {len(issues)} issues with label {label_name!r}")

        content = format_release_document(
            label_name,
            release_at,
            ReleaseStatus.NOT_RELEASED,
            issues,
            generated_at=self._now(),
        )

        if existing is not None:
            result = await self.store.update_document(existing.id, content)
            action = SyncAction.UPDATED
        else:
            result = await self.store.create_document(
                label_name, content, self.collection_id
            )
            action = SyncAction.CREATED

        if not result.success:
            logger.error(
                f"Failed to write release document {label_name!r}: {result.message}"
            )
            return ReleaseSyncResult(SyncAction.FAILED, label_name, result.message)

        logger.info(f"Release document {label_name!r} {action.value}")
        return ReleaseSyncResult(
            action,
            label_name,
            result.message,
            document_id=result.document_id or (existing.id if existing else None),
            ticket_count=len(issues),
            release_at=release_at,
        )
