"""Webhook event data classes."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .models import CycleData, IssueData, UpdatedFrom, WebhookPayload


class EventAction(Enum):
    """Actions a Linear webhook can report."""

    CREATE = "create"
    UPDATE = "update"
    REMOVE = "remove"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "EventAction":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN


class EntityType(Enum):
    """Entity types the relay receives webhooks for."""

    ISSUE = "Issue"
    CYCLE = "Cycle"
    COMMENT = "Comment"
    PROJECT = "Project"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str) -> "EntityType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class WebhookEvent:
    """A parsed inbound webhook, alive for one request only.

    Attributes:
        action: What happened to the entity
        entity_type: Which kind of entity the event describes
        data: Current entity snapshot, raw
        prior: Prior values of changed fields (updates only)
        raw_type: Entity type as sent, kept for unknown types
        organization_id: Linear organization
        webhook_id: Webhook delivery id
        timestamp: Webhook timestamp (ms since epoch)
    """

    action: EventAction
    entity_type: EntityType
    data: dict[str, Any]
    prior: Optional[UpdatedFrom] = None
    raw_type: str = ""
    organization_id: Optional[str] = None
    webhook_id: Optional[str] = None
    timestamp: Optional[int] = None
    url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: WebhookPayload) -> "WebhookEvent":
        prior = None
        if payload.updated_from is not None:
            prior = UpdatedFrom.model_validate(payload.updated_from)
        return cls(
            action=EventAction.parse(payload.action),
            entity_type=EntityType.parse(payload.type),
            data=payload.data,
            prior=prior,
            raw_type=payload.type,
            organization_id=payload.organization_id,
            webhook_id=payload.webhook_id,
            timestamp=payload.webhook_timestamp,
            url=payload.url,
        )

    @property
    def entity_id(self) -> Optional[str]:
        return self.data.get("id")

    def issue(self) -> IssueData:
        """Current data as an issue snapshot."""
        issue = IssueData.model_validate(self.data)
        if not issue.url and self.url:
            issue.url = self.url
        return issue

    def cycle(self) -> CycleData:
        """Current data as a cycle snapshot."""
        return CycleData.model_validate(self.data)
