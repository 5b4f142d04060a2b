"""Pydantic models for Linear webhook payloads and tracker entities.

Only the fields the relay consumes are modelled; everything else in the
payload is ignored.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LinearModel(BaseModel):
    """Base model accepting Linear's camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class WorkflowState(LinearModel):
    """Workflow state; ``type`` is the category (unstarted, started, completed...)."""

    id: str = ""
    name: str = "Unknown"
    type: str = "unstarted"


class UserRef(LinearModel):
    id: str
    name: str = "Unknown"
    email: Optional[str] = None


class TeamRef(LinearModel):
    id: str
    name: Optional[str] = None
    key: Optional[str] = None


class ProjectRef(LinearModel):
    id: str
    name: Optional[str] = None


class CycleRef(LinearModel):
    id: str
    name: Optional[str] = None
    number: Optional[int] = None


class Label(LinearModel):
    id: str = ""
    name: str
    color: str = ""
    parent_id: Optional[str] = None


class IssueData(LinearModel):
    """Issue snapshot, either from a webhook or from a tracker query."""

    id: str
    identifier: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    estimate: Optional[float] = None
    priority: Optional[int] = None
    state: Optional[WorkflowState] = None
    assignee: Optional[UserRef] = None
    team: Optional[TeamRef] = None
    project: Optional[ProjectRef] = None
    cycle: Optional[CycleRef] = None
    labels: list[Label] = []

    @property
    def link(self) -> str:
        """Deep link to the issue."""
        return self.url or f"https://linear.app/issue/{self.identifier or self.id}"

    @property
    def display_identifier(self) -> str:
        return self.identifier or "N/A"

    @property
    def display_title(self) -> str:
        return self.title or "Untitled Issue"

    @property
    def points(self) -> float:
        """Story points, absent counted as zero."""
        return self.estimate or 0

    @property
    def assignee_name(self) -> str:
        return self.assignee.name if self.assignee else "Unassigned"


class UpdatedFrom(LinearModel):
    """Prior values of the fields changed by an update.

    A field missing from the payload is not the same as a field present with
    ``null``; use :meth:`has` to tell them apart.
    """

    state_id: Optional[str] = None
    priority: Optional[int] = None
    assignee_id: Optional[str] = None
    cycle_id: Optional[str] = None
    project_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    estimate: Optional[float] = None
    label_ids: Optional[list[str]] = None

    def has(self, field: str) -> bool:
        return field in self.model_fields_set


class CycleData(LinearModel):
    """Cycle as carried by a Cycle webhook or returned by the tracker."""

    id: str
    name: Optional[str] = None
    title: Optional[str] = None
    number: Optional[int] = None
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    completed_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.title or self.name:
            return self.title or self.name
        if self.number is not None:
            return f"Cycle {self.number}"
        return f"Cycle-{self.id}"

    @property
    def is_active(self) -> bool:
        return not self.completed_at


class Comment(LinearModel):
    id: str
    body: str = ""
    user: Optional[UserRef] = None
    created_at: Optional[str] = None


class WebhookPayload(LinearModel):
    """Envelope of an inbound Linear webhook."""

    action: str
    type: str
    data: dict[str, Any]
    organization_id: Optional[str] = None
    webhook_timestamp: Optional[int] = None
    webhook_id: Optional[str] = None
    updated_from: Optional[dict[str, Any]] = None
    url: Optional[str] = None
