"""Change diff value types produced by the change detector."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, TypeVar

from .models import CycleData, Label

T = TypeVar("T")

TRACKED_FIELDS = (
    "status",
    "priority",
    "assignee",
    "cycle",
    "project",
    "title",
    "description",
    "estimate",
)


class LabelConfidence(Enum):
    """How sure the detector is about a label change.

    CONFIRMED: prior label ids were known (or the issue was just created).
    HEURISTIC: inferred from the current labels alone.
    UNKNOWN: no evidence either way.
    """

    CONFIRMED = "confirmed"
    HEURISTIC = "heuristic"
    UNKNOWN = "unknown"


@dataclass
class FieldChange(Generic[T]):
    """Diff of a single tracked field."""

    changed: bool
    current: Optional[T] = None
    previous: Optional[T] = None


@dataclass
class LabelChange:
    """Diff of the label set."""

    changed: bool
    confidence: LabelConfidence = LabelConfidence.UNKNOWN
    added: list[Label] = field(default_factory=list)
    removed: list[Label] = field(default_factory=list)
    current: list[Label] = field(default_factory=list)
    previous: list[Label] = field(default_factory=list)


@dataclass
class ChangeDiff:
    """Structured diff of an issue event.

    Fields the detector has no evidence about are left as ``None``; they are
    never inferred. ``cycle_details`` is the enrichment fetched for the
    issue's current cycle, regardless of which field triggered the event.
    """

    status: Optional[FieldChange] = None
    priority: Optional[FieldChange] = None
    assignee: Optional[FieldChange] = None
    cycle: Optional[FieldChange] = None
    project: Optional[FieldChange] = None
    title: Optional[FieldChange] = None
    description: Optional[FieldChange] = None
    estimate: Optional[FieldChange] = None
    labels: Optional[LabelChange] = None
    cycle_details: Optional[CycleData] = None

    def is_changed(self, name: str) -> bool:
        change = getattr(self, name)
        return bool(change and change.changed)

    def changed_fields(self) -> list[str]:
        """Names of the fields flagged as changed, labels last."""
        names = [name for name in TRACKED_FIELDS if self.is_changed(name)]
        if self.is_changed("labels"):
            names.append("labels")
        return names

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_fields())

    @property
    def previous_status_name(self) -> Optional[str]:
        if self.status and self.status.previous:
            return self.status.previous.name
        return None
