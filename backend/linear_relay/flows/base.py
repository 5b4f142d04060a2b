"""Base classes for issue flows."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..changes import ChangeDiff
from ..events import WebhookEvent
from ..models import IssueData


class FlowStatus(Enum):
    """How a flow run ended."""

    TRIGGERED = "triggered"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class FlowDecision:
    """Result of a flow's gating predicate.

    Attributes:
        triggered: Whether the flow should act
        reason: Why it fires, or why it does not
    """

    triggered: bool
    reason: str = ""


@dataclass
class FlowOutcome:
    """Result of a flow run.

    Attributes:
        flow: Flow name
        status: Triggered, skipped or failed
        message: Human-readable result message
        details: Extra values for the webhook response (document id...)
    """

    flow: str
    status: FlowStatus
    message: str = ""
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "flow": self.flow,
            "status": self.status.value,
            "message": self.message,
            **self.details,
        }


class Flow(ABC):
    """A gated notification or document-sync behavior over a ChangeDiff."""

    name: str = "flow"

    @abstractmethod
    def evaluate(self, issue: IssueData, diff: ChangeDiff) -> FlowDecision:
        """Decide whether the flow fires for this issue and diff."""
        pass

    @abstractmethod
    async def execute(
        self,
        event: WebhookEvent,
        issue: IssueData,
        diff: ChangeDiff,
        decision: FlowDecision,
    ) -> FlowOutcome:
        """Perform the flow's side effect."""
        pass

    async def run(
        self, event: WebhookEvent, diff: ChangeDiff, issue: Optional[IssueData] = None
    ) -> FlowOutcome:
        issue = issue or event.issue()
        decision = self.evaluate(issue, diff)
        if not decision.triggered:
            return self.skipped(decision.reason)
        return await self.execute(event, issue, diff, decision)

    def skipped(self, message: str, **details) -> FlowOutcome:
        return FlowOutcome(self.name, FlowStatus.SKIPPED, message, details)

    def triggered(self, message: str, **details) -> FlowOutcome:
        return FlowOutcome(self.name, FlowStatus.TRIGGERED, message, details)

    def failed(self, message: str, **details) -> FlowOutcome:
        return FlowOutcome(self.name, FlowStatus.FAILED, message, details)
