"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from linear_relay.config import Settings
from linear_relay.events import WebhookEvent
from linear_relay.gateways.base import (
    Document,
    DocumentResult,
    DocumentStore,
    EntityGateway,
    GatewayError,
)
from linear_relay.models import Comment, CycleData, IssueData, WebhookPayload, WorkflowState

STORY_PARENT_ID = "story-parent"
TEAM_NAME = "Engineering - PRODUCT"
FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)

STATES = {
    "state-todo": WorkflowState(id="state-todo", name="Todo", type="unstarted"),
    "state-progress": WorkflowState(
        id="state-progress", name="In Progress", type="started"
    ),
    "state-qa": WorkflowState(id="state-qa", name="QA Testing", type="started"),
    "state-done": WorkflowState(id="state-done", name="Done", type="completed"),
    "state-fireman": WorkflowState(
        id="state-fireman", name="Fireman Validation", type="started"
    ),
}


class FakeGateway(EntityGateway):
    """In-memory tracker."""

    def __init__(self):
        self.states = dict(STATES)
        self.cycles: dict[str, CycleData] = {}
        self.issues_by_label: dict[str, list[IssueData]] = {}
        self.issues_by_cycle: dict[str, list[IssueData]] = {}
        self.comments: dict[str, list[Comment]] = {}
        self.failing_comments: set[str] = set()
        self.calls: list[tuple] = []

    async def get_workflow_state(self, state_id: str) -> Optional[WorkflowState]:
        self.calls.append(("get_workflow_state", state_id))
        return self.states.get(state_id)

    async def get_cycle(self, cycle_id: str) -> Optional[CycleData]:
        self.calls.append(("get_cycle", cycle_id))
        return self.cycles.get(cycle_id)

    async def get_issues_by_label(self, label_id: str) -> list[IssueData]:
        self.calls.append(("get_issues_by_label", label_id))
        return list(self.issues_by_label.get(label_id, []))

    async def get_issues_by_label_parent(self, parent_id: str) -> list[IssueData]:
        self.calls.append(("get_issues_by_label_parent", parent_id))
        return []

    async def get_issues_by_cycle(self, cycle_id: str) -> list[IssueData]:
        self.calls.append(("get_issues_by_cycle", cycle_id))
        return list(self.issues_by_cycle.get(cycle_id, []))

    async def get_issue_comments(self, issue_id: str) -> list[Comment]:
        self.calls.append(("get_issue_comments", issue_id))
        if issue_id in self.failing_comments:
            raise RuntimeError("comments unavailable")
        return list(self.comments.get(issue_id, []))


class FakeDocumentStore(DocumentStore):
    """In-memory document store."""

    def __init__(self):
        self.documents: dict[str, Document] = {}
        self.fail_writes = False
        self.fail_reads = False
        self.writes: list[tuple] = []
        self._next_id = 1

    def add(self, title: str, content: str, collection_id: str) -> Document:
        doc = Document(
            id=f"doc-{self._next_id}",
            title=title,
            content=content,
            parent_id=collection_id,
        )
        self._next_id += 1
        self.documents[doc.id] = doc
        return doc

    async def list_documents(self, collection_id: str) -> list[Document]:
        if self.fail_reads:
            raise GatewayError("store unreachable")
        return [d for d in self.documents.values() if d.parent_id == collection_id]

    async def get_document(self, document_id: str) -> Optional[Document]:
        return self.documents.get(document_id)

    async def find_document_by_title(
        self, title: str, collection_id: str
    ) -> Optional[Document]:
        for doc in await self.list_documents(collection_id):
            if doc.title.lower() == title.lower():
                return doc
        return None

    async def create_document(
        self, title: str, markdown: str, collection_id: str
    ) -> DocumentResult:
        self.writes.append(("create", title))
        if self.fail_writes:
            return DocumentResult(success=False, message="Slite error 500")
        doc = self.add(title, markdown, collection_id)
        return DocumentResult(success=True, message="created", document_id=doc.id)

    async def update_document(self, document_id: str, markdown: str) -> DocumentResult:
        self.writes.append(("update", document_id))
        if self.fail_writes:
            return DocumentResult(success=False, message="Slite error 500")
        self.documents[document_id].content = markdown
        return DocumentResult(success=True, message="updated", document_id=document_id)


@pytest.fixture
def settings():
    """Settings with test values, independent of the environment."""
    return Settings(
        _env_file=None,
        linear_api_key="lin-test",
        slite_api_key="slite-test",
        slite_release_collection_id="release-collection",
        slite_retro_collection_id="retro-collection",
        slack_webhook_fireman_url="https://hooks.slack.test/fireman",
        slack_webhook_cycle_status_url="https://hooks.slack.test/cycle",
        story_label_parent_id=STORY_PARENT_ID,
        cycle_team_name=TEAM_NAME,
        linear_webhook_secret="",
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return FakeDocumentStore()


def make_issue(**overrides) -> dict:
    """Raw issue webhook data (camelCase, as Linear sends it)."""
    data = {
        "id": "issue-1",
        "identifier": "ENG-42",
        "title": "Fix checkout",
        "url": "https://linear.app/acme/issue/ENG-42",
        "priority": 3,
        "estimate": 3,
        "state": {"id": "state-progress", "name": "In Progress", "type": "started"},
        "team": {"id": "team-1", "name": TEAM_NAME},
        "labels": [],
    }
    data.update(overrides)
    return data


def make_event(
    action: str = "update",
    data: Optional[dict] = None,
    updated_from: Optional[dict] = None,
    type: str = "Issue",
) -> WebhookEvent:
    payload = {
        "action": action,
        "type": type,
        "data": data if data is not None else make_issue(),
        "organizationId": "org-1",
        "webhookTimestamp": 1767225600000,
        "webhookId": "hook-1",
    }
    if updated_from is not None:
        payload["updatedFrom"] = updated_from
    return WebhookEvent.from_payload(WebhookPayload.model_validate(payload))


def tracker_issue(
    id: str,
    state: str,
    estimate: Optional[float],
    assignee: Optional[str] = None,
    state_type: str = "started",
    identifier: Optional[str] = None,
) -> IssueData:
    """Issue as returned by the tracker gateway."""
    return IssueData.model_validate(
        {
            "id": id,
            "identifier": identifier or id.upper(),
            "title": f"Issue {id}",
            "url": f"https://linear.app/acme/issue/{id}",
            "estimate": estimate,
            "state": {"id": f"s-{state}", "name": state, "type": state_type},
            "assignee": {"id": f"u-{assignee}", "name": assignee} if assignee else None,
        }
    )
