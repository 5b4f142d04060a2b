"""Linear GraphQL gateway."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import Comment, CycleData, IssueData, WorkflowState
from .base import EntityGateway, GatewayError

logger = logging.getLogger(__name__)

ISSUE_FIELDS = """
    id
    title
    description
    url
    identifier
    estimate
    priority
    state { id name type }
    assignee { id name email }
    labels { nodes { id name color parent { id } } }
    team { id name key }
    cycle { id name number }
    project { id name }
"""

WORKFLOW_STATE_QUERY = """
query GetWorkflowState($id: String!) {
  workflowState(id: $id) { id name type }
}
"""

CYCLE_QUERY = """
query GetCycle($id: String!) {
  cycle(id: $id) { id name number startsAt endsAt completedAt }
}
"""

ISSUES_BY_LABEL_QUERY = f"""
query GetIssuesByLabel($labelId: ID!, $first: Int) {{
  issues(filter: {{ labels: {{ id: {{ eq: $labelId }} }} }}, first: $first) {{
    nodes {{ {ISSUE_FIELDS} }}
  }}
}}
"""

ISSUES_BY_LABEL_PARENT_QUERY = f"""
query GetIssuesByLabelParent($parentId: ID!, $first: Int) {{
  issues(
    filter: {{ labels: {{ parent: {{ id: {{ eq: $parentId }} }} }} }}
    first: $first
    orderBy: updatedAt
  ) {{
    nodes {{ {ISSUE_FIELDS} }}
  }}
}}
"""

ISSUES_BY_CYCLE_QUERY = f"""
query GetIssuesByCycle($cycleId: ID!, $first: Int) {{
  issues(filter: {{ cycle: {{ id: {{ eq: $cycleId }} }} }}, first: $first) {{
    nodes {{ {ISSUE_FIELDS} }}
  }}
}}
"""

ISSUE_COMMENTS_QUERY = """
query GetIssueComments($id: String!, $first: Int) {
  issue(id: $id) {
    comments(first: $first) {
      nodes { id body createdAt user { id name } }
    }
  }
}
"""


def _convert_issue(node: dict) -> IssueData:
    """Flatten a GraphQL issue node into the webhook issue shape."""
    labels = [
        {
            "id": label.get("id", ""),
            "name": label.get("name", ""),
            "color": label.get("color", ""),
            "parentId": (label.get("parent") or {}).get("id"),
        }
        for label in (node.get("labels") or {}).get("nodes", [])
    ]
    return IssueData.model_validate({**node, "labels": labels})


class LinearGateway(EntityGateway):
    """Entity gateway backed by Linear's GraphQL API."""

    def __init__(self, settings: Settings):
        self.api_key = settings.linear_api_key
        self.api_url = settings.linear_api_url
        self.timeout = settings.http_timeout_seconds
        self.issues_page_size = settings.issues_page_size
        self.comments_page_size = settings.comments_page_size
        self._client: Optional[httpx.AsyncClient] = None
        if not self.api_key:
            logger.warning("LINEAR_API_KEY not configured")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": self.api_key,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _query(self, query: str, variables: dict[str, Any]) -> dict:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            GatewayError: On missing credentials, transport, decoding or
                GraphQL errors
        """
        if not self.api_key:
            raise GatewayError("Linear API key not configured")

        try:
            client = await self._get_client()
            response = await client.post(
                self.api_url, json={"query": query, "variables": variables}
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise GatewayError(
                f"Linear error {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.RequestError as e:
            raise GatewayError(f"Connection error: {e}") from e
        except ValueError as e:
            raise GatewayError(f"Invalid JSON from Linear: {e}") from e

        if not isinstance(payload, dict):
            raise GatewayError(f"Unexpected Linear response: {payload!r:.200}")
        if payload.get("errors"):
            raise GatewayError(f"Linear GraphQL errors: {payload['errors']}")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise GatewayError(f"Unexpected Linear data: {data!r:.200}")
        return data

    async def get_workflow_state(self, state_id: str) -> Optional[WorkflowState]:
        """Resolve a workflow state id to its name and category."""
        try:
            data = await self._query(WORKFLOW_STATE_QUERY, {"id": state_id})
            node = data.get("workflowState")
            return WorkflowState.model_validate(node) if node else None
        except (GatewayError, ValidationError) as e:
            logger.error(
                f"get_workflow_state failed: state_id={state_id} error={e}"
            )
            return None

    async def get_cycle(self, cycle_id: str) -> Optional[CycleData]:
        """Fetch cycle details (dates and completion)."""
        try:
            data = await self._query(CYCLE_QUERY, {"id": cycle_id})
            node = data.get("cycle")
            return CycleData.model_validate(node) if node else None
        except (GatewayError, ValidationError) as e:
            logger.error(f"get_cycle failed: cycle_id={cycle_id} error={e}")
            return None

    async def _get_issues(
        self, operation: str, query: str, variables: dict[str, Any]
    ) -> list[IssueData]:
        try:
            data = await self._query(
                query, {**variables, "first": self.issues_page_size}
            )
            nodes = (data.get("issues") or {}).get("nodes", [])
            return [_convert_issue(node) for node in nodes]
        except (GatewayError, ValidationError) as e:
            logger.error(f"{operation} failed: {variables} error={e}")
            return []

    async def get_issues_by_label(self, label_id: str) -> list[IssueData]:
        return await self._get_issues(
            "get_issues_by_label", ISSUES_BY_LABEL_QUERY, {"labelId": label_id}
        )

    async def get_issues_by_label_parent(self, parent_id: str) -> list[IssueData]:
        return await self._get_issues(
            "get_issues_by_label_parent",
            ISSUES_BY_LABEL_PARENT_QUERY,
            {"parentId": parent_id},
        )

    async def get_issues_by_cycle(self, cycle_id: str) -> list[IssueData]:
        return await self._get_issues(
            "get_issues_by_cycle", ISSUES_BY_CYCLE_QUERY, {"cycleId": cycle_id}
        )

    async def get_issue_comments(self, issue_id: str) -> list[Comment]:
        """Fetch the first page of an issue's comments."""
        try:
            data = await self._query(
                ISSUE_COMMENTS_QUERY,
                {"id": issue_id, "first": self.comments_page_size},
            )
            issue = data.get("issue") or {}
            nodes = (issue.get("comments") or {}).get("nodes", [])
            return [Comment.model_validate(node) for node in nodes]
        except (GatewayError, ValidationError) as e:
            logger.error(f"get_issue_comments failed: issue_id={issue_id} error={e}")
            return []
