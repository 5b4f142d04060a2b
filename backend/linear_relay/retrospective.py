"""Cycle retrospective generator.

Triggered by cycle updates: fetches every issue of the cycle and its
comments, counts reopen mentions, aggregates story points per assignee and
writes a ``Retrospective-<cycle name>`` document into the retrospective
collection. The document is regenerated wholesale each time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import Settings
from .formatter import (
    BUCKET_NAMES,
    DONE_BUCKET,
    AssigneePoints,
    aggregate_story_points,
    format_front_matter,
    format_points,
    markdown_table,
    percentage,
)
from .gateways.base import DocumentStore, EntityGateway, GatewayError
from .models import Comment, CycleData, IssueData

logger = logging.getLogger(__name__)

# Textual hints that an issue bounced back; no state history is reconstructed
REOPEN_KEYWORDS = (
    "reopened",
    "back to todo",
    "back to in progress",
    "moved to todo",
    "moved to in progress",
    "reverted",
    "rolled back",
)

COMPLETION_TARGET = 80.0
MAX_COMMENT_SUMMARY_ROWS = 10
REOPEN_CAUSES = (
    "Quality assurance issues",
    "Incomplete requirements",
    "Technical debt",
    "Integration problems",
    "Missing edge cases",
)


@dataclass
class IssueAnalysis:
    """An issue of the cycle with its comments and reopen count."""

    issue: IssueData
    comments: list[Comment] = field(default_factory=list)
    reopened_count: int = 0

    @property
    def is_completed(self) -> bool:
        return bool(self.issue.state and self.issue.state.type == "completed")


@dataclass
class CycleMetrics:
    """Cycle-wide totals."""

    total_points: float
    completed_points: float
    completion_rate: float
    total_issues: int
    reopened_issues: int


@dataclass
class RetrospectiveResult:
    """Result of a retrospective generation."""

    success: bool
    cycle_id: str
    title: str
    action: str = ""
    message: str = ""
    document_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "action": self.action,
            "cycleId": self.cycle_id,
            "title": self.title,
            "documentId": self.document_id,
            "message": self.message,
        }


def count_reopen_mentions(comments: list[Comment]) -> int:
    """Number of comments mentioning a reopen keyword (case-insensitive)."""
    return sum(
        1
        for comment in comments
        if any(keyword in (comment.body or "").lower() for keyword in REOPEN_KEYWORDS)
    )


def build_assignee_stats(analyses: list[IssueAnalysis]) -> list[AssigneePoints]:
    """Story points per assignee, largest total first, ties by name."""
    summary = aggregate_story_points(a.issue for a in analyses)
    return sorted(summary.assignees, key=lambda a: (-a.total, a.name))


def compute_cycle_metrics(analyses: list[IssueAnalysis]) -> CycleMetrics:
    total = sum(a.issue.points for a in analyses)
    completed = sum(a.issue.points for a in analyses if a.is_completed)
    return CycleMetrics(
        total_points=total,
        completed_points=completed,
        completion_rate=percentage(completed, total),
        total_issues=len(analyses),
        reopened_issues=sum(1 for a in analyses if a.reopened_count > 0),
    )


def _issues_table(analyses: list[IssueAnalysis]) -> str:
    rows = []
    for analysis in analyses:
        issue = analysis.issue
        state_name = issue.state.name if issue.state else "Unknown"
        icon = "✅" if analysis.is_completed else "❌"
        rows.append(
            [
                issue.assignee_name,
                f"{icon} {state_name}",
                format_points(issue.points),
                f"[[{issue.display_identifier}] {issue.display_title}]({issue.link})",
            ]
        )
    return markdown_table(["Person", "Status", "Story Points", "Ticket"], rows)


def _assignee_table(stats: list[AssigneePoints]) -> str:
    rows = [
        [a.name]
        + [format_points(a.buckets[b]) for b in BUCKET_NAMES]
        + [format_points(a.total), f"{a.percentage(DONE_BUCKET):.1f}%"]
        for a in stats
    ]
    return markdown_table(
        ["Person", *BUCKET_NAMES, "Total", "Completion %"], rows
    )


def _reopened_section(analyses: list[IssueAnalysis]) -> str:
    reopened = [a for a in analyses if a.reopened_count > 0]
    if not reopened:
        return "✅ **No issues were reopened during this cycle.**"

    lines = [f"⚠️ **{len(reopened)} issues were reopened:**", ""]
    lines.extend(
        f"- [{a.issue.display_identifier}] {a.issue.display_title} "
        f"(reopened {a.reopened_count} times)"
        for a in reopened
    )
    lines.extend(["", "### Potential Reasons for Reopening:"])
    lines.extend(f"- {cause}" for cause in REOPEN_CAUSES)
    return "\n".join(lines)


def _comments_section(analyses: list[IssueAnalysis]) -> str:
    if not analyses:
        return "No issues to analyze."

    commented = [a for a in analyses if a.comments][:MAX_COMMENT_SUMMARY_ROWS]
    summary = "\n".join(
        f"- **{a.issue.display_identifier}**: {len(a.comments)} comments"
        for a in commented
    )
    return f"""Based on {len(analyses)} issues analyzed:

- **Recurring Themes:** TBD
- **Technical Blockers:** TBD
- **Process Issues:** TBD
- **Communication Gaps:** TBD

> Reserved for deeper comment analysis; only comment counts are reported.

**Comments Summary:**
{summary or "No comments."}"""


def _recommendations(metrics: CycleMetrics) -> str:
    if metrics.completion_rate < COMPLETION_TARGET:
        quality = (
            "Consider implementing more thorough testing before marking issues "
            "as complete."
        )
    else:
        quality = "Good completion rate - maintain current quality standards."

    if metrics.reopened_issues > 0:
        reopened = (
            "Review the root causes of reopened issues and implement preventive "
            "measures."
        )
    else:
        reopened = "Excellent - no reopened issues this cycle."

    return f"""1. **Quality Focus:** {quality}

2. **Reopened Issues:** {reopened}

3. **Story Point Distribution:** Review workload balance across team members for future cycles.

4. **Process Improvements:** Focus on areas with the most communication or technical challenges."""


def render_retrospective(
    cycle: CycleData, analyses: list[IssueAnalysis], generated_at: datetime
) -> str:
    """Render the retrospective Markdown.

    Output depends only on the inputs; ``generated_at`` appears in the footer
    and stands in for a missing completion date.
    """
    cycle_name = cycle.display_name
    metrics = compute_cycle_metrics(analyses)
    stats = build_assignee_stats(analyses)
    front_matter = format_front_matter(
        {
            "cycle_id": cycle.id,
            "cycle_name": cycle_name,
            "completed_at": cycle.completed_at or generated_at.date().isoformat(),
        }
    )

    return f"""{front_matter}

# {cycle_name} - Cycle Retrospective

**Cycle Period:** {cycle.starts_at or "N/A"} - {cycle.ends_at or "N/A"}
**Total Story Points:** {format_points(metrics.total_points)}
**Completed Story Points:** {format_points(metrics.completed_points)}
**Completion Rate:** {metrics.completion_rate:.1f}%
**Total Issues:** {metrics.total_issues}
**Reopened Issues:** {metrics.reopened_issues}

## 📊 Issues by Person and Status

{_issues_table(analyses)}

## 📈 Story Points by Assignee

{_assignee_table(stats)}

## 🔄 Reopened Issues Analysis

{_reopened_section(analyses)}

## 💬 Common Issues from Comments

{_comments_section(analyses)}

## 🎯 Recommendations

{_recommendations(metrics)}

---

Generated: {generated_at.isoformat()}
Cycle ID: {cycle.id}
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetrospectiveGenerator:
    """Builds and stores the retrospective document of a cycle."""

    def __init__(
        self,
        gateway: EntityGateway,
        store: DocumentStore,
        settings: Settings,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.gateway = gateway
        self.store = store
        self.collection_id = settings.slite_retro_collection_id
        self._now = now
        self.comments_concurrency = max(1, settings.comments_concurrency)

    async def _analyze(
        self, issue: IssueData, slots: asyncio.Semaphore
    ) -> IssueAnalysis:
        """Fetch comments and count reopen mentions; failures degrade to zero."""
        try:
            async with slots:
                comments = await self.gateway.get_issue_comments(issue.id)
        except Exception as e:
            logger.error(f"Error analyzing comments of issue {issue.id}: {e}")
            return IssueAnalysis(issue)

        return IssueAnalysis(issue, comments, count_reopen_mentions(comments))

    async def analyze_issues(self, issues: list[IssueData]) -> list[IssueAnalysis]:
        """Analyze issues concurrently, at most ``comments_concurrency`` fetches at once."""
        slots = asyncio.Semaphore(self.comments_concurrency)
        return list(await asyncio.gather(*(self._analyze(i, slots) for i in issues)))

    async def generate(self, cycle: CycleData) -> RetrospectiveResult:
        """Generate the retrospective and create or update its document.

        Args:
            cycle: Cycle from the webhook payload

        Returns:
            RetrospectiveResult; never raises for store failures
        """
        title = f"Retrospective-{cycle.display_name}"
        logger.info(f"Generating retrospective {title!r} for cycle {cycle.id}")

        issues = await self.gateway.get_issues_by_cycle(cycle.id)
        if not issues:
            # Indistinguishable from a tracker outage; keep the existing document
            logger.error(
                f"No issues fetched for cycle {cycle.id} ({cycle.display_name}), "
                "not writing retrospective"
            )
            return RetrospectiveResult(
                False, cycle.id, title, "failed", "no issues fetched for cycle"
            )

        analyses = await self.analyze_issues(issues)
        logger.info(f"Analyzed {len(analyses)} issues of cycle {cycle.id}")

        content = render_retrospective(cycle, analyses, self._now())

        try:
            existing = await self.store.find_document_by_title(
                title, self.collection_id
            )
        except GatewayError as e:
            logger.error(f"Retrospective lookup failed for cycle {cycle.id}: {e}")
            return RetrospectiveResult(False, cycle.id, title, "failed", str(e))

        if existing is not None:
            result = await self.store.update_document(existing.id, content)
            action = "retrospective-updated"
        else:
            result = await self.store.create_document(
                title, content, self.collection_id
            )
            action = "retrospective-created"

        if not result.success:
            logger.error(
                f"Failed to write retrospective for cycle {cycle.id} "
                f"({cycle.display_name}): {result.message}"
            )
            return RetrospectiveResult(
                False, cycle.id, title, "failed", result.message
            )

        return RetrospectiveResult(
            True,
            cycle.id,
            title,
            action,
            result.message,
            document_id=result.document_id or (existing.id if existing else None),
        )
