"""Release document formatting.

Pure functions: story point aggregation per assignee and status bucket,
Markdown rendering of release documents, and front-matter parsing.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

import yaml

from .models import IssueData

FRONT_MATTER_RULER = "__________"
FRONT_MATTER_PATTERN = re.compile(r"^_{3,}[ \t]*\n(.*?)\n_{3,}[ \t]*$", re.M | re.S)

# Ordered status buckets and the state names that fall into each
STATUS_BUCKETS: dict[str, tuple[str, ...]] = {
    "Todo": ("todo",),
    "In Progress": ("in progress",),
    "DEV Review": ("dev review", "review", "in review"),
    "QA Testing": ("qa testing",),
    "Done": ("done", "completed"),
}
BUCKET_NAMES = tuple(STATUS_BUCKETS)
DONE_BUCKET = "Done"


class ReleaseStatus(Enum):
    """Release state of a release document.

    Only NOT_RELEASED documents may be rewritten automatically; every other
    value is a manual lock.
    """

    NOT_RELEASED = "not_released"
    IN_PROGRESS = "in_progress"
    RELEASED = "released"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReleaseStatus":
        if value is None or not str(value).strip():
            return cls.NOT_RELEASED
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_locked(self) -> bool:
        return self is not ReleaseStatus.NOT_RELEASED


@dataclass
class ReleaseMetadata:
    """Machine-readable front matter of a release document."""

    status: ReleaseStatus = ReleaseStatus.NOT_RELEASED
    release_at: Optional[str] = None
    raw_status: Optional[str] = None

    def as_dict(self) -> dict:
        metadata = {}
        if self.raw_status is not None:
            metadata["release_status"] = self.raw_status
        if self.release_at is not None:
            metadata["release_at"] = self.release_at
        return metadata


@dataclass
class AssigneePoints:
    """Story points of one assignee, split by status bucket."""

    name: str
    buckets: dict[str, float] = field(
        default_factory=lambda: {bucket: 0 for bucket in BUCKET_NAMES}
    )
    total: float = 0

    def percentage(self, bucket: str) -> float:
        return percentage(self.buckets[bucket], self.total)

    @property
    def done_percentage(self) -> float:
        return self.percentage(DONE_BUCKET)


@dataclass
class StoryPointSummary:
    """Aggregated story points over a set of issues."""

    assignees: list[AssigneePoints]
    bucket_totals: dict[str, float]
    grand_total: float

    def for_assignee(self, name: str) -> Optional[AssigneePoints]:
        return next((a for a in self.assignees if a.name == name), None)

    def total_percentage(self, bucket: str) -> float:
        return percentage(self.bucket_totals[bucket], self.grand_total)


def percentage(part: float, whole: float) -> float:
    """Percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    return part / whole * 100


def bucket_for(state_name: Optional[str]) -> Optional[str]:
    """Map a workflow state name to its status bucket, or None."""
    if not state_name:
        return None
    key = state_name.strip().lower()
    for bucket, names in STATUS_BUCKETS.items():
        if key in names:
            return bucket
    return None


def format_points(value: float) -> str:
    """Render story points without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def escape_cell(text: str) -> str:
    """Make text safe inside a Markdown table cell."""
    return " ".join(str(text).replace("|", "\\|").splitlines())


def markdown_table(headers: list[str], rows: Iterable[list[str]]) -> str:
    """Render a Markdown table; cell text is escaped."""
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in headers) + "|",
    ]
    lines.extend(
        "| " + " | ".join(escape_cell(cell) for cell in row) + " |" for row in rows
    )
    return "\n".join(lines)


def aggregate_story_points(issues: Iterable[IssueData]) -> StoryPointSummary:
    """Aggregate story points per assignee and status bucket.

    Issues in a status outside the known buckets count toward the assignee
    and grand totals but not toward any bucket. Assignees keep first-seen
    order.
    """
    by_assignee: dict[str, AssigneePoints] = {}
    bucket_totals = {bucket: 0 for bucket in BUCKET_NAMES}
    grand_total = 0

    for issue in issues:
        name = issue.assignee_name
        stats = by_assignee.setdefault(name, AssigneePoints(name=name))
        points = issue.points
        stats.total += points
        grand_total += points

        bucket = bucket_for(issue.state.name if issue.state else None)
        if bucket:
            stats.buckets[bucket] += points
            bucket_totals[bucket] += points

    return StoryPointSummary(
        assignees=list(by_assignee.values()),
        bucket_totals=bucket_totals,
        grand_total=grand_total,
    )


def format_front_matter(values: dict[str, str]) -> str:
    body = "\n".join(f"{key}: {value}" for key, value in values.items())
    return f"{FRONT_MATTER_RULER}\n{body}\n{FRONT_MATTER_RULER}"


def _ticket_row(issue: IssueData) -> list[str]:
    state_name = issue.state.name if issue.state else "Unknown"
    icon = "✅" if bucket_for(state_name) == DONE_BUCKET else "❌"
    if issue.url:
        ticket = f"[[{issue.display_identifier}] {issue.display_title}]({issue.url})"
    else:
        ticket = issue.display_title
    return [f"{icon} {state_name}", format_points(issue.points), ticket]


def format_tickets_table(issues: list[IssueData]) -> str:
    if not issues:
        return "No tickets found."
    return markdown_table(
        ["State", "Story Points", "Ticket"], [_ticket_row(i) for i in issues]
    )


def format_story_points_table(summary: StoryPointSummary) -> str:
    if not summary.assignees:
        return "No tickets found."
    rows = [
        [a.name]
        + [format_points(a.buckets[b]) for b in BUCKET_NAMES]
        + [format_points(a.total)]
        for a in summary.assignees
    ]
    rows.append(
        ["**Total**"]
        + [format_points(summary.bucket_totals[b]) for b in BUCKET_NAMES]
        + [f"**{format_points(summary.grand_total)}**"]
    )
    return markdown_table(["Person", *BUCKET_NAMES, "Total"], rows)


def format_percentage_table(summary: StoryPointSummary) -> str:
    if not summary.assignees:
        return "No tickets found."
    rows = [
        [a.name] + [f"{a.percentage(b):.1f}%" for b in BUCKET_NAMES]
        for a in summary.assignees
    ]
    rows.append(
        ["**Total**"]
        + [f"{summary.total_percentage(b):.1f}%" for b in BUCKET_NAMES]
    )
    return markdown_table(["Person", *(f"{b} %" for b in BUCKET_NAMES)], rows)


def format_release_document(
    label_name: str,
    release_at: str,
    status: ReleaseStatus,
    issues: list[IssueData],
    generated_at: datetime,
) -> str:
    """Render the Markdown body of a release document.

    Args:
        label_name: Story label name, used as heading
        release_at: Planned release date (YYYY-MM-DD)
        status: Release status written to the front matter
        issues: All issues carrying the story label, in source order
        generated_at: Timestamp for the footer

    Returns:
        Markdown document body
    """
    summary = aggregate_story_points(issues)
    front_matter = format_front_matter(
        {"release_status": status.value, "release_at": release_at}
    )

    return f"""{front_matter}

# {label_name} Release overview

**Total Story Points: {format_points(summary.grand_total)}**

### Tickets

{format_tickets_table(issues)}

### Story Points by Assignee

{format_story_points_table(summary)}

### Story Points Completion Percentages

{format_percentage_table(summary)}

Generated: {generated_at.isoformat()}
"""


def _scalar(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def parse_front_matter(content: str) -> ReleaseMetadata:
    """Parse ``release_status`` and ``release_at`` from a document body.

    The ruled front-matter block is read as YAML; documents edited by hand
    without the rulers fall back to a line scan of the whole body.
    """
    values: dict = {}
    match = FRONT_MATTER_PATTERN.search(content or "")
    if match:
        try:
            loaded = yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            loaded = None
        if isinstance(loaded, dict):
            values = loaded

    for key in ("release_status", "release_at"):
        if key not in values:
            line = re.search(rf"^\s*{key}:\s*(.+)$", content or "", re.M)
            if line:
                values[key] = line.group(1)

    raw_status = _scalar(values.get("release_status"))
    return ReleaseMetadata(
        status=ReleaseStatus.parse(raw_status),
        release_at=_scalar(values.get("release_at")),
        raw_status=raw_status,
    )
