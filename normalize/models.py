"""
Unified data models for tickets, timeline events and durations.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

# timeline event kinds understood by the folder; anything else maps to OTHER
CLOSED = "closed"
REOPENED = "reopened"
ASSIGNED = "assigned"
REVIEW_REQUESTED = "review_requested"
REVIEWED = "reviewed"
OTHER = "other"

EVENT_KINDS = frozenset({CLOSED, REOPENED, ASSIGNED, REVIEW_REQUESTED, REVIEWED, OTHER})

APPROVED = "approved"

ISSUE = "issue"
PULL_REQUEST = "pull_request"

MILESTONES = ("opened", "reopened", "assigned", "review_requested", "first_review", "approved", "closed")


@dataclass(frozen=True)
class Duration:
    """Elapsed time between two milestones, in seconds plus a readable rendering."""

    seconds: float = 0.0
    human: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {"seconds": self.seconds, "human": self.human}


ZERO_DURATION = Duration(0.0, "")


@dataclass(frozen=True)
class TimelineEvent:
    """
    One state change recorded on a ticket's timeline.
    """
    kind: str
    timestamp: Optional[str]  # None when the entry carries no time, e.g. a pending review
    review_state: Optional[str] = None  # only meaningful for reviewed events


@dataclass(frozen=True)
class Ticket:
    """
    Normalized ticket (issue or pull request) with its lifecycle milestones.

    Milestones are ISO-8601 strings or None. durations is derived from the
    milestones and is never read back as an input.
    """
    id: int
    org: str
    repo: str
    kind: str = ISSUE
    title: str = ""
    opened: Optional[str] = None
    reopened: Optional[str] = None
    assigned: Optional[str] = None
    review_requested: Optional[str] = None
    first_review: Optional[str] = None
    approved: Optional[str] = None
    closed: Optional[str] = None
    durations: Dict[str, Duration] = field(default_factory=dict, compare=False)

    def milestones(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in MILESTONES}
