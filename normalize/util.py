"""
Normalization utility helpers.
Small helpers to map raw GitHub payloads into normalize.models entities.
"""
from typing import Any, Dict, Optional

from normalize.models import (
    EVENT_KINDS,
    ISSUE,
    OTHER,
    PULL_REQUEST,
    REVIEWED,
    Ticket,
    TimelineEvent,
)


def _repo_from_raw(raw: Dict[str, Any]) -> str:
    """Return the repository name of a raw issue, from the embedded repository or the repository_url."""
    repository = raw.get('repository') or {}
    if isinstance(repository, dict) and repository.get('name'):
        return repository['name']
    url = raw.get('repository_url') or ''
    return url.rstrip('/').rsplit('/', 1)[-1] if url else ''


def normalize_ticket(raw: Dict[str, Any], org: str, repo: Optional[str] = None) -> Ticket:
    """Create a Ticket from a raw GitHub issue/pull request dict.

    The ticket id is the issue number, which is what the timeline endpoint is keyed by.
    """
    number = raw.get('number')
    if number is None:
        number = raw.get('id')
    return Ticket(
        id=int(number),
        org=org,
        repo=repo or _repo_from_raw(raw),
        kind=PULL_REQUEST if raw.get('pull_request') else ISSUE,
        title=raw.get('title') or '',
        opened=raw.get('created_at'),
    )


def normalize_event(raw: Dict[str, Any]) -> TimelineEvent:
    """Create a TimelineEvent from a raw timeline entry.

    Review entries carry submitted_at rather than created_at, and their state is lower-cased.
    """
    kind = raw.get('event') or OTHER
    if kind not in EVENT_KINDS:
        kind = OTHER
    timestamp = raw.get('created_at') or raw.get('submitted_at')
    if kind == REVIEWED:
        timestamp = raw.get('submitted_at') or timestamp
    state = raw.get('state')
    return TimelineEvent(kind=kind, timestamp=timestamp, review_state=state.lower() if isinstance(state, str) else None)


def ticket_to_dict(ticket: Ticket) -> Dict[str, Any]:
    """JSON-friendly mirror of a ticket, durations included."""
    data: Dict[str, Any] = {'id': ticket.id, 'org': ticket.org, 'repo': ticket.repo, 'kind': ticket.kind, 'title': ticket.title}
    data.update(ticket.milestones())
    data['durations'] = {name: d.to_dict() for name, d in ticket.durations.items()}
    return data
