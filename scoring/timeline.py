"""
Fold a ticket's timeline events into milestone timestamps.
"""
from dataclasses import replace
from typing import Iterable

from normalize.models import (
    APPROVED,
    ASSIGNED,
    CLOSED,
    REOPENED,
    REVIEW_REQUESTED,
    REVIEWED,
    Ticket,
    TimelineEvent,
)

# event kind -> milestone overwritten by every occurrence
LAST_WINS = {
    CLOSED: 'closed',
    REOPENED: 'reopened',
}

# event kind -> milestone kept from the first occurrence
FIRST_WINS = {
    ASSIGNED: 'assigned',
    REVIEW_REQUESTED: 'review_requested',
    REVIEWED: 'first_review',
}


def fold(ticket: Ticket, events: Iterable[TimelineEvent]) -> Ticket:
    """Apply events in delivery order and return a ticket with updated milestones.

    closed, reopened and approved keep the last occurrence (close/reopen cycles,
    revisited approvals); assigned, review_requested and first_review keep the first.
    Events without a timestamp (pending reviews) are skipped.
    """
    milestones = {}
    for event in events:
        if not event.timestamp:
            continue
        field_name = LAST_WINS.get(event.kind)
        if field_name:
            milestones[field_name] = event.timestamp
        field_name = FIRST_WINS.get(event.kind)
        if field_name and milestones.get(field_name, getattr(ticket, field_name)) is None:
            milestones[field_name] = event.timestamp
        if event.kind == REVIEWED and event.review_state == APPROVED:
            milestones['approved'] = event.timestamp
    return replace(ticket, **milestones) if milestones else ticket
