"""
Sequential, cached, rate-limited enrichment of tickets with their timeline milestones.
"""
import logging
import time
from typing import Callable, List, Sequence

from normalize.models import Ticket
from normalize.util import normalize_event
from scoring.timeline import fold
from storage.cache import fetch_or_compute

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.1


def timeline_key(ticket: Ticket) -> str:
    return f"cycle-time_timeline-{ticket.org}-{ticket.repo}-{ticket.id}.json"


def enrich_one(ticket: Ticket, source, store) -> Ticket:
    """Fetch (or reuse) the ticket's raw timeline and fold it into milestones."""
    raw_events = fetch_or_compute(store, timeline_key(ticket), lambda: source.list_raw_events(ticket.org, ticket.repo, ticket.id))
    return fold(ticket, (normalize_event(raw) for raw in raw_events or []))


def enrich(tickets: Sequence[Ticket], source, store, delay: float = DEFAULT_DELAY, sleep: Callable[[float], None] = time.sleep) -> List[Ticket]:
    """Enrich tickets one at a time in input order, waiting delay seconds between tickets.

    Any failure aborts the whole batch; no partial list is returned.
    """
    enriched: List[Ticket] = []
    total = len(tickets)
    for idx, ticket in enumerate(tickets):
        if idx and delay and delay > 0:
            sleep(delay)
        try:
            enriched.append(enrich_one(ticket, source, store))
        except Exception:
            logger.error("enrichment failed for %s/%s#%s", ticket.org, ticket.repo, ticket.id)
            raise
        logger.debug("enriched %d/%d: %s/%s#%s", idx + 1, total, ticket.org, ticket.repo, ticket.id)
    return enriched
