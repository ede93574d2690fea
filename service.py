"""
Cycle-time facade: fetch -> normalize -> enrich -> durations -> aggregate.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from errors import ConfigurationError
from ingest.enrich import DEFAULT_DELAY, enrich
from ingest.github import DEFAULT_BASE_URL, GitHubClient
from normalize.models import Ticket
from normalize.util import normalize_ticket
from scoring.durations import DEFAULT_PHASES, check_phases, with_durations
from scoring.metrics import compute_metrics
from storage.cache import Cache, fetch_or_compute

logger = logging.getLogger(__name__)


class CycleTime:
    """Compute lifecycle timings for the tickets of a GitHub org or repository.

    Configuration is validated here, before any request is made.
    """

    def __init__(
        self,
        org: Optional[str],
        token: Optional[str],
        repo: Optional[str] = None,
        cache=None,
        base_url: str = DEFAULT_BASE_URL,
        delay: float = DEFAULT_DELAY,
        phases: Optional[Iterable[str]] = None,
        include_max: bool = False,
        client=None,
    ):
        missing = [name for name, value in (('org', org), ('token', token)) if not value]
        if missing:
            raise ConfigurationError('Missing required option(s): ' + ', '.join(f'`{m}`' for m in missing))
        self.org = org
        self.repo = repo or None
        self.cache = cache if cache is not None else Cache()
        self.delay = float(delay)
        self.phases = check_phases(phases if phases is not None else DEFAULT_PHASES)
        self.include_max = bool(include_max)
        self.client = client or GitHubClient(token, org, base_url=base_url)

    @classmethod
    def from_settings(cls, settings, cache=None, client=None) -> 'CycleTime':
        settings.validate()
        return cls(
            org=settings.org,
            token=settings.token,
            repo=settings.repo,
            cache=cache if cache is not None else settings.open_store(),
            base_url=settings.base_url,
            delay=settings.delay,
            phases=settings.phases,
            include_max=settings.include_max,
            client=client,
        )

    def fetch_key(self, since: Optional[str], state: str, direction: str = "asc", sort: Optional[str] = None) -> str:
        return f"cycle-time_fetch-{self.org}-{self.repo or '*'}-{state}-{direction}-{sort or 'created'}-{since or 'all'}.json"

    def _fetch(self, since: Optional[str], state: str, direction: str, sort: Optional[str], per_page: int) -> List[Dict[str, Any]]:
        return fetch_or_compute(
            self.cache,
            self.fetch_key(since, state, direction, sort),
            lambda: self.client.list_tickets(repo=self.repo, state=state, direction=direction, sort=sort, since=since, per_page=per_page),
        )

    def _format(self, raw: Sequence[Dict[str, Any]]) -> List[Ticket]:
        return [normalize_ticket(item, self.org, self.repo) for item in raw or []]

    def tickets(self, since: Optional[str] = None, state: str = "all", direction: str = "asc", sort: Optional[str] = None, per_page: int = 100) -> List[Ticket]:
        """Return every matching ticket with milestones and durations filled in."""
        raw = self._fetch(since, state, direction, sort, per_page)
        tickets = self._format(raw)
        logger.info("fetched %d ticket(s) for %s/%s", len(tickets), self.org, self.repo or '*')
        enriched = enrich(tickets, self.client, self.cache, delay=self.delay)
        return [with_durations(t, self.phases) for t in enriched]

    def metrics(self, tickets: Optional[Sequence[Ticket]] = None, since: Optional[str] = None) -> Dict[str, Any]:
        """Aggregate the configured phases over tickets (fetched when not given)."""
        if tickets is None:
            tickets = self.tickets(since)
        else:
            tickets = [with_durations(t, self.phases) for t in tickets]
        return compute_metrics(tickets, self.phases, include_max=self.include_max, org=self.org)
