"""
GitHub ingestion client: the ticket source and timeline source of the pipeline.
Every request goes through storage.retry.get_json, so failures surface as UpstreamFetchError.
"""
from typing import Any, Dict, List, Optional

from normalize.models import TimelineEvent
from normalize.util import normalize_event
from storage.retry import get_json

DEFAULT_BASE_URL = "https://api.github.com"


class GitHubClient:
    """Simple GitHub client to list issues/pull requests and their timelines."""

    def __init__(self, token: str, org: str, base_url: Optional[str] = None, per_page: int = 100):
        self.token = token
        self.org = org
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.per_page = int(per_page)
        self.headers = {
            "Authorization": f"Bearer {self.token}" if self.token else "",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _paginate(self, url: str, params: Dict[str, Any], per_page: Optional[int] = None) -> List[Dict[str, Any]]:
        """Follow page numbers until a short page and return the flattened items in order."""
        per_page = int(per_page or self.per_page)
        page = 1
        items: List[Dict[str, Any]] = []
        while True:
            data = get_json(url, headers=self.headers, params=dict(params, page=page, per_page=per_page))
            if not isinstance(data, list):
                break
            items.extend(data)
            if len(data) < per_page:
                break
            page += 1
        return items

    def list_tickets(
        self,
        repo: Optional[str] = None,
        state: str = "all",
        direction: str = "asc",
        sort: Optional[str] = None,
        since: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return raw issue and pull request records for a repository, or across the org when repo is None."""
        if repo:
            url = f"{self.base_url}/repos/{self.org}/{repo}/issues"
            params: Dict[str, Any] = {"state": state, "direction": direction}
        else:
            url = f"{self.base_url}/orgs/{self.org}/issues"
            params = {"filter": "all", "state": state, "direction": direction}
        if sort:
            params["sort"] = sort
        if since:
            params["since"] = since
        return self._paginate(url, params, per_page)

    def list_raw_events(self, org: str, repo: str, ticket_id: int) -> List[Dict[str, Any]]:
        """Raw timeline entries for one issue/pull request, in delivery order."""
        url = f"{self.base_url}/repos/{org}/{repo}/issues/{ticket_id}/timeline"
        return self._paginate(url, {})

    def list_events(self, org: str, repo: str, ticket_id: int) -> List[TimelineEvent]:
        return [normalize_event(raw) for raw in self.list_raw_events(org, repo, ticket_id)]
