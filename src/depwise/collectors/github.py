"""GitHub API collector - repository health signals."""

import logging
import os
import re
from typing import Optional

import httpx

from depwise.collectors.base import BaseCollector
from depwise.scoring.metadata import SourceHostSignals

logger = logging.getLogger(__name__)


class GitHubCollector(BaseCollector):
    """Collector for GitHub repository data."""

    API_BASE = "https://api.github.com"

    def __init__(self, token: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize GitHub collector.

        Args:
            token: GitHub personal access token. Defaults to GITHUB_TOKEN env var.
            client: Optional preconfigured HTTP client
        """
        super().__init__(client)
        self.token = token or os.getenv("GITHUB_TOKEN")

        if self.token:
            self.client.headers["Authorization"] = f"Bearer {self.token}"
        self.client.headers["Accept"] = "application/vnd.github.v3+json"

    def is_available(self) -> bool:
        """Check if GitHub token is available."""
        return bool(self.token)

    @staticmethod
    def parse_repo_url(repo_url: str) -> tuple[Optional[str], Optional[str]]:
        """
        Parse owner and repo from GitHub URL.

        Args:
            repo_url: GitHub repository URL

        Returns:
            Tuple of (owner, repo) or (None, None) if parsing fails
        """
        patterns = [
            r"github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$",
            r"github\.com[:/]([^/]+)/([^/]+)",
        ]

        for pattern in patterns:
            match = re.search(pattern, repo_url)
            if match:
                return match.group(1), match.group(2).replace(".git", "")

        return None, None

    async def _get(self, endpoint: str) -> Optional[dict]:
        """GET request to GitHub REST API."""
        url = f"{self.API_BASE}{endpoint}"
        try:
            response = await self.client.get(url)

            if response.status_code == 404:
                return None
            if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
                logger.warning("GitHub rate limit exhausted; set GITHUB_TOKEN for a higher quota")
                return None

            response.raise_for_status()
            return response.json()

        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GitHub API error: {e}")
            return None

    @staticmethod
    def _signals(repo: dict) -> SourceHostSignals:
        license_info = repo.get("license") or {}
        spdx = license_info.get("spdx_id") or ""
        if spdx == "NOASSERTION":
            spdx = ""
        return SourceHostSignals(
            stars=repo.get("stargazers_count", 0) or 0,
            forks=repo.get("forks_count", 0) or 0,
            open_issues=repo.get("open_issues_count", 0) or 0,
            last_push=repo.get("pushed_at"),
            created_at=repo.get("created_at"),
            archived=bool(repo.get("archived", False)),
            topics=tuple(repo.get("topics") or ()),
            url=repo.get("html_url", ""),
            license_spdx=spdx,
        )

    async def collect(self, repo_url: str) -> Optional[SourceHostSignals]:
        """
        Collect repository signals.

        Args:
            repo_url: GitHub repository URL

        Returns:
            SourceHostSignals, or None if the URL is not a GitHub repository
            or the API could not answer
        """
        owner, repo = self.parse_repo_url(repo_url or "")
        if not owner or not repo:
            logger.debug(f"Not a GitHub repository: {repo_url!r}")
            return None

        data = await self._get(f"/repos/{owner}/{repo}")
        if data is None:
            logger.warning(f"No GitHub data for {owner}/{repo}")
            return None

        return self._signals(data)
