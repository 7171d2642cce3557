"""PyPI registry collector."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import httpx

from depwise.collectors.base import BaseCollector
from depwise.errors import CollectorError

logger = logging.getLogger(__name__)

# A requirement's distribution name ends at the first specifier, marker or extra
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass
class PyPIData:
    """Data collected from PyPI."""

    name: str = ""
    version: str = ""
    license: str = ""
    author: str = ""
    summary: str = ""
    description: str = ""
    keywords: str = ""
    classifiers: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    release_date: Optional[str] = None
    homepage: str = ""
    repository_url: str = ""
    monthly_downloads: Optional[int] = None


class PyPICollector(BaseCollector):
    """Collector for PyPI data."""

    PYPI_URL = "https://pypi.org/pypi"
    STATS_URL = "https://pypistats.org/api"

    # Longer "license" fields are usually the full license text
    MAX_LICENSE_LENGTH = 80

    def is_available(self) -> bool:
        """PyPI collector is always available."""
        return True

    async def get_package_info(self, package_name: str) -> Optional[dict]:
        """Get package metadata from PyPI."""
        try:
            response = await self.client.get(f"{self.PYPI_URL}/{package_name}/json")
            if response.status_code == 200:
                return response.json()
            logger.debug(f"PyPI returned {response.status_code} for {package_name}")
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: the body was not JSON
            logger.error(f"PyPI API error for {package_name}: {e}")
        return None

    async def get_monthly_downloads(self, package_name: str) -> Optional[int]:
        """Get last month's download count, or None when pypistats has no answer."""
        try:
            response = await self.client.get(f"{self.STATS_URL}/packages/{package_name.lower()}/recent")
            if response.status_code == 200:
                data = response.json().get("data", {})
                return data.get("last_month")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"PyPI stats error: {e}")
        return None

    def _clean_repo_url(self, url: str) -> str:
        """Strip trailing paths like /issues, /tree/..., /blob/... from repo URLs."""
        # Remove fragments and query strings
        url = url.split("#")[0].split("?")[0].rstrip("/")
        # Strip known subpaths to get the base repo URL
        url = re.sub(r"/(issues|pulls|tree|blob|wiki|releases|actions|discussions)(/.*)?$", "", url)
        return url

    def _extract_repo_url(self, info: dict) -> str:
        """Extract repository URL from package info."""
        project_urls = info.get("project_urls", {}) or {}
        urls_lower = {k.lower(): v for k, v in project_urls.items()}

        # Priority 1: explicit repo keys (case-insensitive)
        for key in ["repository", "source", "source code", "github", "code"]:
            if key in urls_lower:
                return self._clean_repo_url(urls_lower[key])

        # Priority 2: homepage if it points to a code host
        for key in ["homepage", "home"]:
            url = urls_lower.get(key, "")
            if url and ("github.com" in url or "gitlab.com" in url):
                return self._clean_repo_url(url)

        # Priority 3: any github/gitlab link
        for url in project_urls.values():
            if "github.com" in url or "gitlab.com" in url:
                return self._clean_repo_url(url)

        # Priority 4: legacy home_page field
        home_page = info.get("home_page", "") or ""
        if "github.com" in home_page or "gitlab.com" in home_page:
            return self._clean_repo_url(home_page)

        return ""

    def _extract_license(self, info: dict) -> str:
        """
        Pick the most specific license declaration.

        Order: PEP 639 ``license_expression``, a short ``license`` field, then
        the last ``License ::`` classifier.
        """
        expression = (info.get("license_expression") or "").strip()
        if expression:
            return expression

        declared = (info.get("license") or "").strip()
        if declared and "\n" not in declared and len(declared) <= self.MAX_LICENSE_LENGTH:
            return declared

        license_classifiers = [
            c.split("::")[-1].strip()
            for c in info.get("classifiers", []) or []
            if c.startswith("License ::") and c.count("::") >= 2
        ]
        return license_classifiers[-1] if license_classifiers else ""

    @staticmethod
    def _extract_dependencies(requires_dist: Optional[list[str]]) -> list[str]:
        """Names of runtime requirements; optional extras are skipped."""
        names: dict[str, None] = {}
        for requirement in requires_dist or []:
            if "extra ==" in requirement.replace('"', "").replace("'", ""):
                continue
            match = _REQUIREMENT_NAME.match(requirement)
            if match:
                names[match.group(1)] = None
        return list(names)

    @staticmethod
    def _extract_release_date(pkg_info: dict, version: str) -> Optional[str]:
        files = pkg_info.get("urls") or pkg_info.get("releases", {}).get(version) or []
        uploads = [f.get("upload_time_iso_8601") or f.get("upload_time") for f in files]
        uploads = [u for u in uploads if u]
        return min(uploads) if uploads else None

    async def collect(self, package_name: str) -> PyPIData:
        """
        Collect PyPI package data.

        Args:
            package_name: PyPI package name

        Returns:
            PyPIData with package information

        Raises:
            CollectorError: If the package does not exist on PyPI
        """
        pkg_info = await self.get_package_info(package_name)
        if not pkg_info:
            raise CollectorError("pypi", package_name, "package not found")

        info = pkg_info.get("info", {})
        version = info.get("version", "")
        data = PyPIData(
            name=info.get("name") or package_name,
            version=version,
            license=self._extract_license(info),
            author=info.get("author") or info.get("maintainer") or info.get("author_email") or "",
            summary=info.get("summary") or "",
            description=info.get("description") or "",
            keywords=info.get("keywords") or "",
            classifiers=list(info.get("classifiers") or []),
            dependencies=self._extract_dependencies(info.get("requires_dist")),
            release_date=self._extract_release_date(pkg_info, version),
            homepage=info.get("home_page") or "",
            repository_url=self._extract_repo_url(info),
        )

        data.monthly_downloads = await self.get_monthly_downloads(package_name)
        return data
