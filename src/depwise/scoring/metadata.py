"""Metadata snapshot consumed by the scoring core."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DateLike = Union[datetime, str, None]

# CVSS score at or above which a finding counts as critical
CRITICAL_CVSS_THRESHOLD = 7.0


class Usage(str, Enum):
    """How the dependency is used by the project."""

    RUNTIME = "runtime"
    DEV = "dev"
    TEST = "test"
    CI_ONLY = "ci-only"


class Criticality(str, Enum):
    """How central the dependency is to the project."""

    CORE = "core"
    SUPPORT = "support"
    COSMETIC = "cosmetic"


@dataclass(frozen=True)
class AnalysisContext:
    """Optional usage/criticality context supplied by the caller."""

    usage: Optional[Usage] = None
    criticality: Optional[Criticality] = None

    @classmethod
    def from_strings(cls, usage: Optional[str] = None, criticality: Optional[str] = None) -> "AnalysisContext":
        return cls(
            usage=Usage(usage) if usage else None,
            criticality=Criticality(criticality) if criticality else None,
        )


@dataclass(frozen=True)
class SourceHostSignals:
    """Repository signals from the source-hosting platform."""

    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    last_push: DateLike = None
    created_at: DateLike = None
    archived: bool = False
    topics: tuple[str, ...] = ()
    url: str = ""
    license_spdx: str = ""


@dataclass(frozen=True)
class VulnerabilityFinding:
    """A single vulnerability record."""

    id: str
    severity: float = 5.0
    description: str = ""

    @property
    def is_critical(self) -> bool:
        return self.severity >= CRITICAL_CVSS_THRESHOLD


@dataclass(frozen=True)
class VulnerabilitySummary:
    """Vulnerability counts for a package."""

    count: int = 0
    critical: int = 0
    details: tuple[VulnerabilityFinding, ...] = ()

    @classmethod
    def from_findings(cls, findings: list[VulnerabilityFinding]) -> "VulnerabilitySummary":
        ordered = sorted(findings, key=lambda f: f.severity, reverse=True)
        return cls(
            count=len(ordered),
            critical=sum(1 for f in ordered if f.is_critical),
            details=tuple(ordered),
        )

    @property
    def total(self) -> int:
        """Vulnerability count, falling back to the number of findings."""
        return self.count or len(self.details)


@dataclass(frozen=True)
class MetadataSnapshot:
    """
    Immutable per-package bundle of registry, source-host and vulnerability data.

    Created once per analysis request and only ever read by the calculators.
    """

    name: str
    version: str = ""
    license: str = ""
    author: str = ""
    release_date: DateLike = None
    summary: str = ""
    description: str = ""
    keywords: str = ""
    classifiers: tuple[str, ...] = ()
    downloads: Optional[int] = None  # monthly
    source_host: Optional[SourceHostSignals] = None
    vulnerabilities: Optional[VulnerabilitySummary] = None
    direct_dependency_names: tuple[str, ...] = field(default_factory=tuple)

    @property
    def vulnerability_count(self) -> int:
        return self.vulnerabilities.total if self.vulnerabilities else 0

    @property
    def critical_count(self) -> int:
        return self.vulnerabilities.critical if self.vulnerabilities else 0

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        source_host = None
        if self.source_host:
            sh = self.source_host
            source_host = {
                "stars": sh.stars,
                "forks": sh.forks,
                "openIssues": sh.open_issues,
                "lastPush": _date_to_str(sh.last_push),
                "createdAt": _date_to_str(sh.created_at),
                "archived": sh.archived,
                "topics": list(sh.topics),
                "url": sh.url,
                "license": sh.license_spdx,
            }
        vulnerabilities = None
        if self.vulnerabilities:
            v = self.vulnerabilities
            vulnerabilities = {
                "count": v.count,
                "critical": v.critical,
                "details": [
                    {"id": f.id, "severity": f.severity, "description": f.description}
                    for f in v.details
                ],
            }
        return {
            "name": self.name,
            "version": self.version,
            "license": self.license,
            "author": self.author,
            "releaseDate": _date_to_str(self.release_date),
            "summary": self.summary,
            "description": self.description,
            "keywords": self.keywords,
            "classifiers": list(self.classifiers),
            "downloads": self.downloads,
            "sourceHost": source_host,
            "vulnerabilities": vulnerabilities,
            "directDependencyNames": list(self.direct_dependency_names),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetadataSnapshot":
        """Build a snapshot from its dictionary form (see ``to_dict``)."""
        sh = data.get("sourceHost")
        source_host = None
        if sh is not None:
            source_host = SourceHostSignals(
                stars=sh.get("stars", 0) or 0,
                forks=sh.get("forks", 0) or 0,
                open_issues=sh.get("openIssues", 0) or 0,
                last_push=sh.get("lastPush"),
                created_at=sh.get("createdAt"),
                archived=bool(sh.get("archived", False)),
                topics=tuple(sh.get("topics", ())),
                url=sh.get("url", ""),
                license_spdx=sh.get("license", "") or "",
            )

        v = data.get("vulnerabilities")
        vulnerabilities = None
        if v is not None:
            vulnerabilities = VulnerabilitySummary(
                count=v.get("count", 0) or 0,
                critical=v.get("critical", 0) or 0,
                details=tuple(
                    VulnerabilityFinding(
                        id=d.get("id", ""),
                        severity=d.get("severity", 5.0),
                        description=d.get("description", ""),
                    )
                    for d in v.get("details", [])
                ),
            )

        return cls(
            name=data.get("name", ""),
            version=data.get("version", ""),
            license=data.get("license", "") or "",
            author=data.get("author", "") or "",
            release_date=data.get("releaseDate"),
            summary=data.get("summary", "") or "",
            description=data.get("description", "") or "",
            keywords=data.get("keywords", "") or "",
            classifiers=tuple(data.get("classifiers", ())),
            downloads=data.get("downloads"),
            source_host=source_host,
            vulnerabilities=vulnerabilities,
            direct_dependency_names=tuple(data.get("directDependencyNames", ())),
        )


def parse_date(value: DateLike) -> Optional[datetime]:
    """Parse an ISO-ish date into an aware datetime, or None if impossible."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.isoparse(str(value))
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, OverflowError):
                logger.warning(f"Unparseable date: {value!r}")
                return None
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_since(value: DateLike, now: Optional[datetime] = None) -> float:
    """Whole days elapsed since ``value``; infinity when it cannot be parsed."""
    parsed = parse_date(value)
    if parsed is None:
        return math.inf
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return float(abs((now - parsed).days))


def years_since(value: DateLike, now: Optional[datetime] = None) -> float:
    """Fractional years elapsed since ``value``; 0 when it cannot be parsed."""
    parsed = parse_date(value)
    if parsed is None:
        return 0.0
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    return abs((now - parsed).total_seconds()) / (60 * 60 * 24 * 365)


def _date_to_str(value: DateLike) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value
