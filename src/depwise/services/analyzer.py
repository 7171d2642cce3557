"""Reusable analysis functions: collect metadata, assess risk, recommend alternatives."""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional, Union

from depwise.alternatives import AlternativeRecommender, Recommendation
from depwise.collectors import GitHubCollector, OSVCollector, PyPICollector, PyPIData, build_snapshot
from depwise.errors import CollectorError, DepwiseError
from depwise.licenses import LicensePolicyResolver
from depwise.scoring import (
    AnalysisContext,
    MetadataSnapshot,
    RiskAssessmentEngine,
    RiskBreakdown,
    SourceHostSignals,
    VulnerabilityFinding,
    VulnerabilitySummary,
)
from depwise.services.cache import MemoryCache, MetadataCache, cache_key

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Result of analysing one package."""

    package: str
    success: bool
    breakdown: Optional[RiskBreakdown] = None
    recommendation: Optional[Recommendation] = None
    snapshot: Optional[MetadataSnapshot] = None
    error: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "package": self.package,
            "success": self.success,
            "error": self.error,
            "warnings": self.warnings,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "assessment": self.breakdown.to_dict() if self.breakdown else None,
            "recommendation": self.recommendation.to_dict() if self.recommendation else None,
        }


def _summary_from_dict(data: dict) -> VulnerabilitySummary:
    return VulnerabilitySummary(
        count=data.get("count", 0),
        critical=data.get("critical", 0),
        details=tuple(VulnerabilityFinding(**d) for d in data.get("details", [])),
    )


def _signals_from_dict(data: dict) -> SourceHostSignals:
    return SourceHostSignals(**{**data, "topics": tuple(data.get("topics", ()))})


class SnapshotFetcher:
    """
    Collect a MetadataSnapshot for a package, one source at a time.

    Collector payloads are cached under ``pypi:``, ``github:`` and ``osv:``
    keys. Missing source-host or vulnerability data is not cached so the next
    run retries it.
    """

    def __init__(
        self,
        cache: Optional[MetadataCache] = None,
        pypi: Optional[PyPICollector] = None,
        github: Optional[GitHubCollector] = None,
        osv: Optional[OSVCollector] = None,
        resolver: Optional[LicensePolicyResolver] = None,
    ):
        self.cache = cache if cache is not None else MemoryCache()
        self.pypi = pypi or PyPICollector()
        self.github = github or GitHubCollector()
        self.osv = osv or OSVCollector()
        self.resolver = resolver

    async def registry_data(self, name: str) -> PyPIData:
        key = cache_key("pypi", name)
        cached = self.cache.get(key)
        if cached is not None:
            return PyPIData(**cached)

        data = await self.pypi.collect(name)
        self.cache.set(key, asdict(data))
        return data

    async def source_host(self, repo_url: str) -> Optional[SourceHostSignals]:
        owner, repo = GitHubCollector.parse_repo_url(repo_url or "")
        if not owner or not repo:
            return None

        key = cache_key("github", f"{owner}/{repo}")
        cached = self.cache.get(key)
        if cached is not None:
            return _signals_from_dict(cached)

        signals = await self.github.collect(repo_url)
        if signals is not None:
            self.cache.set(key, asdict(signals))
        return signals

    async def vulnerabilities(self, name: str, version: str = "") -> Optional[VulnerabilitySummary]:
        key = cache_key("osv", f"{name}=={version}" if version else name)
        cached = self.cache.get(key)
        if cached is not None:
            return _summary_from_dict(cached)

        summary = await self.osv.collect(name, version or None)
        if summary is not None:
            self.cache.set(key, asdict(summary))
        return summary

    async def fetch(self, name: str) -> MetadataSnapshot:
        """
        Collect a snapshot for ``name``.

        Raises:
            CollectorError: If the package is not on the registry
        """
        registry = await self.registry_data(name)
        signals = await self.source_host(registry.repository_url)
        vulnerabilities = await self.vulnerabilities(registry.name, registry.version)
        return build_snapshot(registry, signals, vulnerabilities, resolver=self.resolver)

    async def close(self):
        await self.pypi.close()
        await self.github.close()
        await self.osv.close()
        self.cache.close()


async def fetch_candidates(fetcher: SnapshotFetcher, names: list[str]) -> dict[str, MetadataSnapshot]:
    """Fetch candidate snapshots one by one; any failure skips that candidate only."""
    snapshots = {}
    for name in names:
        try:
            snapshots[name] = await fetcher.fetch(name)
        except DepwiseError as e:
            logger.warning(f"Skipping candidate {name}: {e}")
        except Exception as e:
            logger.warning(f"Skipping candidate {name}: unexpected {type(e).__name__}: {e}")
    return snapshots


def load_snapshot(path: Union[str, Path]) -> MetadataSnapshot:
    """
    Read a snapshot saved as JSON.

    Accepts a bare snapshot (``MetadataSnapshot.to_dict``) or an analysis
    result printed with ``--json``, whose ``snapshot`` key is used.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not JSON or holds no snapshot
    """
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict) and isinstance(data.get("snapshot"), dict):
        data = data["snapshot"]
    if not isinstance(data, dict) or not data.get("name"):
        raise ValueError(f"{path}: no package snapshot found")
    return MetadataSnapshot.from_dict(data)


def assess_snapshot(
    snapshot: MetadataSnapshot,
    context: Optional[AnalysisContext] = None,
    engine: Optional[RiskAssessmentEngine] = None,
) -> AnalysisResult:
    """Assess an already collected snapshot, noting which sources were missing."""
    engine = engine or RiskAssessmentEngine()
    result = AnalysisResult(package=snapshot.name, success=True, snapshot=snapshot)
    if snapshot.source_host is None:
        result.warnings.append("Source repository data unavailable")
    if snapshot.vulnerabilities is None:
        result.warnings.append("Vulnerability data unavailable")
    result.breakdown = engine.assess(snapshot, context)
    return result


async def analyze_package(
    name: str,
    context: Optional[AnalysisContext] = None,
    recommend: bool = False,
    limit: int = AlternativeRecommender.DEFAULT_LIMIT,
    fetcher: Optional[SnapshotFetcher] = None,
    engine: Optional[RiskAssessmentEngine] = None,
    recommender: Optional[AlternativeRecommender] = None,
) -> AnalysisResult:
    """
    Assess a package and optionally recommend alternatives.

    Args:
        name: PyPI package name
        context: Optional usage/criticality context
        recommend: Also rank alternatives
        limit: Maximum number of alternatives
        fetcher: Snapshot fetcher (a fresh one is created and closed if omitted)
        engine: Risk engine (adaptive weights if omitted)
        recommender: Alternative recommender

    Returns:
        AnalysisResult; ``success`` is False when the package could not be collected
    """
    owns_fetcher = fetcher is None
    fetcher = fetcher or SnapshotFetcher()
    engine = engine or RiskAssessmentEngine()

    try:
        try:
            snapshot = await fetcher.fetch(name)
        except CollectorError as e:
            logger.error(f"Could not collect {name}: {e}")
            return AnalysisResult(package=name, success=False, error=str(e))

        result = assess_snapshot(snapshot, context, engine)

        if recommend:
            recommender = recommender or AlternativeRecommender()
            profile = recommender.profiler.profile(snapshot)
            candidates = await fetch_candidates(fetcher, recommender.discover(profile))
            result.recommendation = recommender.recommend(profile, candidates.get, limit=limit)

        return result
    finally:
        if owns_fetcher:
            await fetcher.close()
