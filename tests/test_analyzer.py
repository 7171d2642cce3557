"""Tests for snapshot assembly, fetching and single-package analysis."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from depwise.alternatives import AlternativeRecommender, Bucket
from depwise.collectors import GitHubCollector, OSVCollector, PyPICollector, PyPIData, build_snapshot
from depwise.errors import CollectorError
from depwise.scoring import (
    MetadataSnapshot,
    RiskAssessmentEngine,
    SourceHostSignals,
    VulnerabilityFinding,
    VulnerabilitySummary,
)
from depwise.services.analyzer import (
    SnapshotFetcher,
    analyze_package,
    assess_snapshot,
    fetch_candidates,
    load_snapshot,
)
from depwise.services.cache import MemoryCache
from fakes import FakeFetcher, healthy_snapshot

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)

REQUESTS = PyPIData(
    name="requests",
    version="2.32.3",
    license="Apache-2.0",
    summary="Python HTTP for Humans.",
    dependencies=["charset-normalizer", "idna", "urllib3", "certifi"],
    repository_url="https://github.com/psf/requests",
    monthly_downloads=480_000_000,
)


class FakePyPI:
    def __init__(self, packages: dict[str, PyPIData]):
        self.packages = packages
        self.calls = 0

    async def collect(self, name):
        self.calls += 1
        if name not in self.packages:
            raise CollectorError("pypi", name, "package not found")
        return self.packages[name]

    async def close(self):
        pass


class FakeGitHub:
    def __init__(self, signals=None):
        self.signals = signals
        self.calls = 0

    async def collect(self, repo_url):
        self.calls += 1
        return self.signals

    async def close(self):
        pass


class FakeOSV:
    def __init__(self, summary=None):
        self.summary = summary
        self.calls = []

    async def collect(self, name, version=None):
        self.calls.append((name, version))
        return self.summary

    async def close(self):
        pass


class TestBuildSnapshot:
    def test_maps_registry_fields(self):
        snapshot = build_snapshot(REQUESTS)
        assert snapshot.name == "requests"
        assert snapshot.license == "Apache-2.0"
        assert snapshot.downloads == 480_000_000
        assert snapshot.direct_dependency_names == ("charset-normalizer", "idna", "urllib3", "certifi")
        assert snapshot.source_host is None
        assert snapshot.vulnerabilities is None

    def test_unknown_registry_license_uses_source_host(self):
        pypi = PyPIData(name="tool", license="see LICENSE file")
        snapshot = build_snapshot(pypi, SourceHostSignals(license_spdx="MIT"))
        assert snapshot.license == "MIT"

    def test_known_registry_license_wins(self):
        snapshot = build_snapshot(REQUESTS, SourceHostSignals(license_spdx="MIT"))
        assert snapshot.license == "Apache-2.0"


class TestSnapshotFetcher:
    def setup_method(self):
        self.pypi = FakePyPI({"requests": REQUESTS})
        self.github = FakeGitHub(SourceHostSignals(stars=52_000, topics=("http", "python")))
        self.osv = FakeOSV(
            VulnerabilitySummary.from_findings([VulnerabilityFinding(id="CVE-2023-32681", severity=6.1)])
        )
        self.fetcher = SnapshotFetcher(cache=MemoryCache(), pypi=self.pypi, github=self.github, osv=self.osv)

    def test_fetch_assembles_snapshot(self):
        snapshot = asyncio.run(self.fetcher.fetch("requests"))
        assert snapshot.source_host.stars == 52_000
        assert snapshot.vulnerability_count == 1
        assert self.osv.calls == [("requests", "2.32.3")]

    def test_second_fetch_is_served_from_cache(self):
        first = asyncio.run(self.fetcher.fetch("requests"))
        second = asyncio.run(self.fetcher.fetch("Requests"))

        assert (self.pypi.calls, self.github.calls, len(self.osv.calls)) == (1, 1, 1)
        assert second == first

    def test_missing_optional_data_is_not_cached(self):
        self.github.signals = None
        self.osv.summary = None
        asyncio.run(self.fetcher.fetch("requests"))
        snapshot = asyncio.run(self.fetcher.fetch("requests"))

        assert snapshot.source_host is None
        assert snapshot.vulnerabilities is None
        assert self.pypi.calls == 1
        assert self.github.calls == 2
        assert len(self.osv.calls) == 2

    def test_no_repository_url_skips_source_host(self):
        self.pypi.packages["tool"] = PyPIData(name="tool", version="0.1")
        snapshot = asyncio.run(self.fetcher.fetch("tool"))
        assert snapshot.source_host is None
        assert self.github.calls == 0

    def test_fetch_candidates_skips_failures(self):
        snapshots = asyncio.run(fetch_candidates(self.fetcher, ["requests", "no-such-package"]))
        assert list(snapshots) == ["requests"]


class TestAnalyzePackage:
    def setup_method(self):
        self.fetcher = FakeFetcher(
            {
                "requests": healthy_snapshot("requests", license="Apache-2.0", summary="Python HTTP for Humans."),
                "httpx": healthy_snapshot("httpx"),
                "urllib3": healthy_snapshot("urllib3"),
                "bare": healthy_snapshot("bare", source_host=None, vulnerabilities=None),
            }
        )
        self.engine = RiskAssessmentEngine(now=NOW)

    def _analyze(self, name, **kwargs):
        return asyncio.run(analyze_package(name, fetcher=self.fetcher, engine=self.engine, **kwargs))

    def test_assessment(self):
        result = self._analyze("requests")
        assert result.success
        assert result.breakdown.package_name == "requests"
        assert result.warnings == []
        assert result.recommendation is None
        assert not self.fetcher.closed

    def test_unknown_package(self):
        result = self._analyze("no-such-package")
        assert not result.success
        assert result.breakdown is None
        assert "package not found" in result.error

    def test_warnings_for_missing_sources(self):
        result = self._analyze("bare")
        assert result.success
        assert result.warnings == ["Source repository data unavailable", "Vulnerability data unavailable"]

    def test_recommendations_use_fetched_candidates(self):
        recommender = AlternativeRecommender(now=NOW)
        result = self._analyze("requests", recommend=True, limit=5, recommender=recommender)

        names = [c.name for c in result.recommendation.alternatives]
        assert sorted(names) == ["httpx", "urllib3"]
        assert set(result.recommendation.buckets) == set(Bucket)
        assert "aiohttp" in self.fetcher.requested

    def test_to_dict(self):
        d = self._analyze("requests", recommend=True, recommender=AlternativeRecommender(now=NOW)).to_dict()
        assert d["success"] is True
        assert d["assessment"]["package"] == "requests"
        assert d["recommendation"]["original"]["name"] == "requests"


def _registry_json(name: str) -> dict:
    return {
        "info": {
            "name": name,
            "version": "1.0.0",
            "license": "MIT",
            "summary": "HTTP library",
            "requires_dist": None,
            "project_urls": None,
        },
        "urls": [],
    }


class TestCandidateFailures:
    """A broken candidate is skipped without failing the analysis."""

    def setup_method(self):
        self.engine = RiskAssessmentEngine(now=NOW)
        self.recommender = AlternativeRecommender(now=NOW)

    def _http_fetcher(self) -> SnapshotFetcher:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "pypi.org":
                if request.url.path in ("/pypi/requests/json", "/pypi/urllib3/json"):
                    return httpx.Response(200, json=_registry_json(request.url.path.split("/")[2]))
                if request.url.path == "/pypi/httpx/json":
                    return httpx.Response(200, text="<html>upstream error</html>")
                return httpx.Response(404)
            if request.url.host == "api.osv.dev":
                return httpx.Response(200, json={"vulns": []})
            return httpx.Response(404)

        def client() -> httpx.AsyncClient:
            return httpx.AsyncClient(transport=httpx.MockTransport(handler))

        return SnapshotFetcher(
            cache=MemoryCache(),
            pypi=PyPICollector(client=client()),
            github=GitHubCollector(token="test-token", client=client()),
            osv=OSVCollector(client=client()),
        )

    def test_non_json_registry_response_skips_candidate(self):
        result = asyncio.run(
            analyze_package(
                "requests",
                recommend=True,
                fetcher=self._http_fetcher(),
                engine=self.engine,
                recommender=self.recommender,
            )
        )
        assert result.success
        assert [c.name for c in result.recommendation.alternatives] == ["urllib3"]

    def test_non_json_registry_response_for_package(self):
        result = asyncio.run(analyze_package("httpx", fetcher=self._http_fetcher(), engine=self.engine))
        assert not result.success
        assert "package not found" in result.error

    def test_unexpected_exception_skips_candidate(self):
        class BrokenCandidateFetcher(FakeFetcher):
            async def fetch(self, name):
                if name == "aiohttp":
                    raise KeyError("info")
                return await super().fetch(name)

        fetcher = BrokenCandidateFetcher(
            {
                "requests": healthy_snapshot("requests", license="Apache-2.0"),
                "aiohttp": healthy_snapshot("aiohttp"),
                "httpx": healthy_snapshot("httpx"),
            }
        )
        result = asyncio.run(
            analyze_package(
                "requests", recommend=True, fetcher=fetcher, engine=self.engine, recommender=self.recommender
            )
        )
        assert result.success
        assert [c.name for c in result.recommendation.alternatives] == ["httpx"]
        assert "aiohttp" in fetcher.requested


class TestSavedSnapshots:
    def setup_method(self):
        self.snapshot = healthy_snapshot(
            "httpx",
            classifiers=("Topic :: Internet :: WWW/HTTP",),
            vulnerabilities=VulnerabilitySummary.from_findings(
                [VulnerabilityFinding(id="CVE-2021-41945", severity=9.1, description="URL parsing")]
            ),
            direct_dependency_names=("anyio", "certifi"),
        )

    def test_dict_round_trip(self):
        assert MetadataSnapshot.from_dict(self.snapshot.to_dict()) == self.snapshot

    def test_load_bare_snapshot(self, tmp_path):
        path = tmp_path / "httpx.json"
        path.write_text(json.dumps(self.snapshot.to_dict()))
        assert load_snapshot(path) == self.snapshot

    def test_load_from_analysis_output(self, tmp_path):
        result = assess_snapshot(self.snapshot, engine=RiskAssessmentEngine(now=NOW))
        path = tmp_path / "result.json"
        path.write_text(json.dumps(result.to_dict()))
        assert load_snapshot(str(path)) == self.snapshot

    @pytest.mark.parametrize("content", ["not json", "[]", '{"license": "MIT"}'])
    def test_invalid_files(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content)
        with pytest.raises(ValueError):
            load_snapshot(path)

    def test_assess_snapshot_warnings(self):
        bare = healthy_snapshot("bare", source_host=None, vulnerabilities=None)
        result = assess_snapshot(bare, engine=RiskAssessmentEngine(now=NOW))
        assert result.success
        assert result.breakdown.package_name == "bare"
        assert result.warnings == ["Source repository data unavailable", "Vulnerability data unavailable"]
