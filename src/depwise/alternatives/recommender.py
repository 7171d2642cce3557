"""Alternative package discovery, scoring and bucketing."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from depwise.alternatives.profiler import PackageProfile, PackageProfiler
from depwise.alternatives.similarity import SimilarityScorer
from depwise.catalog import Catalog, load_catalog, normalize_name
from depwise.licenses import LicensePolicyResolver, default_resolver
from depwise.scoring.dimensions import ComplianceRisk, OperationalRisk, SecurityRisk
from depwise.scoring.metadata import MetadataSnapshot

logger = logging.getLogger(__name__)

# Resolves a candidate name to its metadata; None (or an exception) skips it.
CandidateMetadataProvider = Callable[[str], Optional[MetadataSnapshot]]


class Bucket(str, Enum):
    """Presentation group of a candidate, in assignment priority order."""

    BEST_OVERALL = "best-overall"
    PERFORMANCE = "performance"
    LIGHTWEIGHT = "lightweight"
    SPECIALIZED = "specialized"
    SIMILAR = "similar"

    @property
    def label(self) -> str:
        return {
            Bucket.BEST_OVERALL: "Best overall alternative",
            Bucket.PERFORMANCE: "Performance optimized",
            Bucket.LIGHTWEIGHT: "Lightweight and minimal",
            Bucket.SPECIALIZED: "Specialized for a use case",
            Bucket.SIMILAR: "Similar functionality",
        }[self]


@dataclass
class CandidateBreakdown:
    """Per-factor scores, each 0-100."""

    similarity: int = 0
    popularity: int = 0
    maintenance: int = 0
    security: int = 0
    license: int = 0

    def to_dict(self) -> dict:
        return {
            "similarity": self.similarity,
            "popularity": self.popularity,
            "maintenance": self.maintenance,
            "security": self.security,
            "license": self.license,
        }


@dataclass
class AlternativeCandidate:
    """A scored substitute for the analysed package."""

    name: str
    summary: str = ""
    breakdown: CandidateBreakdown = field(default_factory=CandidateBreakdown)
    score: int = 0
    bucket: Bucket = Bucket.SIMILAR
    justification: str = ""
    license: str = ""
    downloads: Optional[int] = None
    stars: Optional[int] = None
    cve_count: int = 0
    shared_domains: list[str] = field(default_factory=list)
    shared_keywords: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "summary": self.summary,
            "score": self.score,
            "breakdown": self.breakdown.to_dict(),
            "bucket": self.bucket.value,
            "bucketLabel": self.bucket.label,
            "justification": self.justification,
            "license": self.license,
            "downloads": self.downloads,
            "stars": self.stars,
            "cveCount": self.cve_count,
            "sharedDomains": self.shared_domains,
            "sharedKeywords": self.shared_keywords,
        }


@dataclass
class Recommendation:
    """Ranked alternatives plus the same candidates grouped by bucket."""

    original: PackageProfile
    alternatives: list[AlternativeCandidate] = field(default_factory=list)
    buckets: dict[Bucket, list[AlternativeCandidate]] = field(
        default_factory=lambda: {bucket: [] for bucket in Bucket}
    )

    def to_dict(self) -> dict:
        return {
            "original": self.original.to_dict(),
            "alternatives": [c.to_dict() for c in self.alternatives],
            "buckets": {b.value: [c.name for c in members] for b, members in self.buckets.items()},
        }


class AlternativeRecommender:
    """
    Find and rank safer substitutes for a package.

    Candidates come from the curated alternatives table, profile-driven
    discovery rules, the package's functional category and a tag search over
    the catalog. Each candidate is scored from its own metadata:

        similarity 40% + popularity 20% + maintenance 20% + security 10% + license 10%
    """

    WEIGHTS = {
        "similarity": 0.4,
        "popularity": 0.2,
        "maintenance": 0.2,
        "security": 0.1,
        "license": 0.1,
    }

    BEST_OVERALL_THRESHOLD = 80
    MAX_TAG_MATCHES = 10
    DEFAULT_LIMIT = 10

    def __init__(
        self,
        catalog: Optional[Catalog] = None,
        resolver: Optional[LicensePolicyResolver] = None,
        max_candidates: int = 30,
        now: Optional[datetime] = None,
    ):
        self.catalog = catalog or load_catalog()
        resolver = resolver or default_resolver()
        self.profiler = PackageProfiler(self.catalog)
        self.similarity = SimilarityScorer(resolver)
        self.security = SecurityRisk()
        self.operational = OperationalRisk(self.catalog, now=now)
        self.compliance = ComplianceRisk(resolver)
        self.max_candidates = max_candidates

    def _search_terms(self, profile: PackageProfile) -> list[str]:
        terms = list(profile.keywords) + list(profile.topics)
        for classifier in profile.classifiers:
            if classifier.startswith("Topic ::"):
                terms.append(classifier.split("::")[-1].strip().lower())
        return terms

    def discover(self, profile: PackageProfile) -> list[str]:
        """Candidate names, normalized and deduplicated, original excluded."""
        original = normalize_name(profile.name)
        found: list[str] = []

        # 1. Curated alternatives
        found.extend(self.catalog.known_alternatives.get(original, []))

        # 2. Profile-driven rules (domains, intents, keywords)
        for rule in self.catalog.discovery_rules:
            if rule.matches(profile.domains, profile.intent, profile.keywords):
                found.extend(rule.packages)

        # 3. Same functional category
        category = self.catalog.category_of(original)
        if category:
            found.extend(p.name for p in self.catalog.alternatives_in_category(category, exclude=original))

        # 4. Tag search
        tagged = self.catalog.find_by_tags(self._search_terms(profile))
        found.extend(p.name for p in tagged[: self.MAX_TAG_MATCHES])

        names = [n for n in dict.fromkeys(normalize_name(n) for n in found) if n != original]
        return names[: self.max_candidates]

    @staticmethod
    def popularity(snapshot: MetadataSnapshot) -> int:
        """0-100 from monthly downloads and stars, whichever is stronger."""
        downloads = snapshot.downloads or 0
        if downloads > 10_000_000:
            by_downloads = 100
        elif downloads > 1_000_000:
            by_downloads = 85
        elif downloads > 100_000:
            by_downloads = 70
        elif downloads > 10_000:
            by_downloads = 50
        elif downloads > 0:
            by_downloads = 30
        else:
            by_downloads = 0

        stars = snapshot.source_host.stars if snapshot.source_host else 0
        if stars >= 10_000:
            by_stars = 90
        elif stars >= 1_000:
            by_stars = 70
        elif stars >= 100:
            by_stars = 50
        elif stars > 0:
            by_stars = 30
        else:
            by_stars = 0

        return max(by_downloads, by_stars, 20)

    @staticmethod
    def _inverse(score: float) -> int:
        """Map a 0-10 risk score to a 0-100 quality score."""
        return int(max(0, min(100, round(100 - score * 10))))

    def assign_bucket(self, name: str, score: int) -> Bucket:
        """First matching rule wins: best-overall, performance, lightweight, specialized."""
        if score >= self.BEST_OVERALL_THRESHOLD:
            return Bucket.BEST_OVERALL
        lowered = name.lower()
        markers = self.catalog.bucket_markers
        for bucket, substrings in (
            (Bucket.PERFORMANCE, markers.performance),
            (Bucket.LIGHTWEIGHT, markers.lightweight),
            (Bucket.SPECIALIZED, markers.specialized),
        ):
            if any(s in lowered for s in substrings):
                return bucket
        return Bucket.SIMILAR

    def justify(self, candidate: AlternativeCandidate, same_license: bool) -> str:
        reasons = []
        b = candidate.breakdown
        if b.similarity > 80:
            reasons.append("Very similar features")
        if b.security > 90:
            reasons.append("Clean security record")
        if b.popularity > 80:
            reasons.append("Popular in the community")
        if "simd" in candidate.name:
            reasons.append("Optimized build (SIMD)")
        if "async" in candidate.name or "aio" in candidate.name:
            reasons.append("Native async support")
        if same_license:
            reasons.append("Same license")
        return " • ".join(reasons) if reasons else "Viable alternative"

    def score_candidate(
        self, original: PackageProfile, snapshot: MetadataSnapshot, name: Optional[str] = None
    ) -> AlternativeCandidate:
        profile = self.profiler.profile(snapshot)
        breakdown = CandidateBreakdown(
            similarity=self.similarity.similarity(original, profile),
            popularity=self.popularity(snapshot),
            maintenance=self._inverse(self.operational.compute(snapshot).score),
            security=self._inverse(self.security.compute(snapshot).score),
            license=self._inverse(self.compliance.compute(snapshot).score),
        )
        total = round(sum(getattr(breakdown, factor) * w for factor, w in self.WEIGHTS.items()))

        candidate = AlternativeCandidate(
            name=normalize_name(name or snapshot.name),
            summary=profile.summary,
            breakdown=breakdown,
            score=int(total),
            license=snapshot.license,
            downloads=snapshot.downloads,
            stars=snapshot.source_host.stars if snapshot.source_host else None,
            cve_count=snapshot.vulnerability_count,
            shared_domains=[d for d in original.domains if d in profile.domains],
            shared_keywords=[k for k in original.keywords if k in profile.keywords],
        )
        candidate.bucket = self.assign_bucket(candidate.name, candidate.score)
        candidate.justification = self.justify(candidate, self.similarity.same_license(original, profile))
        return candidate

    def _fetch(self, name: str, provider: CandidateMetadataProvider) -> Optional[MetadataSnapshot]:
        try:
            snapshot = provider(name)
        except Exception as e:
            logger.warning(f"Skipping candidate {name}: {e}")
            return None
        if snapshot is None:
            logger.debug(f"Skipping candidate {name}: no metadata")
        return snapshot

    def recommend(
        self,
        profile: PackageProfile,
        provider: CandidateMetadataProvider,
        limit: int = DEFAULT_LIMIT,
    ) -> Recommendation:
        """
        Rank alternatives for a profiled package.

        Args:
            profile: Profile of the package being replaced
            provider: Resolves candidate names to metadata snapshots
            limit: Maximum number of alternatives returned

        Returns:
            Recommendation with ranked alternatives and all five buckets
        """
        scored = []
        for name in self.discover(profile):
            snapshot = self._fetch(name, provider)
            if snapshot is None:
                continue
            scored.append(self.score_candidate(profile, snapshot, name=name))

        scored.sort(key=lambda c: (-c.score, c.name))
        ranked = scored[:limit]

        recommendation = Recommendation(original=profile, alternatives=ranked)
        for candidate in ranked:
            recommendation.buckets[candidate.bucket].append(candidate)

        logger.debug(f"{profile.name}: {len(ranked)} alternatives from {len(scored)} scored candidates")
        return recommendation


def recommend_for(
    snapshot: MetadataSnapshot,
    provider: CandidateMetadataProvider,
    limit: int = AlternativeRecommender.DEFAULT_LIMIT,
    recommender: Optional[AlternativeRecommender] = None,
) -> Recommendation:
    """Profile ``snapshot`` and recommend alternatives for it."""
    recommender = recommender or AlternativeRecommender()
    return recommender.recommend(recommender.profiler.profile(snapshot), provider, limit=limit)
