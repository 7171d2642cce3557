"""Per-dimension risk calculators (security, operational, compliance, supply chain)."""

import math
from datetime import datetime
from typing import Optional

from depwise.catalog import Catalog, load_catalog
from depwise.licenses import LicensePolicyResolver, TriState, default_resolver
from depwise.scoring.factors import DimensionScore
from depwise.scoring.metadata import MetadataSnapshot, days_since, years_since

# Days since last push after which a repository counts as abandoned
ABANDONED_AFTER_DAYS = 730


def format_downloads(downloads: int) -> str:
    if downloads >= 1_000_000_000:
        return f"{downloads / 1_000_000_000:.1f}B"
    if downloads >= 1_000_000:
        return f"{downloads / 1_000_000:.1f}M"
    if downloads >= 1_000:
        return f"{downloads / 1_000:.0f}k"
    return str(downloads)


class SecurityRisk:
    """
    Security risk from known vulnerabilities.

    Score = 0.6 * severity + 0.4 * applicability. Affected version ranges are
    not checked, so every known vulnerability is assumed to apply.
    """

    SEVERITY_WEIGHT = 0.6
    APPLICABILITY_WEIGHT = 0.4
    ASSUMED_APPLICABILITY = 8.0

    def severity(self, critical: int, total: int) -> float:
        """
        Severity step table.

        Args:
            critical: Number of critical (CVSS >= 7) vulnerabilities
            total: Total number of vulnerabilities

        Returns:
            Severity component (0-10)
        """
        if critical >= 10:
            return 10.0
        elif critical >= 5:
            return 9.0
        elif critical >= 1:
            return 8.0
        elif total >= 50:
            return 7.0
        elif total >= 20:
            return 5.0
        elif total >= 10:
            return 4.0
        elif total >= 5:
            return 3.0
        elif total > 0:
            return 2.0
        return 0.0

    def compute(self, snapshot: MetadataSnapshot) -> DimensionScore:
        total = snapshot.vulnerability_count
        critical = snapshot.critical_count
        concerns = []

        severity = self.severity(critical, total)
        if critical >= 10:
            concerns.append(f"CRITICAL: {critical} critical vulnerabilities")
        elif critical >= 1:
            concerns.append(f"{critical} critical vulnerabilit{'ies' if critical > 1 else 'y'}")
        elif total > 0:
            concerns.append(f"{total} known vulnerabilit{'ies' if total > 1 else 'y'}")

        applicability = self.ASSUMED_APPLICABILITY if total > 0 else 0.0
        if total > 0:
            concerns.append("Affected versions not verified (assumed applicable)")

        score = severity * self.SEVERITY_WEIGHT + applicability * self.APPLICABILITY_WEIGHT
        return DimensionScore(
            score=round(min(10.0, score), 1),
            concerns=concerns,
            details={
                "vulnerabilities": total,
                "critical": critical,
                "severity": severity,
                "applicability": applicability,
            },
        )


class OperationalRisk:
    """
    Maintenance and community health.

    Starts from an optimistic base of 3.0 and moves with repository activity,
    community size, issue backlog, bus factor and maturity. Without repository
    data it falls back to the well-known list or download popularity.
    """

    BASE_SCORE = 3.0
    WELL_KNOWN_SCORE = 1.5

    def __init__(self, catalog: Optional[Catalog] = None, now: Optional[datetime] = None):
        self.catalog = catalog or load_catalog()
        self.now = now

    def popularity_adjustment(self, downloads: int) -> float:
        """Adjustment from monthly downloads when no repository data exists."""
        if downloads > 100_000_000:
            return -1.5
        elif downloads > 50_000_000:
            return -1.0
        elif downloads > 10_000_000:
            return -0.5
        elif downloads > 1_000_000:
            return 0.0
        elif downloads > 100_000:
            return 0.5
        return 1.5

    def maturity_bonus(self, age_years: float, stars: int, vulnerabilities: int) -> float:
        """Negative values reward long-lived, popular, clean projects."""
        if age_years >= 5 and stars > 5000 and vulnerabilities == 0:
            return -1.5
        if age_years >= 3 and stars > 1000 and vulnerabilities <= 2:
            return -0.8
        if age_years >= 2 and stars > 500:
            return -0.4
        if age_years < 0.5 and stars < 100:
            return 1.0
        if age_years < 1 and stars > 500:
            return 0.2
        return 0.0

    def compute(self, snapshot: MetadataSnapshot) -> DimensionScore:
        concerns = []
        sh = snapshot.source_host

        if sh is None:
            return self._compute_without_repository(snapshot)

        score = self.BASE_SCORE
        days = days_since(sh.last_push, self.now)

        if sh.archived:
            score += 5.0
            concerns.append("Repository is archived (no longer maintained)")
            frequency = "abandoned"
        elif days > ABANDONED_AFTER_DAYS:
            score += 4.0
            if math.isinf(days):
                concerns.append("Abandoned (last update date unknown)")
            else:
                concerns.append(f"Abandoned (last update {int(days // 365)} years ago)")
            frequency = "abandoned"
        elif days > 365:
            score += 2.5
            concerns.append(f"Stale (last update {int(days // 30)} months ago)")
            frequency = "slow"
        elif days > 180:
            score += 1.0
            concerns.append(f"Infrequent updates (last update {int(days // 30)} months ago)")
            frequency = "slow"
        elif days < 30:
            score -= 1.5
            frequency = "active"
        else:
            frequency = "moderate"

        stars = sh.stars
        if stars >= 50_000:
            score -= 2.0
        elif stars >= 10_000:
            score -= 1.5
        elif stars >= 1_000:
            score -= 0.5
        elif stars < 100:
            score += 1.0
            concerns.append(f"Small community ({stars} stars)")

        if sh.open_issues / (stars + 1) > 0.2:
            score += 1.0
            concerns.append(f"High issue count ({sh.open_issues} open issues)")

        bus_factor = max(1, sh.forks // 100)
        if bus_factor == 1 and stars < 500:
            score += 0.5
            concerns.append("Single maintainer (bus factor = 1)")

        maturity = 0.0
        if sh.created_at:
            age = years_since(sh.created_at, self.now)
            maturity = self.maturity_bonus(age, stars, snapshot.vulnerability_count)
            score += maturity
            if maturity <= -0.5:
                concerns.append(f"Mature package ({age:.1f} years established)")

        return DimensionScore(
            score=round(score, 1),
            concerns=concerns,
            details={
                "days_since_last_update": None if math.isinf(days) else days,
                "archived": sh.archived,
                "community_size": stars,
                "maintenance_frequency": frequency,
                "bus_factor": bus_factor,
                "maturity_bonus": maturity,
            },
        )

    def _compute_without_repository(self, snapshot: MetadataSnapshot) -> DimensionScore:
        concerns = []
        score = self.BASE_SCORE
        downloads = snapshot.downloads or 0

        if self.catalog.is_well_known(snapshot.name):
            score = self.WELL_KNOWN_SCORE
            concerns.append("Well-known package (repository data not required)")
        elif downloads > 0:
            score += self.popularity_adjustment(downloads)
            if downloads > 10_000_000:
                concerns.append(f"Popular package ({format_downloads(downloads)} downloads/month)")
            elif downloads > 1_000_000:
                concerns.append(f"Established package ({format_downloads(downloads)} downloads/month)")
            elif downloads < 100_000:
                concerns.append(f"Low visibility ({format_downloads(downloads)} downloads/month)")
        else:
            score += 2.5
            concerns.append("Limited package information available")

        return DimensionScore(
            score=score,
            concerns=concerns,
            details={"days_since_last_update": None, "archived": False, "downloads": downloads},
        )


class ComplianceRisk:
    """
    License compliance risk from the license policy table.

    Only capabilities resolved as ALLOWED count as granted; anything needing
    review is treated as restricted and reported as a concern.
    """

    NETWORK_COPYLEFT_FLOOR = 7.0

    # Obligations that make a license "come with strings attached"
    SIGNIFICANT_OBLIGATIONS = (
        "attribution",
        "include_license",
        "state_changes",
        "disclose_source",
        "share_alike",
        "network_copyleft",
    )

    def __init__(self, resolver: Optional[LicensePolicyResolver] = None):
        self.resolver = resolver or default_resolver()

    def decide(self, capabilities: dict[str, TriState], obligations: dict[str, TriState]) -> tuple[float, list[str]]:
        """
        Decision table over capabilities and obligations.

        Returns:
            (score, concerns)
        """
        can_use = capabilities["use"] == TriState.ALLOWED
        can_modify = capabilities["modify"] == TriState.ALLOWED
        can_sell = capabilities["sell"] == TriState.ALLOWED
        can_saas = capabilities["saas"] == TriState.ALLOWED
        required = [o for o in self.SIGNIFICANT_OBLIGATIONS if obligations[o] == TriState.ALLOWED]
        has_obligations = bool(required)
        concerns = []

        if not can_use:
            score = 10.0
            concerns.append("Usage not permitted: blocking")
        elif not can_modify and not can_sell and not can_saas:
            score = 8.0 if has_obligations else 6.0
            concerns.append("Use only: no modification, resale or SaaS")
        elif can_modify and not can_sell and not can_saas:
            score = 5.0 if has_obligations else 4.0
            concerns.append("Modification allowed, but no resale or SaaS")
        elif can_modify and can_sell and not can_saas:
            score = 3.0 if has_obligations else 2.0
            concerns.append("Resale allowed, but no SaaS")
        elif can_modify and can_sell and can_saas:
            score = 2.0 if has_obligations else 0.0
            if has_obligations:
                concerns.append("All uses allowed, obligations apply")
        else:
            score = 5.0
            concerns.append("Partial restrictions: review recommended")

        if has_obligations and score > 0:
            concerns.append("Obligations: " + ", ".join(o.replace("_", " ") for o in required))

        review = [name for name, value in capabilities.items() if value == TriState.NEEDS_REVIEW]
        if review:
            concerns.append("Needs manual review: " + ", ".join(review))

        if obligations["network_copyleft"] == TriState.ALLOWED:
            score = max(score, self.NETWORK_COPYLEFT_FLOOR)
            concerns.append("Network copyleft (AGPL-like): source disclosure required even for SaaS")

        return min(10.0, score), concerns

    def compute(self, snapshot: MetadataSnapshot) -> DimensionScore:
        record = self.resolver.resolve(snapshot.license)
        score, concerns = self.decide(record.capabilities.as_dict(), record.obligations.as_dict())
        if record.is_unknown:
            concerns.insert(0, f"Unknown license ({snapshot.license or 'not specified'})")
        return DimensionScore(
            score=score,
            concerns=concerns,
            details={
                "license": snapshot.license or "",
                "spdx": record.spdx,
                "license_category": record.category.value,
            },
        )


class SupplyChainRisk:
    """Dependency surface, native artifacts and contributor base."""

    def __init__(self, catalog: Optional[Catalog] = None):
        self.catalog = catalog or load_catalog()

    def dependency_score(self, direct: int) -> float:
        if direct > 50:
            return 6.0
        elif direct > 20:
            return 4.0
        elif direct > 10:
            return 2.5
        elif direct == 0:
            return 0.5
        return 1.0

    def compute(self, snapshot: MetadataSnapshot) -> DimensionScore:
        direct = len(snapshot.direct_dependency_names)
        concerns = []

        score = self.dependency_score(direct)
        if direct > 50:
            concerns.append(f"{direct} direct dependencies (large attack surface)")
        elif direct > 20:
            concerns.append(f"{direct} direct dependencies (high complexity)")
        elif direct > 10:
            concerns.append(f"{direct} direct dependencies (moderate complexity)")

        native = self.catalog.has_native_artifacts(snapshot.name)
        if native:
            score += 1.5
            concerns.append("Ships native/compiled artifacts")

        compilation = self.catalog.requires_compilation(snapshot.name)
        if compilation:
            score += 1.0
            concerns.append("May require a compilation toolchain")

        sh = snapshot.source_host
        small_base = sh is not None and sh.forks < 10 and sh.stars < 100
        if small_base:
            score += 1.5
            concerns.append("Small contributor base (single point of failure)")

        return DimensionScore(
            score=min(10.0, score),
            concerns=concerns,
            details={
                "direct_dependencies": direct,
                "native_artifacts": native,
                "requires_compilation": compilation,
            },
        )
