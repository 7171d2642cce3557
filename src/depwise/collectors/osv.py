"""OSV (Open Source Vulnerabilities) collector."""

import logging
from typing import Optional

import httpx

from depwise.collectors.base import BaseCollector
from depwise.scoring.metadata import VulnerabilityFinding, VulnerabilitySummary

logger = logging.getLogger(__name__)


class OSVCollector(BaseCollector):
    """
    Fetch known vulnerabilities for a PyPI package from https://osv.dev/.

    No authentication required.
    """

    QUERY_URL = "https://api.osv.dev/v1/query"
    ECOSYSTEM = "PyPI"

    DEFAULT_SEVERITY = 5.0

    # Representative CVSS scores for advisory severity labels
    LABEL_SCORES = {
        "CRITICAL": 9.0,
        "HIGH": 7.5,
        "MODERATE": 5.0,
        "MEDIUM": 5.0,
        "LOW": 2.5,
    }

    MAX_DESCRIPTION = 200

    def is_available(self) -> bool:
        return True

    async def query(self, package_name: str, version: Optional[str] = None) -> Optional[list[dict]]:
        """Raw OSV records for the package, or None if OSV could not be reached."""
        body: dict = {"package": {"name": package_name, "ecosystem": self.ECOSYSTEM}}
        if version:
            body["version"] = version

        try:
            response = await self.client.post(self.QUERY_URL, json=body)
            response.raise_for_status()
            return response.json().get("vulns", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"OSV API error for {package_name}: {e}")
            return None

    def parse_severity(self, vuln: dict) -> float:
        """
        Extract a 0-10 severity from an OSV record.

        Numeric CVSS scores win; otherwise the advisory's severity label is
        mapped to a representative score. Records without either get 5.0.
        """
        db_specific = vuln.get("database_specific") or {}

        cvss = db_specific.get("cvss")
        if isinstance(cvss, dict):
            cvss = cvss.get("score")
        if isinstance(cvss, (int, float)):
            return float(cvss)

        for sev in vuln.get("severity", []) or []:
            try:
                return float(sev.get("score"))
            except (TypeError, ValueError):
                # CVSS vector strings carry no base score
                continue

        label = str(db_specific.get("severity", "")).upper()
        if label in self.LABEL_SCORES:
            return self.LABEL_SCORES[label]

        for affected in vuln.get("affected", []) or []:
            label = str((affected.get("ecosystem_specific") or {}).get("severity", "")).upper()
            if label in self.LABEL_SCORES:
                return self.LABEL_SCORES[label]

        return self.DEFAULT_SEVERITY

    def parse_finding(self, vuln: dict) -> VulnerabilityFinding:
        aliases = vuln.get("aliases") or []
        cve = next((a for a in aliases if a.startswith("CVE-")), None)
        description = vuln.get("summary") or vuln.get("details") or ""
        return VulnerabilityFinding(
            id=cve or vuln.get("id", ""),
            severity=self.parse_severity(vuln),
            description=description[: self.MAX_DESCRIPTION],
        )

    async def collect(self, package_name: str, version: Optional[str] = None) -> Optional[VulnerabilitySummary]:
        """
        Collect the vulnerability summary for a package.

        Args:
            package_name: PyPI package name
            version: Restrict to advisories affecting this version

        Returns:
            VulnerabilitySummary, or None when OSV could not answer
        """
        records = await self.query(package_name, version)
        if records is None:
            return None
        summary = VulnerabilitySummary.from_findings([self.parse_finding(v) for v in records])
        logger.debug(f"{package_name}: {summary.count} vulnerabilities ({summary.critical} critical)")
        return summary
