"""Data collectors for the registry, the source host and vulnerability feeds."""

import logging
from typing import Optional

from depwise.collectors.base import BaseCollector
from depwise.collectors.github import GitHubCollector
from depwise.collectors.osv import OSVCollector
from depwise.collectors.pypi import PyPICollector, PyPIData
from depwise.licenses import LicensePolicyResolver, default_resolver
from depwise.scoring.metadata import MetadataSnapshot, SourceHostSignals, VulnerabilitySummary

logger = logging.getLogger(__name__)


def build_snapshot(
    pypi: PyPIData,
    github: Optional[SourceHostSignals] = None,
    vulnerabilities: Optional[VulnerabilitySummary] = None,
    resolver: Optional[LicensePolicyResolver] = None,
) -> MetadataSnapshot:
    """
    Assemble a MetadataSnapshot from collected data.

    When the registry declares no recognizable license, the source host's
    SPDX identifier is used instead.
    """
    resolver = resolver or default_resolver()
    license_name = pypi.license
    if github and github.license_spdx and resolver.resolve(license_name).is_unknown:
        logger.debug(f"{pypi.name}: using source host license {github.license_spdx}")
        license_name = github.license_spdx

    return MetadataSnapshot(
        name=pypi.name,
        version=pypi.version,
        license=license_name,
        author=pypi.author,
        release_date=pypi.release_date,
        summary=pypi.summary,
        description=pypi.description,
        keywords=pypi.keywords,
        classifiers=tuple(pypi.classifiers),
        downloads=pypi.monthly_downloads,
        source_host=github,
        vulnerabilities=vulnerabilities,
        direct_dependency_names=tuple(pypi.dependencies),
    )


__all__ = [
    "BaseCollector",
    "GitHubCollector",
    "OSVCollector",
    "PyPICollector",
    "PyPIData",
    "build_snapshot",
]
