"""Batch analysis service for depwise.

Analyses the dependencies declared in a requirements file or a
pyproject.toml, one package at a time, with progress tracking.
"""

import asyncio
import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from depwise.catalog import normalize_name
from depwise.scoring import AnalysisContext, RiskAssessmentEngine, Usage
from depwise.services.analyzer import AnalysisResult, SnapshotFetcher, analyze_package

logger = logging.getLogger(__name__)

# Pause between packages to stay polite with the public APIs
PACKAGE_PAUSE = float(os.getenv("DEPWISE_PACKAGE_PAUSE", "0.25"))

_DEV_GROUPS = {"dev", "develop", "development", "test", "tests", "testing", "lint", "docs", "typing"}

ProgressCallback = Callable[[int, int, str, str], None]


@dataclass
class ParsedPackage:
    """A package extracted from a dependency file."""

    name: str
    is_dev: bool = False


@dataclass
class BatchResult:
    """Summary of a batch analysis run."""

    total: int = 0
    analyzed: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)
    results: list[AnalysisResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "analyzed": self.analyzed,
            "errors": self.errors,
            "errorDetails": self.error_details,
            "results": [r.to_dict() for r in self.results],
        }


def requirement_name(requirement: str) -> str:
    """Distribution name of a PEP 508 requirement string: ``requests>=2.28,<3`` -> ``requests``."""
    return re.split(r"[><=!~;@\[\s(]", requirement.strip(), maxsplit=1)[0].strip()


def _parse_requirements_txt(path: str, is_dev: bool = False) -> list[ParsedPackage]:
    """Parse requirements.txt / constraints.txt."""
    packages = []
    with open(path) as f:
        for line in f:
            line = line.split(" #", 1)[0].strip()
            if not line or line.startswith("#") or line.startswith("-"):
                continue
            # Direct URLs and local paths carry no registry name
            if "://" in line.split("@")[0] or line.startswith((".", "/")):
                continue
            name = requirement_name(line)
            if name:
                packages.append(ParsedPackage(name=name, is_dev=is_dev))
    return packages


def _parse_pyproject_toml(path: str) -> list[ParsedPackage]:
    """Parse pyproject.toml: runtime dependencies, optional extras and dependency groups."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    packages = []
    project = data.get("project", {})
    for dep in project.get("dependencies", []):
        name = requirement_name(dep)
        if name:
            packages.append(ParsedPackage(name=name, is_dev=False))

    for group, group_deps in project.get("optional-dependencies", {}).items():
        for dep in group_deps:
            name = requirement_name(dep)
            if name:
                packages.append(ParsedPackage(name=name, is_dev=group.lower() in _DEV_GROUPS))

    # PEP 735 groups are never installed at runtime
    for group_deps in data.get("dependency-groups", {}).values():
        for dep in group_deps:
            if isinstance(dep, str):
                name = requirement_name(dep)
                if name:
                    packages.append(ParsedPackage(name=name, is_dev=True))

    return packages


def parse_dependency_file(path: str, include_dev: bool = True) -> list[ParsedPackage]:
    """Parse a dependency file and return its packages, deduplicated by normalized name.

    Detects file type from filename. Requirements files whose name mentions
    dev, test or docs are treated as development dependencies.

    Raises:
        ValueError: If the file type is not supported
    """
    filename = Path(path).name.lower()

    if filename == "pyproject.toml":
        parsed = _parse_pyproject_toml(path)
    elif filename.endswith((".txt", ".in")) and ("requirements" in filename or "constraints" in filename):
        is_dev = any(marker in filename for marker in ("dev", "test", "docs", "lint"))
        parsed = _parse_requirements_txt(path, is_dev=is_dev)
    else:
        raise ValueError(
            f"Cannot detect dependency format from '{filename}'. "
            f"Supported: requirements*.txt, constraints*.txt, pyproject.toml."
        )

    if not include_dev:
        parsed = [p for p in parsed if not p.is_dev]

    seen: set[str] = set()
    packages = []
    for p in parsed:
        key = normalize_name(p.name)
        if key in seen:
            continue
        seen.add(key)
        packages.append(p)
    return packages


async def batch_analyze(
    packages: list[ParsedPackage],
    context: Optional[AnalysisContext] = None,
    fetcher: Optional[SnapshotFetcher] = None,
    engine: Optional[RiskAssessmentEngine] = None,
    pause: float = PACKAGE_PAUSE,
    progress_callback: Optional[ProgressCallback] = None,
) -> BatchResult:
    """
    Analyse packages sequentially.

    A failing package is recorded in ``error_details`` and the run continues.
    Development dependencies are assessed with ``usage=dev`` unless a
    context is given.

    Args:
        packages: Packages from ``parse_dependency_file``
        context: Context applied to every package
        fetcher: Shared snapshot fetcher (created and closed here if omitted)
        engine: Risk engine
        pause: Seconds to wait between packages
        progress_callback: Optional callback(current, total, pkg_name, status)

    Returns:
        BatchResult with counts, per-package results and error details
    """
    result = BatchResult(total=len(packages))
    owns_fetcher = fetcher is None
    fetcher = fetcher or SnapshotFetcher()
    engine = engine or RiskAssessmentEngine()

    try:
        for i, entry in enumerate(packages, start=1):
            if i > 1 and pause > 0:
                await asyncio.sleep(pause)

            pkg_context = context
            if pkg_context is None and entry.is_dev:
                pkg_context = AnalysisContext(usage=Usage.DEV)

            try:
                analysis = await analyze_package(entry.name, pkg_context, fetcher=fetcher, engine=engine)
            except Exception as e:
                logger.exception(f"Unexpected failure analysing {entry.name}")
                analysis = AnalysisResult(package=entry.name, success=False, error=str(e))

            result.results.append(analysis)
            if analysis.success:
                result.analyzed += 1
                status = analysis.breakdown.risk_level.value
            else:
                result.errors += 1
                result.error_details.append(f"{entry.name}: {analysis.error}")
                status = f"error: {analysis.error}"

            if progress_callback:
                progress_callback(i, result.total, entry.name, status)
    finally:
        if owns_fetcher:
            await fetcher.close()

    return result
