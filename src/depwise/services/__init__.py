"""Depwise services for analysis, batch scanning and caching."""

from depwise.services.analyzer import (
    AnalysisResult,
    SnapshotFetcher,
    analyze_package,
    assess_snapshot,
    load_snapshot,
)
from depwise.services.batch import BatchResult, ParsedPackage, batch_analyze, parse_dependency_file
from depwise.services.cache import MemoryCache, MetadataCache, SqlCache

__all__ = [
    "AnalysisResult",
    "BatchResult",
    "MemoryCache",
    "MetadataCache",
    "ParsedPackage",
    "SnapshotFetcher",
    "SqlCache",
    "analyze_package",
    "assess_snapshot",
    "batch_analyze",
    "load_snapshot",
    "parse_dependency_file",
]
