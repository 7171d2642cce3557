"""Package profiling and alternative recommendation."""

from depwise.alternatives.profiler import PackageProfile, PackageProfiler
from depwise.alternatives.recommender import (
    AlternativeCandidate,
    AlternativeRecommender,
    Bucket,
    CandidateBreakdown,
    Recommendation,
    recommend_for,
)
from depwise.alternatives.similarity import SimilarityScorer

__all__ = [
    "AlternativeCandidate",
    "AlternativeRecommender",
    "Bucket",
    "CandidateBreakdown",
    "PackageProfile",
    "PackageProfiler",
    "Recommendation",
    "SimilarityScorer",
    "recommend_for",
]
