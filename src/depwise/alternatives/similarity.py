"""Profile-to-profile similarity on a 0-100 scale."""

from typing import Optional

from depwise.alternatives.profiler import PackageProfile
from depwise.licenses import UNKNOWN_SPDX, LicensePolicyResolver, default_resolver


def jaccard(a: set, b: set) -> float:
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


def lcs_length(a: str, b: str) -> int:
    """Length of the longest common subsequence of two strings."""
    if not a or not b:
        return 0
    previous = [0] * (len(b) + 1)
    for ch in a:
        current = [0]
        for j, other in enumerate(b, start=1):
            if ch == other:
                current.append(previous[j - 1] + 1)
            else:
                current.append(max(previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def lcs_ratio(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return lcs_length(a, b) / longest


class SimilarityScorer:
    """
    Score how alike two packages are.

    Keyword overlap (60%) and name resemblance (25%) are weighted; a shared
    license adds 15 points, comparable popularity up to 10 and a confirmed
    source repository on the candidate 10.
    """

    KEYWORD_WEIGHT = 0.6
    NAME_WEIGHT = 0.25
    DOWNLOAD_WEIGHT = 0.1
    LICENSE_BONUS = 15
    SOURCE_HOST_BONUS = 10

    def __init__(self, resolver: Optional[LicensePolicyResolver] = None):
        self.resolver = resolver or default_resolver()

    def same_license(self, a: PackageProfile, b: PackageProfile) -> bool:
        spdx = self.resolver.normalize(a.license)
        return spdx != UNKNOWN_SPDX and spdx == self.resolver.normalize(b.license)

    def similarity(self, a: PackageProfile, b: PackageProfile) -> int:
        score = jaccard(set(a.keywords), set(b.keywords)) * 100 * self.KEYWORD_WEIGHT
        score += lcs_ratio(a.name.lower(), b.name.lower()) * 100 * self.NAME_WEIGHT

        if self.same_license(a, b):
            score += self.LICENSE_BONUS

        if a.downloads and b.downloads and a.downloads > 0 and b.downloads > 0:
            ratio = min(a.downloads, b.downloads) / max(a.downloads, b.downloads)
            score += ratio * 100 * self.DOWNLOAD_WEIGHT

        if b.has_source_host:
            score += self.SOURCE_HOST_BONUS

        return int(max(0, min(100, round(score))))
