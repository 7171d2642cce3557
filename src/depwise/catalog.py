"""Static lookup tables (well-known packages, alternatives, profiler vocab)."""

import re
from functools import lru_cache
from importlib import resources
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from depwise.errors import CatalogError


def normalize_name(name: str) -> str:
    """Normalize a distribution name (PEP 503 style)."""
    return re.sub(r"[-_.]+", "-", name.strip()).lower()


class CatalogPackage(BaseModel):
    """A member of a functional category."""

    model_config = ConfigDict(frozen=True)

    name: str
    tags: tuple[str, ...] = ()
    safer: bool = False
    popular: bool = False


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    description: str = ""
    packages: tuple[CatalogPackage, ...] = ()


class DiscoveryRule(BaseModel):
    """Suggest ``packages`` when a profile has any of the listed signals."""

    model_config = ConfigDict(frozen=True)

    name: str
    domains: tuple[str, ...] = ()
    intents: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    packages: tuple[str, ...] = ()

    def matches(self, domains, intents, keywords) -> bool:
        return (
            any(d in domains for d in self.domains)
            or any(i in intents for i in self.intents)
            or any(k in keywords for k in self.keywords)
        )


class ProfilerVocabulary(BaseModel):
    model_config = ConfigDict(frozen=True)

    stopwords: frozenset[str] = frozenset()
    classifier_domains: dict[str, str] = {}
    keyword_domains: dict[str, str] = {}
    intent_patterns: dict[str, list[str]] = {}
    import_names: dict[str, list[str]] = {}


class BucketMarkers(BaseModel):
    model_config = ConfigDict(frozen=True)

    performance: tuple[str, ...] = ()
    lightweight: tuple[str, ...] = ()
    specialized: tuple[str, ...] = ()


class Catalog(BaseModel):
    """All static tables, validated once from ``data/catalog.yaml``."""

    model_config = ConfigDict(frozen=True)

    well_known: dict[str, list[str]]
    native_packages: frozenset[str]
    compilation_packages: frozenset[str]
    known_alternatives: dict[str, list[str]]
    discovery_rules: tuple[DiscoveryRule, ...]
    categories: dict[str, Category]
    package_to_category: dict[str, str]
    profiler: ProfilerVocabulary
    bucket_markers: BucketMarkers

    def is_well_known(self, name: str) -> bool:
        key = normalize_name(name)
        return any(key in names for names in self.well_known.values())

    def has_native_artifacts(self, name: str) -> bool:
        return normalize_name(name) in self.native_packages

    def requires_compilation(self, name: str) -> bool:
        return normalize_name(name) in self.compilation_packages

    def category_of(self, name: str) -> Optional[str]:
        return self.package_to_category.get(normalize_name(name))

    def alternatives_in_category(self, category: str, exclude: Optional[str] = None) -> list[CatalogPackage]:
        """Members of ``category``: safer first, then popular, then by name."""
        cat = self.categories.get(category)
        if not cat:
            return []
        excluded = normalize_name(exclude) if exclude else None
        packages = [p for p in cat.packages if normalize_name(p.name) != excluded]
        return sorted(packages, key=lambda p: (not p.safer, not p.popular, p.name))

    def find_by_tags(self, terms: list[str]) -> list[CatalogPackage]:
        """
        Search every category for packages whose tags overlap ``terms``.

        A tag matches a term when either contains the other. Results are
        ordered by number of matching terms, most relevant first.
        """
        terms = [t.lower() for t in terms if t]
        scored: list[tuple[int, int, CatalogPackage]] = []
        position = 0
        for category in self.categories.values():
            for package in category.packages:
                relevance = sum(
                    1 for term in terms if any(tag in term or term in tag for tag in package.tags)
                )
                if relevance:
                    scored.append((relevance, position, package))
                position += 1
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [package for _, _, package in scored]

    def stats(self) -> dict:
        packages = [p for cat in self.categories.values() for p in cat.packages]
        return {
            "categories": len(self.categories),
            "total_packages": len(packages),
            "safer_packages": sum(1 for p in packages if p.safer),
            "popular_packages": sum(1 for p in packages if p.popular),
            "coverage": len(self.package_to_category),
        }


@lru_cache(maxsize=1)
def load_catalog() -> Catalog:
    """Load and validate the bundled catalog (once per process)."""
    raw = resources.files("depwise").joinpath("data/catalog.yaml").read_text(encoding="utf-8")
    try:
        return Catalog.model_validate(yaml.safe_load(raw))
    except (ValidationError, yaml.YAMLError) as e:
        raise CatalogError(f"Invalid catalog: {e}") from e
