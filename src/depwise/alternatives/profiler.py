"""Derive a functional profile (keywords, domains, intent) from package metadata."""

import re
from dataclasses import dataclass, field
from typing import Optional

from depwise.catalog import Catalog, load_catalog, normalize_name
from depwise.scoring.metadata import MetadataSnapshot


@dataclass
class PackageProfile:
    """Semantic identity of a package, recomputed per analysis."""

    name: str
    summary: str = ""
    description: str = ""
    keywords: list[str] = field(default_factory=list)
    classifiers: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    intent: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    license: str = ""
    downloads: Optional[int] = None
    has_source_host: bool = False

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "summary": self.summary,
            "description": self.description,
            "keywords": self.keywords,
            "domains": self.domains,
            "intent": self.intent,
            "imports": self.imports,
            "dependencies": self.dependencies,
            "license": self.license,
            "downloads": self.downloads,
            "hasSourceHost": self.has_source_host,
        }


class PackageProfiler:
    """Build a PackageProfile from a MetadataSnapshot."""

    MAX_DESCRIPTION = 240
    MAX_SUMMARY_WORDS = 10
    MAX_INTENTS = 5
    MAX_DEPENDENCIES = 10

    def __init__(self, catalog: Optional[Catalog] = None):
        self.vocab = (catalog or load_catalog()).profiler

    def profile(self, snapshot: MetadataSnapshot) -> PackageProfile:
        sh = snapshot.source_host
        profile = PackageProfile(
            name=snapshot.name,
            summary=self.clean_text(snapshot.summary),
            description=self.short_description(snapshot.description),
            keywords=self.extract_keywords(snapshot.keywords, snapshot.summary),
            classifiers=list(snapshot.classifiers),
            topics=list(sh.topics) if sh else [],
            imports=self.infer_imports(snapshot.name),
            dependencies=list(snapshot.direct_dependency_names[: self.MAX_DEPENDENCIES]),
            license=snapshot.license or "",
            downloads=snapshot.downloads,
            has_source_host=sh is not None,
        )
        profile.domains = self.infer_domains(profile)
        profile.intent = self.infer_intent(profile)
        return profile

    @staticmethod
    def clean_text(text: str) -> str:
        return re.sub(r"\s+", " ", text or "").strip()

    def short_description(self, description: str) -> str:
        """Strip markdown and keep the first paragraph, at most 240 characters."""
        if not description:
            return ""

        cleaned = re.sub(r"^#+\s+", "", description, flags=re.MULTILINE)
        cleaned = re.sub(r"```[\s\S]*?```", "", cleaned)
        cleaned = re.sub(r"`[^`]+`", "", cleaned)
        cleaned = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", cleaned)
        cleaned = re.sub(r"\*\*([^*]+)\*\*", r"\1", cleaned)
        cleaned = re.sub(r"\*([^*]+)\*", r"\1", cleaned)
        cleaned = cleaned.strip()

        first = cleaned.split("\n\n")[0]
        if len(first) <= self.MAX_DESCRIPTION:
            return first
        return first[: self.MAX_DESCRIPTION - 3] + "..."

    def important_words(self, text: str) -> list[str]:
        """Non-stopword summary tokens longer than three characters."""
        words = re.sub(r"[^\w\s-]", " ", text.lower()).split()
        return [w for w in words if len(w) > 3 and w not in self.vocab.stopwords][: self.MAX_SUMMARY_WORDS]

    def extract_keywords(self, keywords: str, summary: str) -> list[str]:
        found = []
        if keywords:
            found.extend(k.strip().lower() for k in re.split(r"[,;\s]+", keywords))
        if summary:
            found.extend(self.important_words(summary))
        return [k for k in dict.fromkeys(found) if len(k) > 2]

    def infer_imports(self, name: str) -> list[str]:
        special = self.vocab.import_names.get(normalize_name(name))
        if special:
            return list(special)
        return [name.lower().replace("-", "_")]

    def infer_domains(self, profile: PackageProfile) -> list[str]:
        domains: dict[str, None] = {}

        for classifier in profile.classifiers:
            for pattern, domain in self.vocab.classifier_domains.items():
                if pattern in classifier:
                    domains[domain] = None

        text = " ".join([profile.summary, *profile.keywords, *profile.topics]).lower()
        for keyword, domain in self.vocab.keyword_domains.items():
            if keyword in text:
                domains[domain] = None

        return list(domains)

    def infer_intent(self, profile: PackageProfile) -> list[str]:
        intents: dict[str, None] = {}
        text = " ".join([profile.summary, profile.description, *profile.keywords]).lower()
        for keyword, mapped in self.vocab.intent_patterns.items():
            if keyword in text:
                for intent in mapped:
                    intents[intent] = None
        return list(intents)[: self.MAX_INTENTS]

    @staticmethod
    def search_query(profile: PackageProfile) -> str:
        """Short free-text query describing what the package does."""
        return " ".join([*profile.intent[:2], *profile.domains[:2], *profile.keywords[:3]])

    @staticmethod
    def describe(profile: PackageProfile) -> str:
        parts = []
        if profile.summary:
            parts.append(profile.summary)
        if profile.domains:
            parts.append(f"Domains: {', '.join(profile.domains[:3])}")
        if profile.intent:
            parts.append(f"Use cases: {', '.join(profile.intent[:3])}")
        return " | ".join(parts)
