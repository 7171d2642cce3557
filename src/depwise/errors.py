"""Exception hierarchy for depwise."""


class DepwiseError(Exception):
    """Base class for all depwise errors."""


class CollectorError(DepwiseError):
    """A registry, source-host or vulnerability fetch failed."""

    def __init__(self, source: str, package: str, message: str):
        self.source = source
        self.package = package
        super().__init__(f"{source}: {package}: {message}")


class CatalogError(DepwiseError):
    """A static lookup table failed validation when loaded."""
