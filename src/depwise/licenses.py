"""License policy lookup: normalization, capabilities and obligations."""

import logging
from enum import Enum
from functools import lru_cache
from importlib import resources
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from depwise.errors import CatalogError

logger = logging.getLogger(__name__)

UNKNOWN_SPDX = "UNKNOWN"


class TriState(str, Enum):
    """
    Three-valued license fact.

    For capabilities ALLOWED means the action is permitted; for obligations it
    means the obligation applies. NEEDS_REVIEW means a human has to read the
    actual LICENSE file.
    """

    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    NEEDS_REVIEW = "needs_review"

    @classmethod
    def coerce(cls, value: Any) -> "TriState":
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NEEDS_REVIEW
        if isinstance(value, bool):
            return cls.ALLOWED if value else cls.FORBIDDEN
        return cls(str(value).lower())

    @property
    def symbol(self) -> str:
        return {TriState.ALLOWED: "✅", TriState.FORBIDDEN: "❌", TriState.NEEDS_REVIEW: "❓"}[self]


class LicenseCategory(str, Enum):
    PERMISSIVE = "permissive"
    PUBLIC_DOMAIN_LIKE = "public_domain_like"
    WEAK_COPYLEFT = "weak_copyleft"
    STRONG_COPYLEFT = "strong_copyleft"
    NETWORK_COPYLEFT = "network_copyleft"
    PROPRIETARY = "proprietary"
    AMBIGUOUS = "ambiguous"
    UNKNOWN = "unknown"


class LicenseRisk(str, Enum):
    """Commercial compatibility risk of a license."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def compatibility(self) -> int:
        """0 safe, 1 review needed, 2 high risk, 3 blocker."""
        return {
            LicenseRisk.LOW: 0,
            LicenseRisk.MEDIUM: 1,
            LicenseRisk.HIGH: 2,
            LicenseRisk.CRITICAL: 3,
        }[self]


class _TriStateModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce(cls, value):
        return TriState.coerce(value)

    def as_dict(self) -> dict[str, TriState]:
        return self.model_dump(by_alias=True)


class Capabilities(_TriStateModel):
    """What a consumer CAN do. Missing entries default to forbidden."""

    use: TriState = TriState.FORBIDDEN
    # "copy" would shadow BaseModel.copy
    copy_: TriState = Field(TriState.FORBIDDEN, alias="copy")
    modify: TriState = TriState.FORBIDDEN
    distribute: TriState = TriState.FORBIDDEN
    sell: TriState = TriState.FORBIDDEN
    saas: TriState = TriState.FORBIDDEN
    private_use: TriState = TriState.FORBIDDEN


class Obligations(_TriStateModel):
    """What a consumer MUST do. Missing entries default to not required."""

    attribution: TriState = TriState.FORBIDDEN
    include_license: TriState = TriState.FORBIDDEN
    include_notice: TriState = TriState.FORBIDDEN
    state_changes: TriState = TriState.FORBIDDEN
    disclose_source: TriState = TriState.FORBIDDEN
    share_alike: TriState = TriState.FORBIDDEN
    patent_grant: TriState = TriState.FORBIDDEN
    patent_retaliation: TriState = TriState.FORBIDDEN
    network_copyleft: TriState = TriState.FORBIDDEN
    no_trademark_use: TriState = TriState.FORBIDDEN
    no_endorsement: TriState = TriState.FORBIDDEN
    warranty_disclaimer: TriState = TriState.FORBIDDEN
    source_offer: TriState = TriState.FORBIDDEN
    file_level_copyleft: TriState = TriState.FORBIDDEN


class LicenseRecord(BaseModel):
    """A license policy entry, keyed by SPDX identifier."""

    model_config = ConfigDict(frozen=True)

    spdx: str
    category: LicenseCategory
    risk_level: LicenseRisk
    capabilities: Capabilities
    obligations: Obligations
    summary: str = ""
    notes: str = ""
    aliases: tuple[str, ...] = ()

    @property
    def is_unknown(self) -> bool:
        return self.spdx == UNKNOWN_SPDX


class _LicenseTable(BaseModel):
    licenses: dict[str, dict[str, Any]]


@lru_cache(maxsize=1)
def load_license_table() -> dict[str, LicenseRecord]:
    """Load and validate ``data/licenses.yaml`` (once per process)."""
    raw = resources.files("depwise").joinpath("data/licenses.yaml").read_text(encoding="utf-8")
    try:
        table = _LicenseTable.model_validate(yaml.safe_load(raw))
        records = {
            spdx: LicenseRecord(spdx=spdx, **entry)
            for spdx, entry in table.licenses.items()
        }
    except (ValidationError, TypeError, yaml.YAMLError) as e:
        raise CatalogError(f"Invalid license table: {e}") from e

    if UNKNOWN_SPDX not in records:
        raise CatalogError("License table has no UNKNOWN entry")
    return records


class LicensePolicyResolver:
    """
    Resolve raw license strings to policy records.

    Lookup order: exact SPDX id, exact alias, case-insensitive alias or id,
    then the UNKNOWN record.
    """

    def __init__(self, records: Optional[dict[str, LicenseRecord]] = None):
        self._records = records if records is not None else load_license_table()
        self._aliases: dict[str, str] = {}
        self._folded: dict[str, str] = {}
        for spdx, record in self._records.items():
            self._folded.setdefault(spdx.lower(), spdx)
            for alias in record.aliases:
                self._aliases.setdefault(alias, spdx)
                self._folded.setdefault(alias.lower(), spdx)

    def normalize(self, raw: Optional[str]) -> str:
        """Return the SPDX identifier for ``raw`` or ``UNKNOWN``."""
        if not raw or not raw.strip():
            return UNKNOWN_SPDX

        value = raw.strip()
        if value in self._records:
            return value
        if value in self._aliases:
            return self._aliases[value]

        folded = self._folded.get(value.lower())
        if folded:
            return folded

        logger.warning(f"Unknown license {raw!r}, treating as {UNKNOWN_SPDX}")
        return UNKNOWN_SPDX

    def resolve(self, raw: Optional[str]) -> LicenseRecord:
        """Get the full policy record for a raw license string."""
        return self._records.get(self.normalize(raw)) or self._records[UNKNOWN_SPDX]

    def capabilities(self, raw: Optional[str]) -> dict[str, TriState]:
        return self.resolve(raw).capabilities.as_dict()

    def obligations(self, raw: Optional[str]) -> dict[str, TriState]:
        return self.resolve(raw).obligations.as_dict()

    def category(self, raw: Optional[str]) -> LicenseCategory:
        return self.resolve(raw).category

    def is_ambiguous(self, raw: Optional[str]) -> bool:
        """True when a human must check the LICENSE file."""
        return self.resolve(raw).category == LicenseCategory.AMBIGUOUS

    def compatibility_risk(self, raw: Optional[str]) -> int:
        """0 (safe), 1 (review needed), 2 (high risk) or 3 (blocker)."""
        return self.resolve(raw).risk_level.compatibility

    def search(self, query: str) -> list[LicenseRecord]:
        """Records whose SPDX id or any alias contains ``query`` (case-insensitive)."""
        needle = query.lower()
        return [
            record
            for spdx, record in self._records.items()
            if needle in spdx.lower() or any(needle in alias.lower() for alias in record.aliases)
        ]

    def all_licenses(self) -> list[str]:
        return list(self._records)


@lru_cache(maxsize=1)
def default_resolver() -> LicensePolicyResolver:
    """Shared resolver over the bundled license table."""
    return LicensePolicyResolver()
