"""Tests for the license policy resolver."""

import pytest

from depwise.licenses import (
    UNKNOWN_SPDX,
    Capabilities,
    LicenseCategory,
    LicensePolicyResolver,
    LicenseRisk,
    TriState,
    load_license_table,
)


class TestTriState:
    def test_coerce_booleans(self):
        assert TriState.coerce(True) == TriState.ALLOWED
        assert TriState.coerce(False) == TriState.FORBIDDEN
        assert TriState.coerce(None) == TriState.NEEDS_REVIEW

    def test_coerce_strings(self):
        assert TriState.coerce("Needs_Review") == TriState.NEEDS_REVIEW

    def test_needs_review_is_not_falsy_shortcut(self):
        assert TriState.NEEDS_REVIEW != TriState.FORBIDDEN
        assert TriState.NEEDS_REVIEW != TriState.ALLOWED


class TestLicenseTable:
    def test_loads_with_unknown_entry(self):
        table = load_license_table()
        assert UNKNOWN_SPDX in table
        assert "MIT" in table

    def test_capabilities_copy_alias(self):
        caps = Capabilities.model_validate({"use": True, "copy": None})
        assert caps.as_dict()["copy"] == TriState.NEEDS_REVIEW
        assert caps.as_dict()["sell"] == TriState.FORBIDDEN

    def test_unknown_capability_rejected(self):
        with pytest.raises(ValueError):
            Capabilities.model_validate({"teleport": True})


class TestLicensePolicyResolver:
    def setup_method(self):
        self.resolver = LicensePolicyResolver()

    def test_exact_and_case_insensitive_resolve_to_same_record(self):
        assert self.resolver.resolve("MIT") == self.resolver.resolve("mit")
        assert self.resolver.resolve("mit").spdx == "MIT"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("MIT License", "MIT"),
            ("Apache Software License", "Apache-2.0"),
            ("apache 2.0", "Apache-2.0"),
            ("BSD License", "BSD-3-Clause"),
            ("GPLv3+", "GPL-3.0"),
            ("  AGPL-3.0-only  ", "AGPL-3.0"),
            ("Other/Proprietary License", "OTHER"),
        ],
    )
    def test_normalize_aliases(self, raw, expected):
        assert self.resolver.normalize(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "Frobnicate Public License"])
    def test_unresolvable_is_unknown(self, raw):
        assert self.resolver.normalize(raw) == UNKNOWN_SPDX
        assert self.resolver.resolve(raw).is_unknown

    def test_unknown_forbids_everything(self):
        caps = self.resolver.capabilities("???")
        assert set(caps.values()) == {TriState.FORBIDDEN}

    def test_agpl_is_ambiguous_for_saas(self):
        caps = self.resolver.capabilities("AGPL-3.0")
        assert caps["use"] == TriState.ALLOWED
        assert caps["saas"] == TriState.NEEDS_REVIEW
        assert self.resolver.obligations("AGPL-3.0")["network_copyleft"] == TriState.ALLOWED

    def test_categories(self):
        assert self.resolver.category("MIT") == LicenseCategory.PERMISSIVE
        assert self.resolver.category("LGPL-3.0") == LicenseCategory.WEAK_COPYLEFT
        assert self.resolver.category("AGPL-3.0") == LicenseCategory.NETWORK_COPYLEFT

    def test_is_ambiguous(self):
        assert self.resolver.is_ambiguous("Dual License")
        assert not self.resolver.is_ambiguous("MIT")

    def test_compatibility_risk(self):
        assert self.resolver.compatibility_risk("MIT") == 0
        assert self.resolver.compatibility_risk("MPL-2.0") == 1
        assert self.resolver.compatibility_risk("GPL-3.0") == 2
        assert self.resolver.compatibility_risk("AGPL-3.0") == 3
        assert self.resolver.resolve("AGPL-3.0").risk_level == LicenseRisk.CRITICAL

    def test_search(self):
        found = {r.spdx for r in self.resolver.search("gpl")}
        assert {"GPL-2.0", "GPL-3.0", "LGPL-3.0", "AGPL-3.0"} <= found
        assert "MIT" not in found

    def test_all_licenses(self):
        names = self.resolver.all_licenses()
        assert "Apache-2.0" in names
        assert UNKNOWN_SPDX in names

    def test_custom_records(self):
        table = load_license_table()
        resolver = LicensePolicyResolver({"MIT": table["MIT"], UNKNOWN_SPDX: table[UNKNOWN_SPDX]})
        assert resolver.normalize("Apache-2.0") == UNKNOWN_SPDX
        assert resolver.normalize("expat") == "MIT"
