"""Tests for weight profiles and adaptive selection."""

import pytest

from depwise.scoring.factors import Dimension
from depwise.scoring.weights import (
    ADAPTIVE_RULES,
    DEFAULT_PROFILE,
    FIXED_PROFILE,
    WeightMode,
    WeightProfile,
    WeightSignals,
    select_weights,
)


class TestWeightProfile:
    def test_every_profile_sums_to_one(self):
        for rule in ADAPTIVE_RULES:
            assert sum(rule.profile.as_dict().values()) == pytest.approx(1.0)
        assert sum(FIXED_PROFILE.as_dict().values()) == pytest.approx(1.0)

    def test_rejects_unnormalized_weights(self):
        with pytest.raises(ValueError):
            WeightProfile("broken", security=0.5, operational=0.5, compliance=0.5, supply_chain=0.5)

    def test_normalized(self):
        profile = WeightProfile.normalized("x", security=2, operational=1, compliance=1, supply_chain=0)
        assert profile.security == pytest.approx(0.5)
        assert profile.supply_chain == 0

    def test_fixed_profile_is_5_3_1_1(self):
        weights = FIXED_PROFILE.as_dict()
        assert weights[Dimension.SECURITY] == pytest.approx(0.5)
        assert weights[Dimension.OPERATIONAL] == pytest.approx(0.3)
        assert weights[Dimension.COMPLIANCE] == pytest.approx(0.1)
        assert weights[Dimension.SUPPLY_CHAIN] == pytest.approx(0.1)


class TestSelectWeights:
    def test_default_when_nothing_stands_out(self):
        assert select_weights(WeightSignals()) is DEFAULT_PROFILE

    def test_critical_cve(self):
        assert select_weights(WeightSignals(critical_count=1, vulnerability_count=3)).name == "critical-cve"

    def test_vulnerable(self):
        assert select_weights(WeightSignals(vulnerability_count=3)).name == "vulnerable"

    def test_abandoned(self):
        assert select_weights(WeightSignals(abandoned=True)).name == "abandoned"

    def test_license_unknown(self):
        assert select_weights(WeightSignals(license_unknown=True)).name == "license-risk"

    def test_high_compliance_score(self):
        assert select_weights(WeightSignals(compliance_score=6.0)).name == "license-risk"
        assert select_weights(WeightSignals(compliance_score=5.9)).name == "default"

    def test_dependency_heavy(self):
        assert select_weights(WeightSignals(direct_dependencies=21)).name == "dependency-heavy"
        assert select_weights(WeightSignals(direct_dependencies=20)).name == "default"

    def test_first_matching_rule_wins(self):
        signals = WeightSignals(
            critical_count=2,
            vulnerability_count=12,
            abandoned=True,
            license_unknown=True,
            direct_dependencies=60,
        )
        assert select_weights(signals).name == "critical-cve"

    def test_fixed_mode_ignores_signals(self):
        signals = WeightSignals(critical_count=5, vulnerability_count=5)
        assert select_weights(signals, WeightMode.FIXED) is FIXED_PROFILE

    def test_rule_order_is_stable(self):
        assert [r.name for r in ADAPTIVE_RULES] == [
            "critical-cve",
            "vulnerable",
            "abandoned",
            "license-risk",
            "dependency-heavy",
            "default",
        ]
