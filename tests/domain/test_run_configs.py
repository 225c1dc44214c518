"""Tests for coverage and purchase run configuration."""

from __future__ import annotations

import pytest

from replenishment.domain.coverage.config import COVERAGE_PRESETS, StockCoverageConfig
from replenishment.domain.errors import INVALID_CONFIGURATION, InvalidConfigurationError
from replenishment.domain.purchase.config import (
    ProductFilters,
    PurchaseRequirementConfig,
    PurchaseScenario,
)


def test_coverage_config_rejects_out_of_bounds():
    """Bounds violations become InvalidConfigurationError with field details."""
    with pytest.raises(InvalidConfigurationError) as exc_info:
        StockCoverageConfig.build(historical_days=3, half_life=0)

    err = exc_info.value
    assert err.code == INVALID_CONFIGURATION
    fields = {e["field"] for e in err.details["errors"]}
    assert fields == {"historical_days", "half_life"}


def test_coverage_config_rejects_unknown_confidence_level():
    with pytest.raises(InvalidConfigurationError):
        StockCoverageConfig.build(confidence_level=0.8)


def test_coverage_config_rejects_unknown_keys():
    with pytest.raises(InvalidConfigurationError):
        StockCoverageConfig.build({"half_lyfe": 10})


@pytest.mark.parametrize("name", sorted(COVERAGE_PRESETS))
def test_presets_are_valid(name):
    """Every named preset builds."""
    config = StockCoverageConfig.preset(name)
    assert config.historical_days == COVERAGE_PRESETS[name]["historical_days"]


def test_unknown_preset():
    with pytest.raises(InvalidConfigurationError, match="Unknown coverage preset"):
        StockCoverageConfig.preset("reckless")


def test_with_overrides_keeps_other_values():
    """Overrides replace only the named fields and re-validate."""
    base = StockCoverageConfig.preset("aggressive")
    changed = base.with_overrides(half_life=10)

    assert changed.half_life == 10
    assert changed.historical_days == base.historical_days
    assert changed.enable_adaptive_weighting is True

    with pytest.raises(InvalidConfigurationError):
        base.with_overrides(forecast_horizon=0)


def test_purchase_lead_time_strategies():
    """P90 inflates lead time by 1.5 and rounds up."""
    assert PurchaseRequirementConfig(lead_time_days=7).effective_lead_time_days == 7
    p90 = PurchaseRequirementConfig(lead_time_days=7, lead_time_strategy="P90")
    assert p90.effective_lead_time_days == 11
    assert PurchaseRequirementConfig(
        lead_time_days=1, lead_time_strategy="P90"
    ).effective_lead_time_days == 2


def test_purchase_delivery_buffer_extends_coverage():
    """The buffer counts only when enabled."""
    off = PurchaseRequirementConfig(coverage_days=30, delivery_buffer_days=5)
    on = PurchaseRequirementConfig(
        coverage_days=30, include_delivery_buffer=True, delivery_buffer_days=5
    )

    assert off.effective_coverage_days == 30
    assert on.effective_coverage_days == 35
    assert on.buffer_days == 5


def test_purchase_config_bounds():
    with pytest.raises(InvalidConfigurationError):
        PurchaseRequirementConfig.build(lead_time_days=0)
    with pytest.raises(InvalidConfigurationError):
        PurchaseRequirementConfig.build(method="EOQ")
    with pytest.raises(InvalidConfigurationError):
        PurchaseRequirementConfig.build(max_concurrency=0)


def test_filters_default_to_active_products():
    filters = ProductFilters()
    assert filters.only_active is True
    assert filters.skus == ()


def test_scenario_overrides_skip_unset_fields():
    """Only the fields a scenario sets are applied to the base config."""
    scenario = PurchaseScenario(name="long_lead", lead_time_days=21, method="TIME_PHASED")
    base = PurchaseRequirementConfig(coverage_days=45)

    assert scenario.overrides() == {"lead_time_days": 21, "method": "TIME_PHASED"}
    derived = base.with_overrides(**scenario.overrides())
    assert derived.coverage_days == 45
    assert derived.lead_time_days == 21
    assert derived.method == "TIME_PHASED"
