import pytest
from unittest.mock import patch

from energy_predictor.models import TariffBand
from energy_predictor.tariffs import (
    BUILTIN_DEFAULTS,
    derive_bands,
    is_winter_month,
    load_defaults,
    round2,
    seasonal_multiplier,
)

CURRENT_BAND = TariffBand("Current Month", peak_unit_rate=27.0, off_peak_unit_rate=15.0, standing_charge=55.0)


@pytest.mark.parametrize("month", [10, 11, 12, 1, 2, 3])
def test_winter_months(month):
    assert is_winter_month(month)
    assert seasonal_multiplier(month) == 1.10


@pytest.mark.parametrize("month", [4, 5, 6, 7, 8, 9])
def test_summer_months(month):
    assert not is_winter_month(month)
    assert seasonal_multiplier(month) == 0.95


def test_round2_half_away_from_zero():
    assert round2(1.005) == 1.01
    assert round2(2.675) == 2.68
    assert round2(-1.005) == -1.01
    assert round2(30.250000000000004) == 30.25
    assert round2(12.0) == 12.0


def test_derive_bands_from_july():
    """July: next quarter starts in October (winter), following in January (winter)."""
    bands = derive_bands(CURRENT_BAND, 7)

    assert [b.name for b in bands] == ["Current Month", "Next Quarter", "Following Quarter"]

    assert bands[1].peak_unit_rate == 30.25
    assert bands[1].standing_charge == 61.05
    assert bands[1].off_peak_unit_rate == 17.05

    assert bands[2].peak_unit_rate == 30.8
    assert bands[2].standing_charge == 61.6
    assert bands[2].off_peak_unit_rate == 17.6


def test_derive_bands_summer_quarter():
    """March: next quarter starts in June (summer), following in September (summer)."""
    band = TariffBand("Current Month", peak_unit_rate=20.0, off_peak_unit_rate=10.0, standing_charge=40.0)
    bands = derive_bands(band, 3)

    assert bands[1].peak_unit_rate == round2(20.5 * 0.95)
    assert bands[1].off_peak_unit_rate == round2(10.5 * 0.95)
    assert bands[2].standing_charge == round2(41.0 * 0.95)


def test_derive_bands_keeps_current_rates():
    bands = derive_bands(CURRENT_BAND, 12)
    assert bands[0] == CURRENT_BAND


def test_derive_bands_is_idempotent():
    assert derive_bands(CURRENT_BAND, 5) == derive_bands(CURRENT_BAND, 5)


def test_load_defaults_from_yaml(tmp_path):
    config = tmp_path / "tariffs.yaml"
    config.write_text(
        """usage:
  basis: "100, 200"
  peak_percentage: 60
  months: 6
fixed_rates:
  peak: 30
  off_peak: 9.5
  standing_charge: 45
current_band:
  peak: 28
"""
    )

    defaults = load_defaults(config)

    assert defaults.usage_basis == "100, 200"
    assert defaults.peak_percentage == 60
    assert defaults.months == 6
    assert defaults.fixed_rates.peak_unit_rate == 30.0
    assert defaults.fixed_rates.off_peak_unit_rate == 9.5
    assert defaults.current_band.peak_unit_rate == 28.0
    # Missing rates fall back to the built-in band
    assert defaults.current_band.standing_charge == BUILTIN_DEFAULTS.current_band.standing_charge


def test_load_defaults_without_config_file():
    with patch("energy_predictor.tariffs.get_config_path", return_value=None):
        assert load_defaults() == BUILTIN_DEFAULTS
