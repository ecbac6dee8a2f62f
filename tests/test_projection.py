import pytest

from energy_predictor.models import FixedRates, TariffBand
from energy_predictor.projection import (
    EMPTY_PATTERN_MESSAGE,
    InvalidInputError,
    build_config,
    calculate_projection,
    days_in_month,
    format_usage_pattern,
    month_breakdown,
    parse_usage_pattern,
    project,
    select_band,
)

FIXED = FixedRates(peak_unit_rate=20.0, off_peak_unit_rate=10.0, standing_charge=50.0)
BAND = TariffBand("Current Month", peak_unit_rate=20.0, off_peak_unit_rate=10.0, standing_charge=30.0)
YEAR_OF_USAGE = "200, 180, 220, 300, 350, 400, 420, 380, 300, 250, 200, 180"


def make_config(usage=YEAR_OF_USAGE, peak=70, months=12, current_month=7, fixed=False):
    return build_config(
        usage=usage,
        peak_percentage=peak,
        month_count=months,
        current_month=current_month,
        current_band=BAND,
        fixed_rates=FIXED,
        is_fixed_charge=fixed,
    )


def test_fixed_rate_example():
    """100 kWh split 50/50 at 20p/10p with a 50p/day standing charge."""
    result = project(make_config(usage="100", peak=50, months=2, fixed=True))

    assert result.ok
    assert result.monthly_usage == (100.0, 100.0)
    # 15.00 units + 31 days * 0.50, then 15.00 + 28 days * 0.50
    assert result.monthly_cost == (30.5, 29.0)
    assert result.total_cost == pytest.approx(59.5)


@pytest.mark.parametrize("months", [1, 5, 12, 30])
def test_result_length_matches_month_count(months):
    result = project(make_config(months=months))
    assert len(result.monthly_usage) == months
    assert len(result.monthly_cost) == months


def test_usage_pattern_repeats_cyclically():
    pattern = parse_usage_pattern(YEAR_OF_USAGE)
    result = project(make_config(months=30))

    for i, usage in enumerate(result.monthly_usage):
        assert usage == pattern[i % len(pattern)]


def test_peak_and_off_peak_sum_to_total():
    for month in month_breakdown(make_config(peak=37, months=12)):
        assert month.peak_kwh + month.off_peak_kwh == pytest.approx(month.total_kwh)


def test_total_cost_is_unrounded_sum():
    config = make_config(usage="123.457, 98.761", peak=33, months=24)
    result = project(config)

    unrounded = sum(m.cost for m in month_breakdown(config))
    assert result.total_cost == pytest.approx(unrounded)
    assert abs(result.total_cost - sum(result.monthly_cost)) <= 0.005 * 24


def test_variable_mode_uses_quarter_bands():
    config = make_config(usage="100", peak=100, months=4, current_month=7)
    breakdown = month_breakdown(config)

    # Month 1 on the current band: 100 kWh * 20p + 31 days * 30p
    assert breakdown[0].band_name == "Current Month"
    assert breakdown[0].cost == pytest.approx(29.3)

    # Month 4 on the next quarter band (October, winter): 22.55p and 33.55p/day
    next_quarter = config.derived_bands[1]
    assert breakdown[3].band_name == "Next Quarter"
    assert breakdown[3].days == 30
    assert breakdown[3].cost == pytest.approx(100 * next_quarter.peak_unit_rate / 100 + 30 * next_quarter.standing_charge / 100)


def test_fixed_mode_ignores_bands():
    breakdown = month_breakdown(make_config(months=12, fixed=True))
    assert {m.band_name for m in breakdown} == {"Fixed"}


def test_select_band_reuses_last_band():
    bands = tuple(make_config().derived_bands)
    names = [select_band(bands, i).name for i in range(15)]

    assert names[0:3] == ["Current Month"] * 3
    assert names[3:6] == ["Next Quarter"] * 3
    assert names[6:15] == ["Following Quarter"] * 9


def test_days_in_month_uses_non_leap_reference_year():
    assert days_in_month(0) == 31
    assert days_in_month(1) == 28
    assert days_in_month(3) == 30
    assert days_in_month(12) == 31
    assert days_in_month(37) == 28


def test_parse_usage_pattern_filters_bad_entries():
    assert parse_usage_pattern("200, abc, 180,, nan, inf, 7.5") == (200.0, 180.0, 7.5)
    assert parse_usage_pattern([100, "50", None, "x"]) == (100.0, 50.0)


def test_parse_usage_pattern_keeps_negative_values():
    assert parse_usage_pattern("100, -5, 50") == (100.0, -5.0, 50.0)

    result = project(make_config(usage="100, -5, 50", months=4, fixed=True))
    assert result.monthly_usage == (100.0, -5.0, 50.0, 100.0)


def test_format_usage_pattern():
    assert format_usage_pattern((200.0, 180.5)) == "200, 180.5"


def test_empty_pattern_reports_error():
    result = project(make_config(usage="abc, , x"))

    assert not result.ok
    assert result.error == EMPTY_PATTERN_MESSAGE
    assert result.monthly_usage == ()
    assert result.monthly_cost == ()
    assert result.total_cost == 0


def test_calculate_projection_raises_on_empty_pattern():
    with pytest.raises(InvalidInputError, match="cannot be empty"):
        calculate_projection(make_config(usage=""))


@pytest.mark.parametrize(
    "kwargs",
    [{"peak": 101}, {"peak": -1}, {"months": 0}, {"current_month": 13}, {"current_month": 0}],
)
def test_build_config_rejects_out_of_range_values(kwargs):
    with pytest.raises(InvalidInputError):
        make_config(**kwargs)


def test_off_peak_percentage_is_derived():
    config = make_config(peak=65)
    assert config.off_peak_percentage == 35


@pytest.mark.parametrize("rate", [-20.0, float("inf"), float("nan")])
def test_build_config_rejects_bad_fixed_rates(rate):
    with pytest.raises(InvalidInputError, match="Fixed peak unit rate"):
        build_config("100", 50, 1, 7, BAND, FixedRates(rate, 10.0, 50.0), is_fixed_charge=True)


def test_build_config_rejects_bad_band_rates():
    band = TariffBand("Current Month", peak_unit_rate=20.0, off_peak_unit_rate=10.0, standing_charge=-1.0)
    with pytest.raises(InvalidInputError, match="Current Month standing charge"):
        build_config("100", 50, 1, 7, band, FIXED)


def test_build_config_uses_edited_quarter_bands():
    edited = (
        BAND,
        TariffBand("Next Quarter", peak_unit_rate=40.0, off_peak_unit_rate=10.0, standing_charge=0.0),
        TariffBand("Following Quarter", peak_unit_rate=50.0, off_peak_unit_rate=10.0, standing_charge=0.0),
    )
    config = build_config("100", 100, 7, 7, BAND, FIXED, derived_bands=edited)

    assert config.derived_bands == edited
    result = project(config)
    # Months 4-6 on the edited next quarter, month 7 on the following one
    assert result.monthly_cost[3] == 40.0
    assert result.monthly_cost[6] == 50.0


def test_build_config_rejects_bad_edited_bands():
    bad = TariffBand("Next Quarter", peak_unit_rate=-1.0, off_peak_unit_rate=10.0, standing_charge=0.0)
    with pytest.raises(InvalidInputError, match="Next Quarter peak unit rate"):
        build_config("100", 50, 6, 7, BAND, FIXED, derived_bands=(BAND, bad))

    with pytest.raises(InvalidInputError, match="At least one"):
        build_config("100", 50, 6, 7, BAND, FIXED, derived_bands=())
