"""Monthly usage and cost projection.

The engine is a pure function of its inputs: callers re-run `project`
whenever any part of the configuration changes and discard the previous
result.
"""

import calendar
import logging
import math
from typing import Iterable, Sequence

from .models import (
    FixedRates,
    MonthBreakdown,
    ProjectionConfig,
    ProjectionResult,
    TariffBand,
)
from .tariffs import derive_bands, round2

logger = logging.getLogger(__name__)

# Day counts always follow this non-leap year, Jan-Dec from the first
# projected month, regardless of the configured current month.
REFERENCE_YEAR = 2025

EMPTY_PATTERN_MESSAGE = "Monthly usage pattern cannot be empty."


class InvalidInputError(Exception):
    """Raised when projection or session inputs cannot be used."""
    pass


def parse_usage_pattern(value: str | Iterable[object]) -> tuple[float, ...]:
    """Turn a comma-separated string or a sequence into usage values.

    Blank, non-numeric and non-finite entries are dropped rather than
    rejected individually. Every finite number is kept, negative values
    included (e.g. a month of net export), so the cycle is never shifted.
    """
    items = value.split(",") if isinstance(value, str) else value

    pattern = []
    for item in items:
        try:
            number = float(item)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(number):
            continue
        pattern.append(number)
    return tuple(pattern)


def format_usage_pattern(pattern: Iterable[float]) -> str:
    """Format usage values the way they are typed in, e.g. '200, 180.5'."""
    return ", ".join(f"{value:g}" for value in pattern)


def validate_rates(label: str, rates: FixedRates | TariffBand) -> None:
    """Reject negative or non-finite rates."""
    for field, value in (
        ("peak unit rate", rates.peak_unit_rate),
        ("off-peak unit rate", rates.off_peak_unit_rate),
        ("standing charge", rates.standing_charge),
    ):
        if not math.isfinite(value) or value < 0:
            raise InvalidInputError(f"{label} {field} must be a non-negative number, got {value}")


def build_config(
    usage: str | Iterable[object],
    peak_percentage: int,
    month_count: int,
    current_month: int,
    current_band: TariffBand,
    fixed_rates: FixedRates,
    is_fixed_charge: bool = False,
    derived_bands: Sequence[TariffBand] | None = None,
) -> ProjectionConfig:
    """Assemble a ProjectionConfig, deriving the seasonal bands.

    Pass derived_bands to use hand-edited quarter bands instead of the
    seasonal derivation.
    """
    if not 0 <= peak_percentage <= 100:
        raise InvalidInputError(f"Peak percentage must be between 0 and 100, got {peak_percentage}")
    if month_count < 1:
        raise InvalidInputError(f"Number of months must be at least 1, got {month_count}")
    if not 1 <= current_month <= 12:
        raise InvalidInputError(f"Current month must be between 1 and 12, got {current_month}")

    validate_rates("Fixed", fixed_rates)
    validate_rates(current_band.name, current_band)

    if derived_bands is None:
        derived_bands = derive_bands(current_band, current_month)
    elif not derived_bands:
        raise InvalidInputError("At least one tariff band is required")
    for band in derived_bands:
        validate_rates(band.name, band)

    return ProjectionConfig(
        usage_pattern=parse_usage_pattern(usage),
        peak_percentage=peak_percentage,
        month_count=month_count,
        current_month=current_month,
        is_fixed_charge=is_fixed_charge,
        fixed_rates=fixed_rates,
        current_band=current_band,
        derived_bands=tuple(derived_bands),
    )


def select_band(bands: tuple[TariffBand, ...], month_index: int) -> TariffBand:
    """Pick the quarter's band for a month index.

    Months 0-2 use the first band, 3-5 the second, and everything from
    month 6 onwards stays on the last band.
    """
    quarter = min(month_index // 3, len(bands) - 1)
    return bands[quarter]


def days_in_month(month_index: int) -> int:
    """Approximate day count for a projected month index."""
    return calendar.monthrange(REFERENCE_YEAR, (month_index % 12) + 1)[1]


def _month_rows(config: ProjectionConfig) -> list[MonthBreakdown]:
    pattern = parse_usage_pattern(config.usage_pattern)
    if not pattern:
        raise InvalidInputError(EMPTY_PATTERN_MESSAGE)

    rows = []
    for i in range(config.month_count):
        total_usage = pattern[i % len(pattern)]
        peak_usage = total_usage * config.peak_percentage / 100
        off_peak_usage = total_usage * config.off_peak_percentage / 100

        if config.is_fixed_charge:
            rates = config.fixed_rates
            band_name = "Fixed"
        else:
            rates = select_band(config.derived_bands, i)
            band_name = rates.name

        days = days_in_month(i)
        unit_cost = (
            peak_usage * rates.peak_unit_rate / 100
            + off_peak_usage * rates.off_peak_unit_rate / 100
        )
        standing_cost = days * rates.standing_charge / 100

        rows.append(
            MonthBreakdown(
                label=f"Month {i + 1}",
                band_name=band_name,
                days=days,
                total_kwh=total_usage,
                peak_kwh=peak_usage,
                off_peak_kwh=off_peak_usage,
                unit_cost=unit_cost,
                standing_cost=standing_cost,
                cost=unit_cost + standing_cost,
            )
        )
    return rows


def calculate_projection(config: ProjectionConfig) -> ProjectionResult:
    """Project usage and cost, raising InvalidInputError on an empty pattern."""
    rows = _month_rows(config)

    total_cost = 0.0
    for row in rows:
        total_cost += row.cost

    return ProjectionResult(
        monthly_usage=tuple(row.total_kwh for row in rows),
        monthly_cost=tuple(round2(row.cost) for row in rows),
        total_cost=total_cost,
    )


def project(config: ProjectionConfig) -> ProjectionResult:
    """Project usage and cost, reporting invalid input on the result.

    Returns an empty result with `error` set instead of raising.
    """
    try:
        return calculate_projection(config)
    except InvalidInputError as e:
        logger.info("Projection skipped: %s", e)
        return ProjectionResult(error=str(e))


def month_breakdown(config: ProjectionConfig) -> list[MonthBreakdown]:
    """Per-month cost detail for a projection."""
    return _month_rows(config)
