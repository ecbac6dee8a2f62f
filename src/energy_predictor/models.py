"""Data models for tariffs, projections and saved sessions."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class FixedRates:
    """Rates applied to every month when fixed-rate mode is selected."""

    peak_unit_rate: float  # pence per kWh
    off_peak_unit_rate: float  # pence per kWh
    standing_charge: float  # pence per day


@dataclass(frozen=True)
class TariffBand:
    """A named set of rates assumed to apply for a quarter."""

    name: str
    peak_unit_rate: float  # pence per kWh
    off_peak_unit_rate: float  # pence per kWh
    standing_charge: float  # pence per day


@dataclass(frozen=True)
class ProjectionConfig:
    """Everything the projection engine needs for one run."""

    usage_pattern: tuple[float, ...]
    peak_percentage: int
    month_count: int
    current_month: int
    is_fixed_charge: bool
    fixed_rates: FixedRates
    current_band: TariffBand
    derived_bands: tuple[TariffBand, ...]

    @property
    def off_peak_percentage(self) -> int:
        return 100 - self.peak_percentage


@dataclass(frozen=True)
class ProjectionResult:
    """Per-month usage (kWh) and cost (pounds) for a projection run."""

    monthly_usage: tuple[float, ...] = ()
    monthly_cost: tuple[float, ...] = ()
    total_cost: float = 0.0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class MonthBreakdown:
    """Cost detail for a single projected month."""

    label: str
    band_name: str
    days: int
    total_kwh: float
    peak_kwh: float
    off_peak_kwh: float
    unit_cost: float
    standing_cost: float
    cost: float


@dataclass(frozen=True)
class Session:
    """A saved projection scenario."""

    id: str
    name: str
    config: ProjectionConfig
    result: ProjectionResult
    created_at: datetime
    usage_basis: str = field(default="")  # usage pattern as the user typed it
