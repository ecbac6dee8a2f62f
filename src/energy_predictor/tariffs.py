"""Tariff defaults and seasonal band derivation."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

import yaml

from .models import FixedRates, TariffBand

logger = logging.getLogger(__name__)

# Winter months: Oct, Nov, Dec, Jan, Feb, Mar
WINTER_MULTIPLIER = 1.10
SUMMER_MULTIPLIER = 0.95

# Pence added to every rate for each quarter ahead
QUARTERLY_INCREASE = 0.5

BAND_NAMES = ("Current Month", "Next Quarter", "Following Quarter")


@dataclass(frozen=True)
class TariffDefaults:
    """Starting inputs for a projection, usually read from tariffs.yaml."""

    usage_basis: str
    peak_percentage: int
    months: int
    fixed_rates: FixedRates
    current_band: TariffBand


BUILTIN_DEFAULTS = TariffDefaults(
    usage_basis="200, 180, 220, 300, 350, 400, 420, 380, 300, 250, 200, 180",
    peak_percentage=70,
    months=12,
    fixed_rates=FixedRates(peak_unit_rate=25.0, off_peak_unit_rate=12.0, standing_charge=50.0),
    current_band=TariffBand(
        name=BAND_NAMES[0], peak_unit_rate=27.0, off_peak_unit_rate=15.0, standing_charge=55.0
    ),
)


def round2(value: float) -> float:
    """Round to 2 decimal places, halves away from zero.

    Works on the shortest decimal representation of the float, so 1.005
    rounds to 1.01 rather than following its binary approximation down.
    """
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def is_winter_month(month: int) -> bool:
    """Check if a calendar month (1-12) falls in the winter tariff season."""
    return month >= 10 or month <= 3


def seasonal_multiplier(month: int) -> float:
    return WINTER_MULTIPLIER if is_winter_month(month) else SUMMER_MULTIPLIER


def derive_bands(current_band: TariffBand, current_month: int) -> list[TariffBand]:
    """Build the current band plus two future quarters with seasonal drift.

    Each future quarter adds QUARTERLY_INCREASE pence per quarter ahead to
    every rate, then scales by the seasonal multiplier of the calendar month
    that quarter starts in.
    """
    bands = [
        TariffBand(
            name=BAND_NAMES[0],
            peak_unit_rate=current_band.peak_unit_rate,
            off_peak_unit_rate=current_band.off_peak_unit_rate,
            standing_charge=current_band.standing_charge,
        )
    ]

    for i in (1, 2):
        future_month = ((current_month - 1 + 3 * i) % 12) + 1
        multiplier = seasonal_multiplier(future_month)
        increase = QUARTERLY_INCREASE * i

        bands.append(
            TariffBand(
                name=BAND_NAMES[i],
                peak_unit_rate=round2((current_band.peak_unit_rate + increase) * multiplier),
                off_peak_unit_rate=round2((current_band.off_peak_unit_rate + increase) * multiplier),
                standing_charge=round2((current_band.standing_charge + increase) * multiplier),
            )
        )

    return bands


def get_config_path() -> Path | None:
    """Find the tariffs.yaml config file, if there is one."""
    candidates = [
        Path.cwd() / "config" / "tariffs.yaml",
        Path(__file__).resolve().parents[2] / "config" / "tariffs.yaml",
        Path.home() / ".config" / "energy-predictor" / "tariffs.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def _rates(section: dict, fallback: FixedRates | TariffBand) -> dict:
    return {
        "peak_unit_rate": float(section.get("peak", fallback.peak_unit_rate)),
        "off_peak_unit_rate": float(section.get("off_peak", fallback.off_peak_unit_rate)),
        "standing_charge": float(section.get("standing_charge", fallback.standing_charge)),
    }


def load_defaults(config_path: Path | None = None) -> TariffDefaults:
    """Load projection defaults from YAML, falling back to built-in values.

    An explicit config_path must exist; without one the usual locations are
    searched and the built-in defaults are used if none is found.
    """
    path = config_path or get_config_path()
    if path is None:
        logger.debug("No tariffs.yaml found, using built-in defaults")
        return BUILTIN_DEFAULTS

    logger.debug("Loading tariff defaults from %s", path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    usage = data.get("usage", {})
    base = BUILTIN_DEFAULTS
    return TariffDefaults(
        usage_basis=str(usage.get("basis", base.usage_basis)),
        peak_percentage=int(usage.get("peak_percentage", base.peak_percentage)),
        months=int(usage.get("months", base.months)),
        fixed_rates=FixedRates(**_rates(data.get("fixed_rates", {}), base.fixed_rates)),
        current_band=TariffBand(
            name=BAND_NAMES[0], **_rates(data.get("current_band", {}), base.current_band)
        ),
    )
