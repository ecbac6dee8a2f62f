"""Saved projection sessions.

Sessions are kept as a list of flat JSON records under a single store key.
Records written by older versions may lack fields, so loading fills in
defaults instead of failing.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any

from .models import FixedRates, ProjectionConfig, ProjectionResult, Session, TariffBand
from .projection import InvalidInputError, format_usage_pattern, parse_usage_pattern
from .store import KeyValueStore, StorageError
from .tariffs import BAND_NAMES, BUILTIN_DEFAULTS, derive_bands, round2

logger = logging.getLogger(__name__)

SESSIONS_KEY = "energySessions"

DEFAULT_PEAK_PERCENTAGE = 70


def create_session(
    name: str,
    config: ProjectionConfig,
    result: ProjectionResult,
    usage_basis: str | None = None,
) -> Session:
    """Snapshot a projection under a name."""
    if not name or not name.strip():
        raise InvalidInputError("Please provide a name for this session to save it.")
    if not result.ok:
        raise InvalidInputError(f"Cannot save a failed projection: {result.error}")

    return Session(
        id=str(uuid.uuid4()),
        name=name.strip(),
        config=config,
        result=result,
        created_at=datetime.now(timezone.utc),
        usage_basis=usage_basis if usage_basis is not None else format_usage_pattern(config.usage_pattern),
    )


def _rates_record(rates: FixedRates | TariffBand) -> dict[str, Any]:
    return {
        "peakUnitRate": rates.peak_unit_rate,
        "offPeakUnitRate": rates.off_peak_unit_rate,
        "standingCharge": rates.standing_charge,
    }


def session_to_record(session: Session) -> dict[str, Any]:
    """Convert a session to a JSON-compatible record."""
    config = session.config
    result = session.result
    return {
        "id": session.id,
        "name": session.name,
        "monthlyUsageProjectionBasis": session.usage_basis,
        "peakPercentage": config.peak_percentage,
        "nMonths": config.month_count,
        "currentMonth": config.current_month,
        "isFixedCharge": config.is_fixed_charge,
        "fixedRates": _rates_record(config.fixed_rates),
        "currentTariffBand": _rates_record(config.current_band),
        "tariffQuarters": [
            {"name": band.name, **_rates_record(band)} for band in config.derived_bands
        ],
        "projectedUsage": list(result.monthly_usage),
        "projectedCosts": list(result.monthly_cost),
        "totalProjectedCost": round2(result.total_cost),
        "createdAt": session.created_at.isoformat(),
    }


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    # Browser-written records end in 'Z'
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _band_from_record(data: dict, name: str, fallback: TariffBand | None = None) -> TariffBand:
    """Build a band, defaulting absent rates to the fallback or to 0."""
    return TariffBand(
        name=data.get("name", name),
        peak_unit_rate=float(data.get("peakUnitRate", fallback.peak_unit_rate if fallback else 0)),
        off_peak_unit_rate=float(
            data.get("offPeakUnitRate", fallback.off_peak_unit_rate if fallback else 0)
        ),
        standing_charge=float(data.get("standingCharge", fallback.standing_charge if fallback else 0)),
    )


def _peak_percentage(value: Any) -> int:
    """Stored peak share as a whole percentage, rounded and clamped to 0-100."""
    if value is None:
        return DEFAULT_PEAK_PERCENTAGE

    number = float(value)
    if not math.isfinite(number):
        logger.warning("Session peak percentage %r is not a number, using %d", value, DEFAULT_PEAK_PERCENTAGE)
        return DEFAULT_PEAK_PERCENTAGE

    percentage = min(max(math.floor(number + 0.5), 0), 100)
    if percentage != number:
        logger.warning("Session peak percentage %r adjusted to %d", value, percentage)
    return percentage


def _current_month(value: Any) -> int:
    """Stored current month, or this month if it is missing or out of range."""
    this_month = datetime.now().month
    if not value:
        return this_month

    number = float(value)
    if not number.is_integer() or not 1 <= number <= 12:
        logger.warning("Session current month %r is invalid, using %d", value, this_month)
        return this_month
    return int(number)


def _record_id(record: dict[str, Any]) -> str:
    return str(record.get("id") or record.get("name") or "Untitled")


def session_from_record(record: dict[str, Any]) -> Session:
    """Rebuild a session from a stored record, defaulting missing fields."""
    defaults = BUILTIN_DEFAULTS

    usage_basis = record.get("monthlyUsageProjectionBasis")
    projected_usage = tuple(float(v) for v in record.get("projectedUsage") or [])
    if usage_basis is None:
        usage_basis = format_usage_pattern(projected_usage)

    peak_percentage = _peak_percentage(record.get("peakPercentage"))
    current_month = _current_month(record.get("currentMonth"))

    fixed_data = record.get("fixedRates")
    if fixed_data:
        fixed_rates = FixedRates(
            peak_unit_rate=float(fixed_data.get("peakUnitRate", defaults.fixed_rates.peak_unit_rate)),
            off_peak_unit_rate=float(
                fixed_data.get("offPeakUnitRate", defaults.fixed_rates.off_peak_unit_rate)
            ),
            standing_charge=float(fixed_data.get("standingCharge", defaults.fixed_rates.standing_charge)),
        )
    else:
        fixed_rates = defaults.fixed_rates

    band_data = record.get("currentTariffBand")
    if band_data:
        current_band = _band_from_record(band_data, BAND_NAMES[0], defaults.current_band)
    else:
        current_band = defaults.current_band

    quarters = record.get("tariffQuarters")
    if quarters:
        derived_bands = tuple(
            _band_from_record(q, BAND_NAMES[min(i, len(BAND_NAMES) - 1)]) for i, q in enumerate(quarters)
        )
    else:
        derived_bands = tuple(derive_bands(current_band, current_month))

    projected_costs = tuple(float(v) for v in record.get("projectedCosts") or [])
    month_count = int(record.get("nMonths") or len(projected_usage) or defaults.months)
    if month_count < 1:
        logger.warning("Session has %d months, using %d", month_count, defaults.months)
        month_count = defaults.months

    config = ProjectionConfig(
        usage_pattern=parse_usage_pattern(usage_basis),
        peak_percentage=peak_percentage,
        month_count=month_count,
        current_month=current_month,
        is_fixed_charge=bool(record.get("isFixedCharge", False)),
        fixed_rates=fixed_rates,
        current_band=current_band,
        derived_bands=derived_bands,
    )
    result = ProjectionResult(
        monthly_usage=projected_usage,
        monthly_cost=projected_costs,
        total_cost=float(record.get("totalProjectedCost") or 0),
    )

    return Session(
        id=_record_id(record),
        name=record.get("name") or "Untitled",
        config=config,
        result=result,
        created_at=_parse_timestamp(record.get("createdAt")),
        usage_basis=usage_basis,
    )


class SessionRepository:
    """Saved sessions held in a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _load_records(self) -> list[dict]:
        records = self.store.load(SESSIONS_KEY)
        if records is None:
            return []
        if not isinstance(records, list):
            raise StorageError(f"Expected a list of sessions under '{SESSIONS_KEY}'")
        return records

    def all(self) -> list[Session]:
        """All saved sessions, oldest first."""
        try:
            return [session_from_record(r) for r in self._load_records()]
        except (AttributeError, TypeError, ValueError) as e:
            raise StorageError(f"Saved sessions are malformed: {e}") from e

    def add(self, session: Session) -> None:
        records = self._load_records()
        records.append(session_to_record(session))
        self.store.save(SESSIONS_KEY, records)

    def get(self, ref: str) -> Session | None:
        """Find a session by id, or by name if no id matches."""
        sessions = self.all()
        for session in sessions:
            if session.id == ref:
                return session
        for session in sessions:
            if session.name == ref:
                return session
        return None

    def remove(self, ref: str) -> Session | None:
        """Delete a session by id or name. Returns the removed session."""
        session = self.get(ref)
        if session is None:
            return None

        records = [r for r in self._load_records() if _record_id(r) != session.id]
        self.store.save(SESSIONS_KEY, records)
        return session


def compare_sessions(first: Session, second: Session) -> dict:
    """Pair two sessions' series for side-by-side charts."""
    month_count = max(first.config.month_count, second.config.month_count)
    difference = second.result.total_cost - first.result.total_cost

    if difference > 0:
        cheaper = first.name
    elif difference < 0:
        cheaper = second.name
    else:
        cheaper = None

    return {
        "labels": [f"Month {i + 1}" for i in range(month_count)],
        "series": [
            {
                "name": s.name,
                "usage": list(s.result.monthly_usage),
                "cost": list(s.result.monthly_cost),
                "total_cost": round2(s.result.total_cost),
            }
            for s in (first, second)
        ],
        "cost_difference": round2(difference),
        "cheaper": cheaper,
    }
