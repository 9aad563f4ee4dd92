"""Epidemic simulator: weather-driven SEIR site model, one day per step.

Day 0 is the initial condition at crop emergence: H0 healthy sites, plus
the inoculum when onset is day 0. The run is then a fold over days
1..duration. Day t reads the previous day's carry (healthy sites,
senesced sites, infection-cohort history) and weather row t − 1, and
returns a new carry plus the day's output row:

  1. Host growth (logistic toward Sx) and senescence of healthy sites
  2. Cohort aging: a cohort infected on day s is latent on days
     s..s+p−1, infectious on s+p..s+p+i−1, removed from s+p+i on
     (cumulative) or for removal_period days only (rolling)
  3. Weather multipliers and the effective infection rate rc
  4. New infections I × rc × (H/(H+D))^a, capped at H; inoculum on onset
  5. Healthy −= new infections; the new cohort enters the latent pool

Aging precedes new infections, so a cohort created today cannot leave
the latent pool today. Compartments that would dip below zero through
rounding are clamped to zero; this is expected, not an error.

References:
  - Savary et al. 2012, Crop Protection 34:6-17 (EPIRICE)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Iterator, List, NamedTuple, Tuple

import numpy as np
import pandas as pd

from epicrop.config import SimulationParameters, validate_parameters
from epicrop.disease import as_table, compute_multipliers, new_infections
from epicrop.types import (
    COMPARTMENT_COLUMNS,
    Compartment,
    CompartmentState,
    DayMultipliers,
)
from epicrop.weather import WeatherRecord, validate_weather

logger = logging.getLogger(__name__)

_ONE_DAY = np.timedelta64(1, "D")

# Recorded for day 0, which reads no weather
_NO_WEATHER = DayMultipliers(temperature=0.0, humidity=0.0, age=0.0, rc=0.0)


# ═══════════════════════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SimulationResult:
    """Daily trajectory of one run. Every array has length duration + 1.

    Arrays are read-only; the result is never modified after the run.
    """
    simday: np.ndarray             # day index 0..duration
    dates: np.ndarray              # datetime64[D], aligned with the weather rows
    sites: np.ndarray              # H: healthy sites
    latent: np.ndarray             # E: latent sites
    infectious: np.ndarray         # I: infectious sites
    removed: np.ndarray            # R: removed sites
    senesced: np.ndarray           # cumulative senesced healthy sites
    diseased: np.ndarray           # D = E + I + R
    severity: np.ndarray           # (D − R) / (H + D − R) × 100
    rateinf: np.ndarray            # weather-driven new infections that day
    inoculum: np.ndarray           # inoculum introduced that day (onset only)
    rtransfer: np.ndarray          # latent → infectious transfer that day
    rgrowth: np.ndarray            # host growth that day
    rsenesced: np.ndarray          # senescence that day
    temp_multiplier: np.ndarray
    rh_multiplier: np.ndarray
    age_multiplier: np.ndarray
    rc: np.ndarray                 # effective infection rate coefficient (d⁻¹)
    lat: np.ndarray
    lon: np.ndarray

    def __len__(self) -> int:
        return int(self.simday.shape[0])

    @property
    def duration(self) -> int:
        return len(self) - 1

    def state(self, day: int) -> CompartmentState:
        """CompartmentState for one day."""
        return CompartmentState(
            day=int(self.simday[day]),
            healthy=float(self.sites[day]),
            latent=float(self.latent[day]),
            infectious=float(self.infectious[day]),
            removed=float(self.removed[day]),
            diseased=float(self.diseased[day]),
            senesced=float(self.senesced[day]),
            severity=float(self.severity[day]),
        )

    def states(self) -> Iterator[CompartmentState]:
        for day in range(len(self)):
            yield self.state(day)

    def multipliers(self, day: int) -> DayMultipliers:
        """Rate multipliers applied on one day."""
        return DayMultipliers(
            temperature=float(self.temp_multiplier[day]),
            humidity=float(self.rh_multiplier[day]),
            age=float(self.age_multiplier[day]),
            rc=float(self.rc[day]),
        )

    def compartment(self, which: Compartment) -> np.ndarray:
        """Daily series of one compartment."""
        return getattr(self, COMPARTMENT_COLUMNS[Compartment(which)])

    def compartment_matrix(self) -> np.ndarray:
        """(n_days, 5) array, columns ordered by the Compartment enum.

        Row t equals state(t).as_array().
        """
        return np.column_stack([self.compartment(c) for c in Compartment])

    def favourable_days(self) -> int:
        """Days on which both temperature and wetness permitted infection."""
        return sum(self.multipliers(day).favourable for day in range(len(self)))

    def audpc(self) -> float:
        """Area under the severity progress curve (%·days), trapezoidal."""
        if len(self) < 2:
            return 0.0
        s = self.severity
        return float(np.sum((s[1:] + s[:-1]) / 2.0))

    def to_dataframe(self) -> pd.DataFrame:
        """One row per simulated day, for plotting or export."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['dates'] = pd.to_datetime(self.dates)
        return pd.DataFrame(data)


# ═══════════════════════════════════════════════════════════════════════
# FOLD
# ═══════════════════════════════════════════════════════════════════════

class _Carry(NamedTuple):
    """State handed from one day to the next."""
    healthy: float
    senesced: float
    total: float                   # H + D at the end of the day
    cohorts: Tuple[float, ...]     # sites infected on each day so far


class _Row(NamedTuple):
    sites: float
    latent: float
    infectious: float
    removed: float
    senesced: float
    diseased: float
    severity: float
    rateinf: float
    inoculum: float
    rtransfer: float
    rgrowth: float
    rsenesced: float
    temp_multiplier: float
    rh_multiplier: float
    age_multiplier: float
    rc: float


def _window(cohorts: Tuple[float, ...], start: int, stop: int) -> float:
    """Sum of cohorts[start:stop], with negative bounds clipped to 0."""
    start = max(start, 0)
    stop = max(stop, 0)
    if stop <= start:
        return 0.0
    return float(sum(cohorts[start:stop]))


def _severity(healthy: float, diseased: float, removed: float) -> float:
    visible = healthy + diseased - removed
    if visible <= 0.0:
        return 0.0
    return (diseased - removed) / visible * 100.0


def _step(
    carry: _Carry,
    day: int,
    weather: WeatherRecord,
    params: SimulationParameters,
    temperature_table: np.ndarray,
    age_table: np.ndarray,
) -> Tuple[_Carry, _Row]:
    """Advance the model to `day` (≥ 1), reading weather row day − 1."""
    p = params.latent_period
    i = params.infectious_period

    # Host growth and senescence from yesterday's healthy sites
    growth = params.growth_rate * carry.healthy * (
        1.0 - carry.total / params.max_sites)
    growth = min(max(growth, 0.0), max(params.max_sites - carry.total, 0.0))
    senescence = params.senescence_rate * carry.healthy
    healthy = max(carry.healthy + growth - senescence, 0.0)

    # Aging of existing cohorts (today's cohort not yet created)
    cohorts = carry.cohorts
    latent = _window(cohorts, day - p + 1, day)
    infectious = _window(cohorts, day - p - i + 1, day - p + 1)
    if params.removal_mode == "rolling":
        removed = _window(cohorts, day - p - i - params.removal_period + 1,
                          day - p - i + 1)
    else:
        removed = _window(cohorts, 0, day - p - i + 1)
    transfer = cohorts[day - p] if day - p >= 0 else 0.0

    # Weather-modulated infection
    row = day - 1
    mult = compute_multipliers(
        day,
        float(weather.temp[row]),
        float(weather.rhum[row]),
        float(weather.rain[row]),
        params,
        temperature_table,
        age_table,
    )
    inoculum = min(params.initial_infection, healthy) if day == params.onset else 0.0
    infected = new_infections(infectious, mult.rc, healthy - inoculum,
                              latent + infectious + removed, params.aggregation)
    healthy = max(healthy - inoculum - infected, 0.0)

    cohort = inoculum + infected
    latent += cohort
    return _record(carry, healthy, latent, infectious, removed, cohort,
                   infected=infected, inoculum=inoculum, transfer=transfer,
                   growth=growth, senescence=senescence, mult=mult)


def _initial(params: SimulationParameters) -> Tuple[_Carry, _Row]:
    """Day 0: healthy sites H0, plus the inoculum when onset is day 0.

    No weather is read on day 0 and no infection occurs, so its
    multipliers are recorded as zero.
    """
    healthy = float(params.initial_healthy)
    inoculum = min(params.initial_infection, healthy) if params.onset == 0 else 0.0
    healthy -= inoculum
    carry = _Carry(healthy=healthy, senesced=0.0, total=healthy, cohorts=())
    return _record(carry, healthy, inoculum, 0.0, 0.0, inoculum,
                   infected=0.0, inoculum=inoculum, transfer=0.0,
                   growth=0.0, senescence=0.0, mult=_NO_WEATHER)


def _record(carry: _Carry, healthy: float, latent: float, infectious: float,
            removed: float, cohort: float, *, infected: float,
            inoculum: float, transfer: float, growth: float,
            senescence: float, mult: DayMultipliers) -> Tuple[_Carry, _Row]:
    """Close the day: new carry plus the output row."""
    diseased = latent + infectious + removed
    new_carry = _Carry(
        healthy=healthy,
        senesced=carry.senesced + senescence,
        total=healthy + diseased,
        cohorts=carry.cohorts + (cohort,),
    )
    row = _Row(
        sites=healthy,
        latent=latent,
        infectious=infectious,
        removed=removed,
        senesced=new_carry.senesced,
        diseased=diseased,
        severity=_severity(healthy, diseased, removed),
        rateinf=infected,
        inoculum=inoculum,
        rtransfer=transfer,
        rgrowth=growth,
        rsenesced=senescence,
        temp_multiplier=mult.temperature,
        rh_multiplier=mult.humidity,
        age_multiplier=mult.age,
        rc=mult.rc,
    )
    return new_carry, row


def _day_aligned(column: np.ndarray, duration: int, fill) -> np.ndarray:
    """Weather column indexed by day: day 0 repeats row 0, day t is row t − 1.

    With no weather rows (a zero-duration run) day 0 gets `fill`.
    """
    if len(column) == 0:
        return np.array([fill], dtype=column.dtype)
    return np.concatenate([column[:1], column[:duration]])


def simulate(weather: WeatherRecord,
             params: SimulationParameters) -> SimulationResult:
    """Run one epidemic over days 0..params.duration.

    Day 0 is the initial condition (crop emergence) and reads no weather;
    day t reads weather row t − 1.

    Args:
        weather: Daily series starting the day after crop emergence; at
            least duration contiguous rows.
        params: Complete parameter set (see epicrop.diseases for presets).

    Returns:
        SimulationResult with duration + 1 daily rows.

    Raises:
        InvalidParameterError: If params fail validation.
        InputMismatchError: If weather is too short or has date gaps.
        DataQualityError: If TEMP/RHUM/RAIN within the run are NaN/inf.
    """
    validate_parameters(params)
    duration = params.duration
    validate_weather(weather, duration)

    temperature_table = as_table(params.temperature_response)
    age_table = as_table(params.age_response)

    logger.debug(
        "simulating %d days (onset day %d) on %d weather rows",
        duration, params.onset, len(weather),
    )

    carry, row = _initial(params)
    rows: List[_Row] = [row]
    for day in range(1, duration + 1):
        carry, row = _step(carry, day, weather, params,
                           temperature_table, age_table)
        rows.append(row)

    n_days = params.n_days
    columns = {
        name: np.array([getattr(r, name) for r in rows], dtype=np.float64)
        for name in _Row._fields
    }
    columns['simday'] = np.arange(n_days, dtype=np.int64)
    if len(weather):
        columns['dates'] = weather.dates[0] - _ONE_DAY + np.arange(n_days)
    else:
        columns['dates'] = np.array(['NaT'], dtype='datetime64[D]')
    columns['lat'] = _day_aligned(weather.lat, duration, np.nan)
    columns['lon'] = _day_aligned(weather.lon, duration, np.nan)
    for arr in columns.values():
        arr.setflags(write=False)

    result = SimulationResult(**columns)
    final = result.state(duration)
    logger.debug(
        "finished: final severity %.3f%%, %.1f of %.1f sites diseased, "
        "%d favourable days",
        final.severity, final.diseased, final.total_sites,
        result.favourable_days(),
    )
    return result
