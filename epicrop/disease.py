"""Rate functions for the weather-driven SEIR site model.

Implements:
  - AFGEN lookup tables: piecewise-linear interpolation in (x, y) pairs,
    clamped to the end values outside the table
  - Temperature response: AFGEN over mean daily temperature; tables are
    bell-shaped and reach zero at both ends of the viable range
  - Humidity/rain gate: active (1) when RH ≥ rhlim OR rain ≥ rainlim
  - Crop-age response: AFGEN over days since crop emergence
  - Effective daily infection rate:
        rc = RcOpt × f_age(t) × f_T(T) × f_RH(RH, rain)
        new_infections = I × rc × (H / (H + D)) ** a

References:
  - Savary et al. 2012, Crop Protection 34:6-17 (EPIRICE)
  - Zadoks 1971, Phytopathology 61:600-610 (site-based modelling)
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from epicrop.config import SimulationParameters
from epicrop.errors import DataQualityError
from epicrop.types import DayMultipliers


# ═══════════════════════════════════════════════════════════════════════
# AFGEN TABLES
# ═══════════════════════════════════════════════════════════════════════

def as_table(pairs: Sequence[Sequence[float]]) -> np.ndarray:
    """Convert (x, y) pairs to a float array of shape (n, 2)."""
    table = np.asarray(pairs, dtype=np.float64)
    if table.ndim != 2 or table.shape[1] != 2 or table.shape[0] < 2:
        raise ValueError(
            f"response table must be at least two (x, y) pairs, "
            f"got shape {table.shape}"
        )
    return table


def afgen(table: np.ndarray, x: float) -> float:
    """Linear interpolation in an (x, y) table.

    Outside the table the first/last y value is returned. x values must
    be strictly increasing (checked by validate_parameters()).
    """
    return float(np.interp(x, table[:, 0], table[:, 1]))


def optimum_temperature(table: np.ndarray) -> float:
    """Temperature (°C) at which a temperature response table peaks.

    Ties resolve to the lowest temperature.
    """
    return float(table[int(np.argmax(table[:, 1])), 0])


# ═══════════════════════════════════════════════════════════════════════
# MULTIPLIERS
# ═══════════════════════════════════════════════════════════════════════

def temperature_multiplier(temp: float, table: np.ndarray) -> float:
    """Temperature modifier of the infection rate (AFGEN over °C)."""
    return afgen(table, temp)


def humidity_multiplier(rhum: float, rain: float,
                        rhlim: float, rainlim: float) -> float:
    """Wetness gate on infection: 1 when RH ≥ rhlim or rain ≥ rainlim, else 0.

    Both comparisons are inclusive; a day exactly at the threshold is
    infection-favourable.
    """
    if rhum >= rhlim or rain >= rainlim:
        return 1.0
    return 0.0


def age_multiplier(crop_age: int, table: np.ndarray) -> float:
    """Crop-age modifier of the infection rate (AFGEN over days)."""
    return afgen(table, crop_age)


def infection_rate_coefficient(rc_opt: float, age: float,
                               temperature: float, humidity: float) -> float:
    """rc = RcOpt × f_age × f_T × f_RH (d⁻¹)."""
    return rc_opt * age * temperature * humidity


def compute_multipliers(
    day: int,
    temp: float,
    rhum: float,
    rain: float,
    params: SimulationParameters,
    temperature_table: np.ndarray,
    age_table: np.ndarray,
) -> DayMultipliers:
    """All rate multipliers for one day of the run.

    Args:
        day: Crop age (days since emergence), also the row index.
        temp, rhum, rain: That day's weather.
        params: SimulationParameters of the run.
        temperature_table, age_table: Pre-built AFGEN arrays.

    Raises:
        DataQualityError: If any driver value or multiplier is NaN/inf.
    """
    if not (np.isfinite(temp) and np.isfinite(rhum) and np.isfinite(rain)):
        raise DataQualityError(
            f"non-finite weather on day {day}: "
            f"TEMP={temp}, RHUM={rhum}, RAIN={rain}"
        )
    f_t = temperature_multiplier(temp, temperature_table)
    f_rh = humidity_multiplier(rhum, rain, params.rhlim, params.rainlim)
    f_age = age_multiplier(day, age_table)
    rc = infection_rate_coefficient(params.rc_opt, f_age, f_t, f_rh)
    if not np.isfinite(rc):
        raise DataQualityError(
            f"non-finite infection rate on day {day}: "
            f"f_T={f_t}, f_RH={f_rh}, f_age={f_age}"
        )
    return DayMultipliers(temperature=f_t, humidity=f_rh, age=f_age, rc=rc)


# ═══════════════════════════════════════════════════════════════════════
# DENSITY DEPENDENCE
# ═══════════════════════════════════════════════════════════════════════

def healthy_fraction(healthy: float, diseased: float) -> float:
    """Fraction of occupied sites still healthy, H / (H + D).

    Returns 0 when there are no sites at all.
    """
    total = healthy + diseased
    if total <= 0.0:
        return 0.0
    return healthy / total


def new_infections(infectious: float, rc: float, healthy: float,
                   diseased: float, aggregation: float) -> float:
    """Sites newly infected today, capped at the healthy sites available.

    new = I × rc × (H / (H + D)) ** a
    """
    if infectious <= 0.0 or rc <= 0.0 or healthy <= 0.0:
        return 0.0
    cofr = healthy_fraction(healthy, diseased)
    return min(infectious * rc * cofr ** aggregation, healthy)
