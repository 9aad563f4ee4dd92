"""Daily weather forcing for the epidemic simulator.

A WeatherRecord is a column-wise daily series with the fields delivered
by the weather-acquisition collaborator (NASA POWER, "AG" community):

  YYYYMMDD  date (ISO8601)
  DOY       day of year
  TEMP      mean daily temperature (°C)
  RHUM      mean daily relative humidity (%)
  RAIN      daily rainfall (mm)
  LAT, LON  geolocation of the series

The simulator never trusts this contract: validate_weather() checks
coverage, contiguity and finiteness of the values the loop will read.

Synthetic series (make_weather_series) use a sinusoidal annual cycle for
temperature, peaking mid-year by default, for experiments and tests.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from epicrop.errors import DataQualityError, InputMismatchError

logger = logging.getLogger(__name__)


# Boundary column order, as delivered by the weather collaborator
WEATHER_COLUMNS = ("YYYYMMDD", "DOY", "TEMP", "RHUM", "RAIN", "LAT", "LON")

# Columns read by the simulation loop every day
DRIVER_COLUMNS = ("TEMP", "RHUM", "RAIN")

_ONE_DAY = np.timedelta64(1, "D")


# ═══════════════════════════════════════════════════════════════════════
# WEATHER RECORD
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WeatherRecord:
    """Daily weather series, one row per day, sorted by date ascending.

    All arrays have the same length. Arrays are copied on construction and
    made read-only so a simulation can hold them by reference.
    """
    dates: np.ndarray      # datetime64[D]
    doy: np.ndarray        # int, day of year
    temp: np.ndarray       # °C
    rhum: np.ndarray       # %
    rain: np.ndarray       # mm
    lat: np.ndarray
    lon: np.ndarray

    def __post_init__(self) -> None:
        columns = {
            'dates': np.array(self.dates, dtype='datetime64[D]'),
            'doy': np.array(self.doy, dtype=np.int64),
            'temp': np.array(self.temp, dtype=np.float64),
            'rhum': np.array(self.rhum, dtype=np.float64),
            'rain': np.array(self.rain, dtype=np.float64),
            'lat': np.array(self.lat, dtype=np.float64),
            'lon': np.array(self.lon, dtype=np.float64),
        }
        lengths = {name: arr.shape for name, arr in columns.items()}
        if len(set(lengths.values())) != 1 or columns['dates'].ndim != 1:
            raise InputMismatchError(
                f"weather columns must be 1-D and of equal length, got {lengths}"
            )
        for name, arr in columns.items():
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

    def __len__(self) -> int:
        return int(self.dates.shape[0])

    def slice(self, start: int, stop: int) -> "WeatherRecord":
        """Rows [start, stop) as a new WeatherRecord."""
        return WeatherRecord(
            dates=self.dates[start:stop],
            doy=self.doy[start:stop],
            temp=self.temp[start:stop],
            rhum=self.rhum[start:stop],
            rain=self.rain[start:stop],
            lat=self.lat[start:stop],
            lon=self.lon[start:stop],
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Tabular view with the boundary column names."""
        return pd.DataFrame({
            'YYYYMMDD': pd.to_datetime(self.dates),
            'DOY': self.doy,
            'TEMP': self.temp,
            'RHUM': self.rhum,
            'RAIN': self.rain,
            'LAT': self.lat,
            'LON': self.lon,
        })


# ═══════════════════════════════════════════════════════════════════════
# CONTRACT VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def validate_weather(weather: WeatherRecord, n_rows: int) -> None:
    """Check that the first `n_rows` rows of `weather` can drive a run.

    A run of duration d reads rows 0..d−1 (day 0 is the initial
    condition), so n_rows is the run's duration.

    Raises:
        InputMismatchError: fewer than n_rows rows, or dates that are not
            strictly increasing in one-day steps within the horizon.
        DataQualityError: NaN/inf TEMP, RHUM or RAIN within the horizon.
    """
    if len(weather) < n_rows:
        raise InputMismatchError(
            f"weather covers {len(weather)} days but the run needs {n_rows} "
            f"(days 1..{n_rows})"
        )

    dates = weather.dates[:n_rows]
    if np.isnat(dates).any():
        bad = int(np.flatnonzero(np.isnat(dates))[0])
        raise InputMismatchError(f"weather date missing at row {bad}")
    if n_rows > 1:
        steps = np.diff(dates)
        bad = np.flatnonzero(steps != _ONE_DAY)
        if bad.size:
            i = int(bad[0])
            kind = "gap" if steps[i] > _ONE_DAY else "non-increasing dates"
            raise InputMismatchError(
                f"weather {kind} between {dates[i]} and {dates[i + 1]} "
                f"(rows {i} and {i + 1})"
            )

    for name in DRIVER_COLUMNS:
        values = getattr(weather, name.lower())[:n_rows]
        finite = np.isfinite(values)
        if not finite.all():
            i = int(np.flatnonzero(~finite)[0])
            raise DataQualityError(
                f"weather {name} is {values[i]} on {dates[i]} (row {i})"
            )


def _check_missing(df: pd.DataFrame) -> None:
    """Warn (but do not fail) when driver columns have missing values."""
    n_missing = int(df.loc[:, list(DRIVER_COLUMNS)].isna().sum().sum())
    if n_missing:
        message = (
            f"weather data have {n_missing} missing TEMP/RHUM/RAIN values; "
            "inspect the series and fill the gaps or fetch it again before "
            "running the model"
        )
        logger.warning(message)
        warnings.warn(message, UserWarning, stacklevel=3)


# ═══════════════════════════════════════════════════════════════════════
# TABULAR ADAPTERS (pandas)
# ═══════════════════════════════════════════════════════════════════════

def weather_from_dataframe(df: pd.DataFrame) -> WeatherRecord:
    """Build a WeatherRecord from a frame with the boundary columns.

    Rows are taken in the order given; ordering and gaps are checked when
    the record is validated, not silently repaired here.

    Raises:
        InputMismatchError: if a boundary column is absent, or DOY has
            missing values.
    """
    missing = [c for c in WEATHER_COLUMNS if c not in df.columns]
    if missing:
        raise InputMismatchError(f"weather frame lacks columns {missing}")
    if df['DOY'].isna().any():
        bad = int(np.flatnonzero(df['DOY'].isna().to_numpy())[0])
        raise InputMismatchError(f"weather column DOY is missing at row {bad}")

    _check_missing(df)
    dates = pd.to_datetime(df['YYYYMMDD'].astype(str), format='mixed')
    return WeatherRecord(
        dates=dates.to_numpy(dtype='datetime64[D]'),
        doy=df['DOY'].to_numpy(dtype=np.int64),
        temp=df['TEMP'].to_numpy(dtype=np.float64),
        rhum=df['RHUM'].to_numpy(dtype=np.float64),
        rain=df['RAIN'].to_numpy(dtype=np.float64),
        lat=df['LAT'].to_numpy(dtype=np.float64),
        lon=df['LON'].to_numpy(dtype=np.float64),
    )


def load_weather_csv(path: Union[str, Path]) -> WeatherRecord:
    """Load a weather series saved as CSV with the boundary columns."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Weather file not found: {path}")
    df = pd.read_csv(path)
    logger.debug("loaded %d weather rows from %s", len(df), path)
    return weather_from_dataframe(df)


def select_season(weather: WeatherRecord, emergence,
                  duration: int) -> WeatherRecord:
    """The `duration` rows following the crop emergence date.

    Emergence is day 0 of the run, the initial condition, and reads no
    weather; days 1..duration read the returned rows, so the result's
    dates start on the emergence date.

    Args:
        weather: Full weather series.
        emergence: Crop emergence date (anything np.datetime64 accepts).
        duration: Season length in days; duration rows are returned.

    Raises:
        InputMismatchError: the day after emergence is absent, or fewer
            than duration rows follow emergence.
    """
    start_date = np.datetime64(emergence, 'D') + _ONE_DAY
    if duration == 0:
        return weather.slice(0, 0)
    hits = np.flatnonzero(weather.dates == start_date)
    if hits.size == 0:
        raise InputMismatchError(
            f"day after emergence, {start_date}, is not in the weather series"
        )
    start = int(hits[0])
    season = weather.slice(start, start + duration)
    if len(season) < duration:
        raise InputMismatchError(
            f"weather from {start_date} covers {len(season)} days, "
            f"season needs {duration}"
        )
    return season


# ═══════════════════════════════════════════════════════════════════════
# SYNTHETIC SERIES
# ═══════════════════════════════════════════════════════════════════════

def sinusoidal_temperature(day_of_year, mean_temp: float,
                           amplitude: float, peak_doy: int = 196):
    """Mean daily temperature from a sinusoidal annual cycle.

    T(d) = T_mean + A × cos(2π × (d − d_peak) / 365)
    """
    phase = 2.0 * np.pi * (np.asarray(day_of_year) - peak_doy) / 365.0
    return mean_temp + amplitude * np.cos(phase)


def make_weather_series(
    start,
    n_days: int,
    mean_temp: float = 27.0,
    temp_amplitude: float = 0.0,
    rhum: float = 90.0,
    rain: float = 0.0,
    lat: float = 14.6774,
    lon: float = 121.25562,
    peak_doy: int = 196,
    rhum_series: Optional[np.ndarray] = None,
    rain_series: Optional[np.ndarray] = None,
) -> WeatherRecord:
    """Generate a contiguous synthetic daily series.

    Temperature follows sinusoidal_temperature(); humidity and rain are
    constant unless explicit per-day series are given. The default
    location is the IRRI Zeigler Experiment Station.

    Returns:
        WeatherRecord of n_days rows starting at `start`.
    """
    dates = np.datetime64(start, 'D') + np.arange(n_days)
    doy = (dates - dates.astype('datetime64[Y]')).astype(np.int64) + 1
    temp = sinusoidal_temperature(doy, mean_temp, temp_amplitude, peak_doy)
    return WeatherRecord(
        dates=dates,
        doy=doy,
        temp=np.broadcast_to(temp, (n_days,)),
        rhum=(np.full(n_days, rhum) if rhum_series is None
              else np.asarray(rhum_series, dtype=np.float64)),
        rain=(np.full(n_days, rain) if rain_series is None
              else np.asarray(rain_series, dtype=np.float64)),
        lat=np.full(n_days, lat),
        lon=np.full(n_days, lon),
    )
