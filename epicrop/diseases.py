"""Named parameter presets for rice diseases (caller-facing layer).

The simulator core takes a fully explicit SimulationParameters; this
module is where published defaults live. Each predict_*() helper selects
the growing season from the crop emergence date and runs simulate().

Parameter values follow EPIRICE (Savary et al. 2012), calibrated for
tropical lowland rice:

  disease            RcOpt  p   i    H0   Sx      a  RRS    RRG  onset
  bacterial_blight   0.87   5   30   100  3200    4  0.01   0.1  15
  brown_spot         0.61   6   19   600  100000  1  0.01   0.1  20
  leaf_blast         1.14   5   20   600  30000   1  0.01   0.1  15
  sheath_blight      0.46   3   120  25   800     1  0.005  0.2  30
  tungro             0.18   6   120  100  1500    1  0.01   0.1  25

All presets use a 120-day season, rhlim = 90 %, rainlim = 5 mm, a single
inoculum site, and cumulative removal.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Dict

import numpy as np

from epicrop.config import SimulationParameters, validate_parameters
from epicrop.errors import InvalidParameterError
from epicrop.model import SimulationResult, simulate
from epicrop.weather import WeatherRecord, select_season


def _pairs(xs, ys):
    """Zip AFGEN x/y columns into an immutable table."""
    return tuple((float(x), float(y)) for x, y in zip(xs, ys))


def _preset(**kwargs: Any) -> SimulationParameters:
    common = dict(
        duration=120,
        initial_infection=1.0,
        removal_period=120,
        removal_mode="cumulative",
        rhlim=90.0,
        rainlim=5.0,
    )
    common.update(kwargs)
    params = SimulationParameters(**common)
    validate_parameters(params)
    return params


# ═══════════════════════════════════════════════════════════════════════
# PRESETS
# ═══════════════════════════════════════════════════════════════════════

BACTERIAL_BLIGHT = _preset(
    onset=15,
    initial_healthy=100.0,
    max_sites=3200.0,
    growth_rate=0.1,
    senescence_rate=0.01,
    latent_period=5,
    infectious_period=30,
    rc_opt=0.87,
    aggregation=4.0,
    age_response=_pairs(
        np.arange(13) * 10,
        [1.0, 1.0, 1.0, 0.9, 0.62, 0.43, 0.41, 0.42, 0.41, 0.41, 0.41,
         0.41, 0.41],
    ),
    temperature_response=_pairs(
        16 + np.arange(9) * 3,
        [0.0, 0.29, 0.44, 0.90, 0.90, 1.0, 0.88, 0.01, 0.0],
    ),
)

BROWN_SPOT = _preset(
    onset=20,
    initial_healthy=600.0,
    max_sites=100000.0,
    growth_rate=0.1,
    senescence_rate=0.01,
    latent_period=6,
    infectious_period=19,
    rc_opt=0.61,
    aggregation=1.0,
    age_response=_pairs(
        np.arange(8) * 20,
        [0.35, 0.35, 0.35, 0.47, 0.59, 0.71, 1.0, 1.0],
    ),
    temperature_response=_pairs(
        15 + np.arange(6) * 5,
        [0.0, 0.06, 1.0, 0.85, 0.16, 0.0],
    ),
)

LEAF_BLAST = _preset(
    onset=15,
    initial_healthy=600.0,
    max_sites=30000.0,
    growth_rate=0.1,
    senescence_rate=0.01,
    latent_period=5,
    infectious_period=20,
    rc_opt=1.14,
    aggregation=1.0,
    age_response=_pairs(
        np.arange(25) * 5,
        [1.0, 1.0, 1.0, 0.9, 0.8, 0.7, 0.64, 0.59, 0.53, 0.43, 0.32, 0.22,
         0.16, 0.09, 0.03, 0.02, 0.02, 0.02, 0.01, 0.01, 0.01, 0.01, 0.01,
         0.01, 0.01],
    ),
    temperature_response=_pairs(
        np.arange(2, 10) * 5,
        [0.0, 0.5, 1.0, 0.6, 0.2, 0.05, 0.01, 0.0],
    ),
)

SHEATH_BLIGHT = _preset(
    onset=30,
    initial_healthy=25.0,
    max_sites=800.0,
    growth_rate=0.2,
    senescence_rate=0.005,
    latent_period=3,
    infectious_period=120,
    rc_opt=0.46,
    aggregation=1.0,
    age_response=_pairs(
        np.arange(13) * 10,
        [0.84, 0.84, 0.84, 0.84, 0.84, 0.84, 0.83, 0.88, 0.88, 1.0, 1.0,
         1.0, 1.0],
    ),
    temperature_response=_pairs(
        np.arange(3, 11) * 4,
        [0.0, 0.42, 0.94, 0.94, 1.0, 0.85, 0.64, 0.0],
    ),
)

TUNGRO = _preset(
    onset=25,
    initial_healthy=100.0,
    max_sites=1500.0,
    growth_rate=0.1,
    senescence_rate=0.01,
    latent_period=6,
    infectious_period=120,
    rc_opt=0.18,
    aggregation=1.0,
    age_response=_pairs(
        np.arange(9) * 15,
        [1.0, 1.0, 0.98, 0.73, 0.51, 0.34, 0.0, 0.0, 0.0],
    ),
    temperature_response=_pairs(
        [9.0] + [10.0 + k * 3.1111 for k in range(10)] + [40.0],
        [0.0, 0.13, 0.65, 0.75, 0.83, 0.89, 0.93, 0.97, 1.0, 0.96, 0.93, 0.0],
    ),
)

DISEASES: Dict[str, SimulationParameters] = {
    'bacterial_blight': BACTERIAL_BLIGHT,
    'brown_spot': BROWN_SPOT,
    'leaf_blast': LEAF_BLAST,
    'sheath_blight': SHEATH_BLIGHT,
    'tungro': TUNGRO,
}


def get_disease_parameters(name: str, **overrides: Any) -> SimulationParameters:
    """Preset parameters for `name`, with optional field overrides.

    Raises:
        InvalidParameterError: Unknown disease, unknown field, or an
            override that fails validation.
    """
    if name not in DISEASES:
        raise InvalidParameterError(
            f"unknown disease {name!r}; choose from {sorted(DISEASES)}"
        )
    try:
        params = dataclasses.replace(DISEASES[name], **overrides)
    except TypeError as exc:
        raise InvalidParameterError(f"bad override for {name}: {exc}")
    validate_parameters(params)
    return params


# ═══════════════════════════════════════════════════════════════════════
# PREDICT HELPERS
# ═══════════════════════════════════════════════════════════════════════

def predict(name: str, wth: WeatherRecord, emergence,
            **overrides: Any) -> SimulationResult:
    """Simulate disease `name` for the season starting at `emergence`."""
    params = get_disease_parameters(name, **overrides)
    season = select_season(wth, emergence, params.duration)
    return simulate(season, params)


def predict_bacterial_blight(wth: WeatherRecord, emergence,
                             **overrides: Any) -> SimulationResult:
    """Bacterial blight (Xanthomonas oryzae pv. oryzae) epidemic."""
    return predict('bacterial_blight', wth, emergence, **overrides)


def predict_brown_spot(wth: WeatherRecord, emergence,
                       **overrides: Any) -> SimulationResult:
    """Brown spot (Cochliobolus miyabeanus) epidemic."""
    return predict('brown_spot', wth, emergence, **overrides)


def predict_leaf_blast(wth: WeatherRecord, emergence,
                       **overrides: Any) -> SimulationResult:
    """Leaf blast (Magnaporthe oryzae) epidemic."""
    return predict('leaf_blast', wth, emergence, **overrides)


def predict_sheath_blight(wth: WeatherRecord, emergence,
                          **overrides: Any) -> SimulationResult:
    """Sheath blight (Rhizoctonia solani) epidemic."""
    return predict('sheath_blight', wth, emergence, **overrides)


def predict_tungro(wth: WeatherRecord, emergence,
                   **overrides: Any) -> SimulationResult:
    """Rice tungro (RTBV/RTSV, leafhopper-borne) epidemic."""
    return predict('tungro', wth, emergence, **overrides)
