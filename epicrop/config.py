"""Parameter configuration for epicrop.

SimulationParameters is the complete, explicit parameter set of one run.
It carries NO defaults: every field must be supplied by the caller. Named
disease defaults live in the convenience layer (epicrop.diseases).

YAML parameter files may start from a named disease preset and override
any subset of fields; layers are deep-merged in order:
  disease preset → file `parameters:` mapping → caller overrides

Example file:

    disease: leaf_blast
    parameters:
      rhlim: 88
      onset: 20
"""

from __future__ import annotations

import dataclasses
import logging
import numbers
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import yaml

from epicrop.errors import InvalidParameterError

logger = logging.getLogger(__name__)


REMOVAL_MODES = ("cumulative", "rolling")

# Physically plausible bounds for mean daily air temperature (°C)
T_MIN_VALID = -60.0
T_MAX_VALID = 60.0


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER SET
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SimulationParameters:
    """Disease-specific parameters of one epidemic simulation.

    Site counts are in leaf-area "sites" (Zadoks 1971). Response tables
    are (x, y) pairs interpolated linearly (AFGEN).
    """
    # Timing
    duration: int                  # Days simulated after day 0 (rows = duration + 1)
    onset: int                     # Day the inoculum is introduced (0 ≤ onset ≤ duration)

    # Host
    initial_healthy: float         # H0: healthy sites at crop emergence
    initial_infection: float       # I0: inoculum sites placed in the latent pool at onset
    max_sites: float               # Sx: maximum total sites of the crop
    growth_rate: float             # RRG: relative host growth rate (d⁻¹), logistic
    senescence_rate: float         # RRS: relative senescence rate of healthy sites (d⁻¹)

    # Cohort aging
    latent_period: int             # p: days from infection to infectious
    infectious_period: int         # i: days a site stays infectious
    removal_period: int            # days a removed site stays counted (rolling mode)
    removal_mode: str              # "cumulative" or "rolling"

    # Weather response
    rhlim: float                   # RH threshold (%); RH ≥ rhlim is favourable
    rainlim: float                 # rain threshold (mm); rain ≥ rainlim is favourable
    rc_opt: float                  # RcOpt: basic infection rate at optimum (d⁻¹)
    temperature_response: Tuple[Tuple[float, float], ...]   # (°C, multiplier)
    age_response: Tuple[Tuple[float, float], ...]           # (crop age d, multiplier)
    aggregation: float             # a: exponent on the healthy fraction H/(H+D)

    @property
    def n_days(self) -> int:
        """Number of daily rows produced by a run (days 0..duration)."""
        return self.duration + 1

    def as_dict(self) -> Dict[str, Any]:
        """Plain-dict form (tables as nested lists), YAML friendly."""
        data = dataclasses.asdict(self)
        data['temperature_response'] = [list(p) for p in self.temperature_response]
        data['age_response'] = [list(p) for p in self.age_response]
        return data


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def _is_int(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _check_positive(name: str, value: Any) -> None:
    if not (isinstance(value, numbers.Real) and np.isfinite(value) and value > 0):
        raise InvalidParameterError(f"{name} must be positive, got {value!r}")


def _check_period(name: str, value: Any) -> None:
    if not _is_int(value) or value < 1:
        raise InvalidParameterError(
            f"{name} must be a whole number of days ≥ 1, got {value!r}"
        )


def _check_table(name: str, pairs: Any) -> np.ndarray:
    try:
        table = np.asarray(pairs, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{name} is not a table of numbers: {exc}")
    if table.ndim != 2 or table.shape[1] != 2 or table.shape[0] < 2:
        raise InvalidParameterError(
            f"{name} must hold at least two (x, y) pairs, got shape {table.shape}"
        )
    if not np.isfinite(table).all():
        raise InvalidParameterError(f"{name} contains non-finite values")
    if np.any(np.diff(table[:, 0]) <= 0):
        raise InvalidParameterError(f"{name} x values must be strictly increasing")
    if np.any(table[:, 1] < 0) or np.any(table[:, 1] > 1):
        raise InvalidParameterError(f"{name} multipliers must lie in [0, 1]")
    return table


def validate_parameters(params: SimulationParameters) -> None:
    """Validate a parameter set. Raises InvalidParameterError on failure.

    Checks:
      - Periods are whole days ≥ 1; duration ≥ 0; onset within the run
      - Rates and site counts are positive (growth ≤ 1, senescence < 1)
      - Inoculum fits in the initial healthy area, which fits in Sx
      - rhlim in [0, 100], rainlim > 0
      - Response tables are increasing in x with multipliers in [0, 1];
        the temperature table is zero at both ends of a plausible range
    """
    p = params

    if not _is_int(p.duration) or p.duration < 0:
        raise InvalidParameterError(
            f"duration must be a whole number of days ≥ 0, got {p.duration!r}"
        )
    if not _is_int(p.onset) or not (0 <= p.onset <= p.duration):
        raise InvalidParameterError(
            f"onset must be a day in [0, duration={p.duration}], got {p.onset!r}"
        )

    _check_period("latent_period", p.latent_period)
    _check_period("infectious_period", p.infectious_period)
    _check_period("removal_period", p.removal_period)
    if p.removal_mode not in REMOVAL_MODES:
        raise InvalidParameterError(
            f"removal_mode must be one of {REMOVAL_MODES}, got {p.removal_mode!r}"
        )

    for name in ("initial_healthy", "initial_infection", "max_sites",
                 "growth_rate", "senescence_rate", "rc_opt", "aggregation"):
        _check_positive(name, getattr(p, name))
    if p.growth_rate > 1.0:
        raise InvalidParameterError(
            f"growth_rate must be ≤ 1 (d⁻¹), got {p.growth_rate}"
        )
    if p.senescence_rate >= 1.0:
        raise InvalidParameterError(
            f"senescence_rate must be < 1 (d⁻¹), got {p.senescence_rate}"
        )
    if p.initial_infection > p.initial_healthy:
        raise InvalidParameterError(
            f"initial_infection ({p.initial_infection}) must not exceed "
            f"initial_healthy ({p.initial_healthy})"
        )
    if p.initial_healthy > p.max_sites:
        raise InvalidParameterError(
            f"initial_healthy ({p.initial_healthy}) must not exceed "
            f"max_sites ({p.max_sites})"
        )

    if not (isinstance(p.rhlim, numbers.Real) and 0.0 <= p.rhlim <= 100.0):
        raise InvalidParameterError(f"rhlim must be in [0, 100] %, got {p.rhlim!r}")
    if not (isinstance(p.rainlim, numbers.Real) and p.rainlim > 0.0):
        # rain ≥ 0 mm on every day, so rainlim = 0 would open the gate daily
        raise InvalidParameterError(f"rainlim must be > 0 mm, got {p.rainlim!r}")

    t_table = _check_table("temperature_response", p.temperature_response)
    if t_table[0, 0] < T_MIN_VALID or t_table[-1, 0] > T_MAX_VALID:
        raise InvalidParameterError(
            f"temperature_response spans {t_table[0, 0]}..{t_table[-1, 0]} °C, "
            f"outside [{T_MIN_VALID}, {T_MAX_VALID}]"
        )
    if t_table[0, 1] != 0.0 or t_table[-1, 1] != 0.0:
        raise InvalidParameterError(
            "temperature_response must be 0 at both ends of the viable range"
        )
    a_table = _check_table("age_response", p.age_response)
    if a_table[0, 0] < 0:
        raise InvalidParameterError("age_response crop ages must be ≥ 0")


# ═══════════════════════════════════════════════════════════════════════
# DICT / YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values (including response tables) are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _as_pairs(pairs: Any) -> Tuple[Tuple[float, float], ...]:
    return tuple(tuple(float(v) for v in pair) for pair in pairs)


def parameters_from_dict(data: Dict[str, Any]) -> SimulationParameters:
    """Build and validate SimulationParameters from a plain dict.

    Unknown keys are ignored with a warning; missing keys are an error.
    """
    field_names = [f.name for f in dataclasses.fields(SimulationParameters)]
    unknown = sorted(set(data) - set(field_names))
    if unknown:
        warnings.warn(
            f"ignoring unknown parameter keys {unknown}",
            UserWarning,
            stacklevel=2,
        )
    missing = [name for name in field_names if name not in data]
    if missing:
        raise InvalidParameterError(f"missing required parameters {missing}")

    values = {name: data[name] for name in field_names}
    for name in ("temperature_response", "age_response"):
        try:
            values[name] = _as_pairs(values[name])
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(f"{name} is not a table of pairs: {exc}")
    params = SimulationParameters(**values)
    validate_parameters(params)
    return params


def load_parameters(
    base_path: Union[str, Path],
    overrides: Optional[Dict[str, Any]] = None,
) -> SimulationParameters:
    """Load a parameter set from YAML.

    Merge order: disease preset (if the file names one) → the file's
    `parameters:` mapping → `overrides`.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        InvalidParameterError: If the merged set is incomplete or invalid.
    """
    from epicrop.diseases import DISEASES

    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Parameter file not found: {base_path}")

    with open(base_path) as f:
        document = yaml.safe_load(f) or {}

    merged: Dict[str, Any] = {}
    disease = document.get('disease')
    if disease is not None:
        if disease not in DISEASES:
            raise InvalidParameterError(
                f"unknown disease preset {disease!r}; "
                f"choose from {sorted(DISEASES)}"
            )
        merged = DISEASES[disease].as_dict()

    deep_merge(merged, document.get('parameters') or {})
    if overrides is not None:
        deep_merge(merged, overrides)

    logger.debug("loaded parameters from %s (preset=%s)", base_path, disease)
    return parameters_from_dict(merged)
