"""Core data types for epicrop.

This module defines:
  - Compartment: enumeration of the site compartments tracked per day
  - CompartmentState: read-only per-day snapshot of compartment areas
  - DayMultipliers: weather/age multipliers applied on one day

Units: all compartment quantities are numbers of sites (leaf area units),
stored as float64. Severity is a percentage in [0, 100].
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Compartment(IntEnum):
    """Site compartments of the SEIR host model.

    H → E  (infection, rate × density term)
    E → I  (after latent_period days)
    I → R  (after infectious_period days)
    H → senesced (natural senescence, RRS × H)
    """
    H = 0   # Healthy sites
    E = 1   # Latent (exposed, not yet sporulating)
    I = 2   # Infectious
    R = 3   # Removed (no longer infectious)
    D = 4   # Diseased = E + I + R


# Output column for each compartment in the tabular result
COMPARTMENT_COLUMNS = {
    Compartment.H: "sites",
    Compartment.E: "latent",
    Compartment.I: "infectious",
    Compartment.R: "removed",
    Compartment.D: "diseased",
}


# ═══════════════════════════════════════════════════════════════════════
# PER-DAY RECORDS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CompartmentState:
    """Compartment areas at the end of one simulated day."""
    day: int
    healthy: float
    latent: float
    infectious: float
    removed: float
    diseased: float
    senesced: float
    severity: float

    @property
    def total_sites(self) -> float:
        """Healthy plus diseased sites (senesced sites excluded)."""
        return self.healthy + self.diseased

    def as_array(self) -> np.ndarray:
        """Compartment vector ordered by the Compartment enum."""
        return np.array([
            self.healthy,
            self.latent,
            self.infectious,
            self.removed,
            self.diseased,
        ], dtype=np.float64)


@dataclass(frozen=True)
class DayMultipliers:
    """Rate multipliers applied on one day.

    rc = rc_opt × age × temperature × humidity
    """
    temperature: float
    humidity: float
    age: float
    rc: float

    @property
    def favourable(self) -> bool:
        """True when humidity/rain and temperature both permit infection."""
        return self.humidity > 0.0 and self.temperature > 0.0
