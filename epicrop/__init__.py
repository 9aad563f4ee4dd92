"""epicrop: weather-driven SEIR simulation of rice-disease epidemics.

A discrete-time, site-based compartmental model coupling:
  - Host (rice canopy) growth and senescence on a logistic curve
  - Latent → infectious → removed cohort aging with fixed periods
  - Infection rates modulated by temperature, relative humidity/rain,
    and crop age (EPIRICE-style AFGEN response tables)
  - Named parameter presets for five rice diseases

References:
  - Savary et al. 2012, Crop Protection 34:6-17 (EPIRICE)
"""

from epicrop.batch import BatchJob, run_batch
from epicrop.config import SimulationParameters, load_parameters, validate_parameters
from epicrop.diseases import (
    DISEASES,
    get_disease_parameters,
    predict_bacterial_blight,
    predict_brown_spot,
    predict_leaf_blast,
    predict_sheath_blight,
    predict_tungro,
)
from epicrop.errors import (
    DataQualityError,
    EpicropError,
    InputMismatchError,
    InvalidParameterError,
)
from epicrop.model import SimulationResult, simulate
from epicrop.types import Compartment, CompartmentState, DayMultipliers
from epicrop.weather import (
    WeatherRecord,
    load_weather_csv,
    make_weather_series,
    select_season,
    weather_from_dataframe,
)

__version__ = "0.1.0"

__all__ = [
    "BatchJob",
    "Compartment",
    "CompartmentState",
    "DISEASES",
    "DataQualityError",
    "DayMultipliers",
    "EpicropError",
    "InputMismatchError",
    "InvalidParameterError",
    "SimulationParameters",
    "SimulationResult",
    "WeatherRecord",
    "get_disease_parameters",
    "load_parameters",
    "load_weather_csv",
    "make_weather_series",
    "predict_bacterial_blight",
    "predict_brown_spot",
    "predict_leaf_blast",
    "predict_sheath_blight",
    "predict_tungro",
    "run_batch",
    "select_season",
    "simulate",
    "validate_parameters",
    "weather_from_dataframe",
]
