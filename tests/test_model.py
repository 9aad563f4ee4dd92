"""Tests for epicrop.model — the day-by-day epidemic simulator.

Acceptance criteria:
  - H, E, I, R ≥ 0 and H + E + I + R ≤ Sx on every day
  - Cumulative Removed never decreases; a rolling window lasts exactly
    removal_period days
  - RH exactly at rhlim activates infection
  - Identical inputs give bit-identical results
  - Day 0 is the initial condition; day t reads weather row t − 1, so a
    run needs exactly duration weather rows
  - Zero duration returns only day 0 and needs no weather
  - Wet weather at the optimum temperature: infectious sites appear by
    day latent_period, disease keeps growing between day 60 and day 120
  - RH below rhlim (no rain) all season: no new infections, host growth only
"""

import dataclasses

import numpy as np
import pandas as pd
import pytest

from epicrop.diseases import BROWN_SPOT, DISEASES, get_disease_parameters
from epicrop.disease import as_table, optimum_temperature
from epicrop.errors import DataQualityError, InputMismatchError, InvalidParameterError
from epicrop.model import SimulationResult, simulate
from epicrop.types import Compartment, CompartmentState, DayMultipliers
from epicrop.weather import WeatherRecord, make_weather_series


# ═══════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════

START = "2000-06-30"


def _weather(n_days, temp=25.0, rhum=95.0, rain=0.0, **kwargs):
    return make_weather_series(START, n_days, mean_temp=temp, rhum=rhum,
                               rain=rain, **kwargs)


def _mixed_weather(n_days):
    """Alternating wet and dry spells with a mild temperature cycle."""
    rh = np.where((np.arange(n_days) // 4) % 2 == 0, 94.0, 80.0)
    rain = np.where(np.arange(n_days) % 7 == 0, 12.0, 0.0)
    return make_weather_series(START, n_days, mean_temp=26.0,
                               temp_amplitude=3.0, rhum_series=rh,
                               rain_series=rain)


def _brown_spot(**overrides):
    return get_disease_parameters('brown_spot', **overrides)


@pytest.fixture
def wet_optimum_run():
    """Brown spot, inoculum on day 0, RH ≥ 90 and optimum temperature."""
    params = _brown_spot(onset=0)
    t_opt = optimum_temperature(as_table(params.temperature_response))
    return params, simulate(_weather(120, temp=t_opt, rhum=92.0), params)


# ═══════════════════════════════════════════════════════════════════════
# INVARIANTS
# ═══════════════════════════════════════════════════════════════════════

class TestInvariants:
    @pytest.mark.parametrize("name", sorted(DISEASES))
    def test_non_negative_and_bounded(self, name):
        params = DISEASES[name]
        result = simulate(_mixed_weather(params.duration), params)
        for arr in (result.sites, result.latent, result.infectious,
                    result.removed, result.senesced):
            assert np.all(arr >= 0.0)
        occupied = result.sites + result.latent + result.infectious + result.removed
        assert np.all(occupied <= params.max_sites * (1.0 + 1e-12))

    @pytest.mark.parametrize("name", sorted(DISEASES))
    def test_diseased_is_sum_of_compartments(self, name):
        params = DISEASES[name]
        result = simulate(_mixed_weather(params.duration), params)
        np.testing.assert_allclose(
            result.diseased,
            result.latent + result.infectious + result.removed,
        )

    @pytest.mark.parametrize("name", sorted(DISEASES))
    def test_severity_is_percentage(self, name):
        params = DISEASES[name]
        result = simulate(_mixed_weather(params.duration), params)
        assert np.all(result.severity >= 0.0)
        assert np.all(result.severity <= 100.0 + 1e-9)

    @pytest.mark.parametrize("name", sorted(DISEASES))
    def test_cumulative_removed_non_decreasing(self, name):
        params = DISEASES[name]
        result = simulate(_mixed_weather(params.duration), params)
        assert np.all(np.diff(result.removed) >= 0.0)

    def test_result_length_and_alignment(self, wet_optimum_run):
        params, result = wet_optimum_run
        assert len(result) == params.duration + 1
        assert result.duration == params.duration
        np.testing.assert_array_equal(result.simday, np.arange(121))
        # Day 0 is emergence, the eve of the first weather row
        assert result.dates[0] == np.datetime64(START) - 1
        assert result.dates[1] == np.datetime64(START)
        assert result.dates[-1] == np.datetime64(START) + 119

    def test_day_t_reads_weather_row_t_minus_one(self):
        params = _brown_spot(onset=0)
        rh = np.full(120, 95.0)
        rh[9] = 50.0
        weather = make_weather_series(START, 120, mean_temp=25.0,
                                      rhum_series=rh)
        result = simulate(weather, params)
        np.testing.assert_array_equal(result.dates[1:], weather.dates)
        assert result.rh_multiplier[10] == 0.0
        assert result.rh_multiplier[9] == 1.0
        assert result.rh_multiplier[11] == 1.0


# ═══════════════════════════════════════════════════════════════════════
# COHORT AGING
# ═══════════════════════════════════════════════════════════════════════

class TestCohortAging:
    def test_single_cohort_passes_through_stages(self):
        """Dry season: only the inoculum moves E → I → R."""
        params = _brown_spot(onset=0)
        result = simulate(_weather(120, rhum=50.0), params)
        p, i = params.latent_period, params.infectious_period
        assert np.count_nonzero(result.latent) == p
        assert np.count_nonzero(result.infectious) == i
        assert result.latent[p - 1] == params.initial_infection
        assert result.infectious[p] == params.initial_infection
        assert result.infectious[p + i - 1] == params.initial_infection
        assert result.removed[p + i - 1] == 0.0
        assert result.removed[p + i] == params.initial_infection
        assert result.removed[-1] == params.initial_infection

    def test_rolling_window_length(self):
        params = _brown_spot(onset=0, removal_mode="rolling", removal_period=10)
        result = simulate(_weather(120, rhum=50.0), params)
        p, i = params.latent_period, params.infectious_period
        removed_days = np.flatnonzero(result.removed > 0)
        assert len(removed_days) == params.removal_period
        assert removed_days[0] == p + i
        assert removed_days[-1] == p + i + params.removal_period - 1

    def test_new_infections_cannot_leave_same_day(self, wet_optimum_run):
        params, result = wet_optimum_run
        p = params.latent_period
        cohorts = result.rateinf + result.inoculum
        # The latent pool always contains today's cohort
        assert np.all(result.latent >= cohorts - 1e-9)
        # Each cohort turns infectious exactly latent_period days later
        np.testing.assert_allclose(result.rtransfer[p:], cohorts[:-p])
        assert np.all(result.rtransfer[:p] == 0.0)

    def test_inoculum_on_onset_day(self):
        params = _brown_spot()
        result = simulate(_weather(params.duration), params)
        onset = params.onset
        assert np.all(result.diseased[:onset] == 0.0)
        assert result.inoculum[onset] == params.initial_infection
        assert np.count_nonzero(result.inoculum) == 1
        assert result.latent[onset] >= params.initial_infection


# ═══════════════════════════════════════════════════════════════════════
# WEATHER RESPONSE
# ═══════════════════════════════════════════════════════════════════════

class TestWeatherResponse:
    def test_rh_equal_to_rhlim_activates(self):
        params = _brown_spot(onset=0)
        result = simulate(_weather(120, rhum=params.rhlim), params)
        assert np.all(result.rh_multiplier[1:] == 1.0)
        assert result.rateinf.sum() > 0.0

    def test_rain_activates_dry_air(self):
        params = _brown_spot(onset=0)
        result = simulate(_weather(120, rhum=60.0, rain=params.rainlim), params)
        assert np.all(result.rh_multiplier[1:] == 1.0)

    def test_dry_days_stay_dry_with_small_rainlim(self):
        params = _brown_spot(onset=0, rainlim=0.1)
        result = simulate(_weather(120, rhum=50.0, rain=0.0), params)
        assert np.all(result.rateinf == 0.0)

    def test_zero_rainlim_rejected(self):
        with pytest.raises(InvalidParameterError, match="rainlim"):
            _brown_spot(onset=0, rainlim=0.0)

    def test_day_zero_reads_no_weather(self, wet_optimum_run):
        _, result = wet_optimum_run
        assert result.multipliers(0) == DayMultipliers(
            temperature=0.0, humidity=0.0, age=0.0, rc=0.0)
        assert result.rateinf[0] == 0.0
        assert result.rgrowth[0] == 0.0

    def test_multipliers_recorded(self, wet_optimum_run):
        params, result = wet_optimum_run
        m = result.multipliers(40)
        assert m.temperature == pytest.approx(1.0)
        assert m.humidity == 1.0
        assert m.rc == pytest.approx(params.rc_opt * m.age)

    def test_dry_season_host_growth_only(self):
        params = _brown_spot(onset=0)
        result = simulate(_weather(120, rhum=params.rhlim - 0.5), params)
        assert np.all(result.rateinf == 0.0)
        assert np.all(result.rh_multiplier == 0.0)
        assert np.all(result.diseased <= params.initial_infection)
        assert result.sites[-1] > result.sites[0]

    def test_cold_season_no_infection(self):
        params = _brown_spot(onset=0)
        result = simulate(_weather(120, temp=10.0), params)
        assert np.all(result.temp_multiplier == 0.0)
        assert np.all(result.rateinf == 0.0)


# ═══════════════════════════════════════════════════════════════════════
# SCENARIOS
# ═══════════════════════════════════════════════════════════════════════

class TestScenarios:
    def test_infectious_before_latent_period_plus_one(self, wet_optimum_run):
        params, result = wet_optimum_run
        first = int(np.flatnonzero(result.infectious > 0)[0])
        assert first < params.latent_period + 1
        assert np.all(result.infectious[:first] == 0.0)

    def test_disease_keeps_growing(self, wet_optimum_run):
        _, result = wet_optimum_run
        assert result.diseased[120] > result.diseased[60]

    @pytest.mark.parametrize("name", ["bacterial_blight", "brown_spot",
                                      "sheath_blight"])
    def test_favourable_weather_beats_dry_weather(self, name):
        params = get_disease_parameters(name, onset=0)
        t_opt = optimum_temperature(as_table(params.temperature_response))
        wet = simulate(_weather(params.duration, temp=t_opt, rhum=95.0), params)
        dry = simulate(_weather(params.duration, temp=t_opt, rhum=50.0), params)
        assert wet.diseased[-1] > dry.diseased[-1]
        assert wet.audpc() > dry.audpc()

    def test_deterministic(self):
        params = BROWN_SPOT
        weather = _mixed_weather(params.duration)
        a = simulate(weather, params)
        b = simulate(weather, params)
        for f in dataclasses.fields(SimulationResult):
            np.testing.assert_array_equal(getattr(a, f.name), getattr(b, f.name))


# ═══════════════════════════════════════════════════════════════════════
# BOUNDARIES & ERRORS
# ═══════════════════════════════════════════════════════════════════════

class TestBoundaries:
    def test_zero_duration(self):
        params = _brown_spot(duration=0, onset=0)
        result = simulate(_weather(1), params)
        assert len(result) == 1
        assert result.simday.tolist() == [0]
        assert result.latent[0] == params.initial_infection
        assert result.sites[0] == params.initial_healthy - params.initial_infection
        assert result.removed[0] == 0.0
        assert result.audpc() == 0.0
        assert result.dates[0] == np.datetime64(START) - 1

    def test_zero_duration_needs_no_weather(self):
        params = _brown_spot(duration=0, onset=0)
        result = simulate(_weather(0), params)
        assert len(result) == 1
        assert result.latent[0] == params.initial_infection
        assert np.isnat(result.dates[0])

    def test_duration_exceeds_weather(self):
        with pytest.raises(InputMismatchError):
            simulate(_weather(50), BROWN_SPOT)

    def test_runs_on_exactly_duration_rows(self):
        """A 120-day run reads rows for days 1..120 only."""
        result = simulate(_weather(120), BROWN_SPOT)
        assert len(result) == 121
        with pytest.raises(InputMismatchError, match="covers 119 days"):
            simulate(_weather(119), BROWN_SPOT)

    def test_extra_weather_ignored(self):
        result = simulate(_weather(300), BROWN_SPOT)
        assert len(result) == 121

    def test_date_gap(self):
        weather = _weather(120)
        dates = np.array(weather.dates)
        dates[60:] += 2
        gappy = WeatherRecord(dates=dates, doy=weather.doy, temp=weather.temp,
                              rhum=weather.rhum, rain=weather.rain,
                              lat=weather.lat, lon=weather.lon)
        with pytest.raises(InputMismatchError):
            simulate(gappy, BROWN_SPOT)

    def test_nan_temperature(self):
        weather = _weather(120)
        temp = np.array(weather.temp)
        temp[77] = np.nan
        bad = WeatherRecord(dates=weather.dates, doy=weather.doy, temp=temp,
                            rhum=weather.rhum, rain=weather.rain,
                            lat=weather.lat, lon=weather.lon)
        with pytest.raises(DataQualityError):
            simulate(bad, BROWN_SPOT)

    def test_invalid_parameters(self):
        params = dataclasses.replace(BROWN_SPOT, infectious_period=0)
        with pytest.raises(InvalidParameterError):
            simulate(_weather(120), params)


# ═══════════════════════════════════════════════════════════════════════
# RESULT API
# ═══════════════════════════════════════════════════════════════════════

class TestSimulationResult:
    def test_read_only(self, wet_optimum_run):
        _, result = wet_optimum_run
        with pytest.raises(ValueError):
            result.sites[0] = 0.0

    def test_inputs_untouched(self):
        weather = _mixed_weather(120)
        before = np.array(weather.temp)
        simulate(weather, BROWN_SPOT)
        np.testing.assert_array_equal(weather.temp, before)

    def test_states(self, wet_optimum_run):
        _, result = wet_optimum_run
        states = list(result.states())
        assert len(states) == len(result)
        assert isinstance(states[0], CompartmentState)
        s = result.state(30)
        assert s.day == 30
        assert s.healthy == result.sites[30]
        assert s.diseased == result.diseased[30]

    def test_to_dataframe(self, wet_optimum_run):
        _, result = wet_optimum_run
        df = result.to_dataframe()
        assert len(df) == 121
        for col in ("simday", "dates", "sites", "latent", "infectious",
                    "removed", "diseased", "severity", "rc", "lat", "lon"):
            assert col in df.columns
        assert pd.api.types.is_datetime64_any_dtype(df["dates"])
        assert df["dates"].iloc[1] == pd.Timestamp(START)

    def test_location_carried(self, wet_optimum_run):
        _, result = wet_optimum_run
        np.testing.assert_allclose(result.lat, 14.6774)
        np.testing.assert_allclose(result.lon, 121.25562)

    def test_compartment_series(self, wet_optimum_run):
        _, result = wet_optimum_run
        assert result.compartment(Compartment.H) is result.sites
        assert result.compartment(Compartment.I) is result.infectious
        np.testing.assert_array_equal(result.compartment(Compartment.D),
                                      result.diseased)

    def test_compartment_matrix_matches_states(self, wet_optimum_run):
        _, result = wet_optimum_run
        matrix = result.compartment_matrix()
        assert matrix.shape == (len(result), len(Compartment))
        np.testing.assert_array_equal(matrix[45], result.state(45).as_array())
        np.testing.assert_allclose(
            matrix[:, Compartment.H] + matrix[:, Compartment.D],
            [s.total_sites for s in result.states()],
        )

    def test_favourable_days(self, wet_optimum_run):
        params, result = wet_optimum_run
        # Every weather-driven day is at the optimum and wet; day 0 reads none
        assert result.favourable_days() == params.duration

    def test_no_favourable_days_when_dry(self):
        result = simulate(_weather(120, rhum=50.0), _brown_spot(onset=0))
        assert result.favourable_days() == 0
