"""Tests for rpg_chronicle.climate."""

from datetime import date, datetime

import pytest

from rpg_chronicle.climate import (
    Climate,
    compass_direction,
    compute_climate,
    daylight_phase,
    effective_temperature,
    indoor_temperature,
)
from rpg_chronicle.forecast import generate_forecast
from rpg_chronicle.snapshot import LocationState


@pytest.fixture
def forecasts():
    return {"Ravenford": generate_forecast("Ravenford", date(2024, 1, 1))}


def test_unknown_without_time(forecasts):
    assert compute_climate(forecasts, None, LocationState(area="Ravenford")) == Climate.unknown()


def test_unknown_without_area(forecasts):
    assert compute_climate(forecasts, datetime(2024, 1, 2), LocationState()).known is False


def test_unknown_without_forecast_for_area(forecasts):
    climate = compute_climate(forecasts, datetime(2024, 1, 2), LocationState(area="Elsewhere"))
    assert climate.known is False
    assert climate.temperature is None


def test_unknown_outside_forecast(forecasts):
    climate = compute_climate(forecasts, datetime(2024, 3, 2), LocationState(area="Ravenford"))
    assert climate.known is False


def test_outdoor_reading_matches_table(forecasts):
    t = datetime(2024, 1, 5, 14, 20)
    climate = compute_climate(forecasts, t, LocationState(area="Ravenford"))
    sample = forecasts["Ravenford"].days[4].hourly[14]
    assert climate.known is True
    assert climate.outdoor_temperature == sample.temperature
    assert climate.temperature == round(sample.temperature)
    assert climate.is_indoors is False
    assert climate.indoor_temperature is None
    assert climate.wind_direction == compass_direction(sample.wind_direction)


def test_indoor_reading_uses_building(forecasts):
    t = datetime(2024, 1, 5, 14)
    climate = compute_climate(
        forecasts, t, LocationState(area="Ravenford", location_type="underground")
    )
    assert climate.is_indoors is True
    assert climate.building_type == "underground"
    assert climate.temperature == 55


class TestIndoorTemperature:
    def test_modern_holds_steady(self) -> None:
        assert indoor_temperature(40, "modern", 12) == 70
        assert indoor_temperature(105, "modern", 12) == pytest.approx(76)
        assert indoor_temperature(4, "modern", 12) == pytest.approx(64.5)

    def test_heated_day_and_night(self) -> None:
        assert indoor_temperature(35, "heated", 12) == pytest.approx(65 + (35 - 65) * 0.3)
        assert indoor_temperature(35, "heated", 3) == pytest.approx(57 + (35 - 57) * 0.3)

    def test_unheated_shelter(self) -> None:
        assert indoor_temperature(40, "unheated", 12) == pytest.approx(40 * 0.7 + 21 + 5)
        assert indoor_temperature(60, "unheated", 12) == pytest.approx(60 * 0.7 + 21)
        assert indoor_temperature(90, "unheated", 12) == pytest.approx(90 * 0.7 + 21 - 4)

    def test_underground_constant(self) -> None:
        assert indoor_temperature(-10, "underground", 0) == 55
        assert indoor_temperature(100, "underground", 13) == 55

    def test_tent_and_vehicle_midday_gain(self) -> None:
        assert indoor_temperature(50, "tent", 12) == 59
        assert indoor_temperature(50, "tent", 20) == 52
        assert indoor_temperature(50, "vehicle", 10) == 65
        assert indoor_temperature(50, "vehicle", 17) == 54

    def test_outdoor_type_is_outdoor_temperature(self) -> None:
        assert effective_temperature(48.5, "outdoor", 12) == (48.5, None, None)
        assert effective_temperature(48.5, None, 12) == (48.5, None, None)


def test_daylight_phases():
    assert daylight_phase(3, 6.5, 18.5) == "night"
    assert daylight_phase(6.0, 6.5, 18.5) == "dawn"
    assert daylight_phase(12, 6.5, 18.5) == "day"
    assert daylight_phase(18.0, 6.5, 18.5) == "dusk"
    assert daylight_phase(21, 6.5, 18.5) == "night"


def test_compass_direction():
    assert compass_direction(0) == "N"
    assert compass_direction(44) == "NE"
    assert compass_direction(180) == "S"
    assert compass_direction(350) == "N"
