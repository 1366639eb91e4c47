"""Climate at the current place and moment, derived from forecast tables.

Climate is never stored as an event. It is recomputed from the forecast for
the current area, the narrative time and the kind of place the characters
are in. Missing data never raises: without a time, an area, or a forecast
covering the moment, the result is ``Climate.unknown()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from .common import LocationType
from .forecast import (
    LocationForecast,
    WeatherCondition,
    calculate_feels_like,
    derive_condition,
    describe_condition,
    lookup_weather,
)

if TYPE_CHECKING:
    from .snapshot import LocationState

DaylightPhase = Literal["dawn", "day", "dusk", "night"]

BuildingType = Literal["modern", "heated", "unheated", "underground", "tent", "vehicle"]

_COMPASS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


class Climate(BaseModel):
    known: bool = False
    temperature: int | None = None  # what the characters actually feel, indoors or out
    outdoor_temperature: float | None = None
    indoor_temperature: float | None = None
    feels_like: float | None = None
    humidity: float | None = None
    precipitation: float | None = None
    cloud_cover: float | None = None
    wind_speed: float | None = None
    wind_direction: str | None = None
    condition: WeatherCondition | None = None
    conditions: str | None = None
    uv_index: float | None = None
    daylight: DaylightPhase | None = None
    is_indoors: bool | None = None
    building_type: BuildingType | None = None

    @classmethod
    def unknown(cls) -> Climate:
        return cls()


def compass_direction(degrees: float) -> str:
    return _COMPASS[int(round(degrees / 45)) % 8]


def daylight_phase(hour: float, sunrise: float, sunset: float) -> DaylightPhase:
    if hour < sunrise - 1:
        return "night"
    if hour < sunrise + 1:
        return "dawn"
    if hour < sunset - 1:
        return "day"
    if hour < sunset + 1:
        return "dusk"
    return "night"


def indoor_temperature(outdoor: float, building: BuildingType, hour: int) -> float:
    """Temperature inside a building of the given type."""
    if building == "modern":
        # HVAC holds 65-75 and only drifts in extremes
        if outdoor > 95:
            return 75 + (outdoor - 95) * 0.1
        if outdoor < 14:
            return 65 - (14 - outdoor) * 0.05
        return 70.0
    if building == "heated":
        # Hearth burns down overnight
        target = 65 if 6 <= hour <= 22 else 57
        return target + (outdoor - target) * 0.3
    if building == "unheated":
        shelter = 5 if outdoor < 50 else -4 if outdoor > 77 else 0
        return outdoor * 0.7 + 70 * 0.3 + shelter
    if building == "underground":
        return 55.0
    if building == "tent":
        return outdoor + (9 if 10 <= hour <= 16 else 2)
    if building == "vehicle":
        return outdoor + (15 if 10 <= hour <= 16 else 4)
    return outdoor


def effective_temperature(
    outdoor: float, location_type: LocationType | None, hour: int
) -> tuple[float, float | None, BuildingType | None]:
    """(effective, indoor, building) for a place. Unknown type counts as outdoors."""
    if location_type is None or location_type == "outdoor":
        return outdoor, None, None
    indoor = indoor_temperature(outdoor, location_type, hour)
    return indoor, indoor, location_type


def compute_climate(
    forecasts: dict[str, LocationForecast],
    time: datetime | None,
    location: LocationState,
) -> Climate:
    if time is None or not location.area:
        return Climate.unknown()
    forecast = forecasts.get(location.area)
    if forecast is None:
        return Climate.unknown()
    found = lookup_weather(forecast, time)
    if found is None:
        return Climate.unknown()

    hourly, daily = found
    effective, indoor, building = effective_temperature(
        hourly.temperature, location.location_type, time.hour
    )
    condition = derive_condition(hourly)
    return Climate(
        known=True,
        temperature=round(effective),
        outdoor_temperature=hourly.temperature,
        indoor_temperature=round(indoor, 1) if indoor is not None else None,
        feels_like=calculate_feels_like(hourly.temperature, hourly.humidity, hourly.wind_speed),
        humidity=hourly.humidity,
        precipitation=hourly.precipitation,
        cloud_cover=hourly.cloud_cover,
        wind_speed=hourly.wind_speed,
        wind_direction=compass_direction(hourly.wind_direction),
        condition=condition,
        conditions=describe_condition(condition),
        uv_index=hourly.uv_index,
        daylight=daylight_phase(time.hour + time.minute / 60, daily.sunrise, daily.sunset),
        is_indoors=building is not None,
        building_type=building,
    )
