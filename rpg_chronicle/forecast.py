"""Forecast tables and the forecast oracle.

A forecast is a 28-day, hour-resolution synthetic weather table for one area.
Once a forecast is in the log, climate at any narrative moment is a plain
table lookup. A new table is only needed when the narrative enters an area
with no forecast, or when the current one is about to run out:

    needs_new_forecast(forecasts, area, t)
        no forecast for area            -> True
        t outside [start, start + 28d)  -> True
        fewer than 8 days remaining     -> True

Generation is procedural and seeded from the area name and start date, so
regenerating a table for the same inputs always yields the same weather.
All temperatures are Fahrenheit, wind in mph, precipitation in inches.
"""

from __future__ import annotations

import logging
import math
import random
from datetime import date, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

FORECAST_DAYS = 28
MIN_FORECAST_DAYS = 8

WeatherCondition = Literal[
    "clear",
    "partly_cloudy",
    "overcast",
    "foggy",
    "drizzle",
    "rain",
    "heavy_rain",
    "thunderstorm",
    "sleet",
    "snow",
    "heavy_snow",
    "blizzard",
    "windy",
]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class HourlyWeather(BaseModel):
    model_config = ConfigDict(frozen=True)

    hour: int = Field(ge=0, le=23)
    temperature: float
    feels_like: float
    humidity: float = Field(ge=0, le=100)
    precipitation: float = Field(ge=0)
    precip_probability: float = Field(ge=0, le=100)
    cloud_cover: float = Field(ge=0, le=100)
    wind_speed: float = Field(ge=0)
    wind_direction: float = Field(ge=0, lt=360)  # degrees
    uv_index: float = Field(ge=0)


class DailyForecast(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    high: float
    low: float
    sunrise: float  # decimal hour, e.g. 6.5 = 06:30
    sunset: float
    hourly: list[HourlyWeather] = Field(min_length=24, max_length=24)
    dominant_condition: WeatherCondition

    @model_validator(mode="after")
    def _hours_in_order(self) -> DailyForecast:
        for expected, sample in enumerate(self.hourly):
            if sample.hour != expected:
                raise ValueError(f"{self.date}: hourly[{expected}] is hour {sample.hour}")
        return self


class LocationForecast(BaseModel):
    """Exactly 28 consecutive days of weather for one area."""

    model_config = ConfigDict(frozen=True)

    location_id: str
    start_date: date
    days: list[DailyForecast] = Field(min_length=FORECAST_DAYS, max_length=FORECAST_DAYS)

    @model_validator(mode="after")
    def _consecutive_days(self) -> LocationForecast:
        for offset, day in enumerate(self.days):
            expected = self.start_date + timedelta(days=offset)
            if day.date != expected:
                raise ValueError(f"days[{offset}] is {day.date}, expected {expected}")
        return self


class ClimateNormals(BaseModel):
    """Typical monthly conditions an area's forecast is generated around."""

    avg_high: float = 60.0
    avg_low: float = 44.0
    avg_humidity: float = 65.0
    avg_cloud_cover: float = 45.0
    avg_wind_speed: float = 8.0
    precip_days: float = 9.0  # wet days per 30
    avg_precipitation: float = 0.25  # inches on a wet day
    sunrise: float = 6.5
    sunset: float = 18.5


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------

def day_index(forecast: LocationForecast, t: datetime) -> int:
    """Calendar days between the forecast start and ``t`` (negative before start)."""
    return (t.date() - forecast.start_date).days


def get_days_remaining_in_forecast(forecast: LocationForecast, t: datetime) -> int:
    """Days left including the current one; 0 when ``t`` is outside the table."""
    idx = day_index(forecast, t)
    if idx < 0 or idx >= len(forecast.days):
        return 0
    return len(forecast.days) - idx


def is_time_within_forecast(forecast: LocationForecast, t: datetime) -> bool:
    return get_days_remaining_in_forecast(forecast, t) > 0


def needs_new_forecast(
    forecasts: dict[str, LocationForecast], area: str, t: datetime
) -> bool:
    forecast = forecasts.get(area)
    if forecast is None:
        return True
    return get_days_remaining_in_forecast(forecast, t) < MIN_FORECAST_DAYS


def lookup_weather(
    forecast: LocationForecast, t: datetime
) -> tuple[HourlyWeather, DailyForecast] | None:
    """The hourly sample and its day covering ``t``, or None outside the table."""
    idx = day_index(forecast, t)
    if idx < 0 or idx >= len(forecast.days):
        return None
    day = forecast.days[idx]
    return day.hourly[t.hour], day


# ---------------------------------------------------------------------------
# Weather derivation
# ---------------------------------------------------------------------------

def derive_condition(hourly: HourlyWeather) -> WeatherCondition:
    temp = hourly.temperature
    precip = hourly.precipitation
    wet = precip > 0 or (hourly.precip_probability >= 70 and hourly.cloud_cover >= 80)

    if wet:
        if temp <= 32:
            if hourly.wind_speed >= 35:
                return "blizzard"
            return "heavy_snow" if precip >= 0.1 else "snow"
        if temp <= 35:
            return "sleet"
        if precip >= 0.3:
            return "thunderstorm" if hourly.wind_speed >= 25 else "heavy_rain"
        if precip >= 0.1:
            return "rain"
        return "drizzle"
    if hourly.humidity >= 95 and hourly.wind_speed < 5 and hourly.cloud_cover >= 80:
        return "foggy"
    if hourly.wind_speed >= 25:
        return "windy"
    if hourly.cloud_cover >= 85:
        return "overcast"
    if hourly.cloud_cover >= 40:
        return "partly_cloudy"
    return "clear"


_CONDITION_TEXT: dict[str, str] = {
    "clear": "Clear skies",
    "partly_cloudy": "Partly cloudy",
    "overcast": "Overcast",
    "foggy": "Foggy",
    "drizzle": "Light drizzle",
    "rain": "Rain",
    "heavy_rain": "Heavy rain",
    "thunderstorm": "Thunderstorms",
    "sleet": "Sleet",
    "snow": "Snow",
    "heavy_snow": "Heavy snow",
    "blizzard": "Blizzard",
    "windy": "Windy",
}


def describe_condition(condition: WeatherCondition) -> str:
    return _CONDITION_TEXT[condition]


def calculate_feels_like(temperature: float, humidity: float, wind_speed: float) -> float:
    """NWS wind chill below 50F with wind, heat index above 80F, else the air temperature."""
    t = temperature
    if t <= 50 and wind_speed > 3:
        v = wind_speed ** 0.16
        return round(35.74 + 0.6215 * t - 35.75 * v + 0.4275 * t * v)
    if t >= 80 and humidity >= 40:
        rh = humidity
        hi = (
            -42.379
            + 2.04901523 * t
            + 10.14333127 * rh
            - 0.22475541 * t * rh
            - 0.00683783 * t * t
            - 0.05481717 * rh * rh
            + 0.00122874 * t * t * rh
            + 0.00085282 * t * rh * rh
            - 0.00000199 * t * t * rh * rh
        )
        return round(hi)
    return round(t)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def forecast_seed(area: str, start: date) -> str:
    return f"{area}-{start.year}-{start.month}-{start.day}"


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _generate_day(
    rng: random.Random, day: date, normals: ClimateNormals, anomaly: float, wet: bool
) -> DailyForecast:
    high = round(normals.avg_high + anomaly + rng.gauss(0, 2), 1)
    low = round(min(normals.avg_low + anomaly + rng.gauss(0, 2), high - 2), 1)
    wind_base = max(0.0, normals.avg_wind_speed + rng.gauss(0, 3))
    wind_dir = rng.uniform(0, 360)
    cloud_base = 80.0 if wet else normals.avg_cloud_cover
    daylight = normals.sunset - normals.sunrise

    hourly: list[HourlyWeather] = []
    for hour in range(24):
        # Coolest around 03:00, warmest around 15:00
        frac = (math.cos((hour - 15) / 24 * 2 * math.pi) + 1) / 2
        temp = round(low + (high - low) * frac, 1)
        cloud = _clamp(cloud_base + rng.gauss(0, 12), 0, 100)
        humidity = _clamp(normals.avg_humidity + (15 if wet else 0) - (frac - 0.5) * 20, 0, 100)
        if wet and rng.random() < 0.35:
            precip = round(rng.uniform(0.01, max(0.02, normals.avg_precipitation * 0.6)), 2)
        else:
            precip = 0.0
        probability = rng.uniform(50, 90) if wet else rng.uniform(0, 20)
        wind = round(max(0.0, wind_base + rng.gauss(0, 2)), 1)
        wind_dir = (wind_dir + rng.gauss(0, 10)) % 360
        if normals.sunrise <= hour <= normals.sunset and daylight > 0:
            sun = math.sin(math.pi * (hour - normals.sunrise) / daylight)
            uv = round(max(0.0, 8 * sun * (1 - 0.7 * cloud / 100)), 1)
        else:
            uv = 0.0
        hourly.append(HourlyWeather(
            hour=hour,
            temperature=temp,
            feels_like=calculate_feels_like(temp, humidity, wind),
            humidity=round(humidity),
            precipitation=precip,
            precip_probability=round(probability),
            cloud_cover=round(cloud),
            wind_speed=wind,
            wind_direction=round(wind_dir, 1) % 360,
            uv_index=uv,
        ))

    conditions = [derive_condition(h) for h in hourly[6:22]]
    dominant = max(set(conditions), key=lambda c: (conditions.count(c), c))
    return DailyForecast(
        date=day,
        high=high,
        low=low,
        sunrise=normals.sunrise,
        sunset=normals.sunset,
        hourly=hourly,
        dominant_condition=dominant,
    )


def generate_forecast(
    area: str, start: date, normals: ClimateNormals | None = None
) -> LocationForecast:
    """Build a deterministic 28-day forecast for ``area`` beginning on ``start``."""
    normals = normals or ClimateNormals()
    rng = random.Random(forecast_seed(area, start))
    wet_chance = _clamp(normals.precip_days / 30, 0, 1)

    out: list[DailyForecast] = []
    anomaly = 0.0
    wet = False
    for offset in range(FORECAST_DAYS):
        anomaly = anomaly * 0.6 + rng.gauss(0, 4)
        chance = min(0.9, wet_chance + 0.2) if wet else wet_chance
        wet = rng.random() < chance
        out.append(_generate_day(rng, start + timedelta(days=offset), normals, anomaly, wet))

    logger.debug("generated forecast area=%s start=%s", area, start)
    return LocationForecast(location_id=area, start_date=start, days=out)


def extend_forecast(
    existing: LocationForecast | None,
    area: str,
    t: datetime,
    normals: ClimateNormals | None = None,
) -> LocationForecast:
    """A fresh 28-day forecast starting on ``t``'s date.

    Up to ``MIN_FORECAST_DAYS`` still-valid days of ``existing`` are kept so
    weather the story has already seen does not change under it; the
    remainder is generated from the day after the last kept one.
    """
    start = t.date()
    if existing is None or not is_time_within_forecast(existing, t):
        return generate_forecast(area, start, normals)

    idx = day_index(existing, t)
    kept = existing.days[idx:idx + MIN_FORECAST_DAYS]
    fresh = generate_forecast(area, kept[-1].date + timedelta(days=1), normals)
    days = kept + fresh.days[:FORECAST_DAYS - len(kept)]
    return LocationForecast(location_id=area, start_date=start, days=days)
