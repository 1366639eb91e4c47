"""App settings (generation connection, rate limit, extraction toggles, display).

Settings are stored as ``config.json`` in the data directory and always read
as defaults merged with whatever is stored, so new keys appear without a
migration. Nested sections merge key by key; scalars are overwritten.
"""

from __future__ import annotations

import copy
from typing import Any, Literal

from pydantic import BaseModel, Field

from .llm import HttpGenerator, RateLimitedGenerator
from .rate_limiter import RateLimiter

TRACK_CATEGORIES = (
    "time",
    "location",
    "props",
    "climate",
    "characters",
    "relationships",
    "scene",
    "narrative",
    "chapters",
)

# A category can only be tracked while everything it is derived from is tracked.
TRACK_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "climate": ("time", "location"),
    "props": ("location",),
    "relationships": ("characters",),
    "narrative": ("relationships", "scene"),
}

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connection": {
        "provider_url": "",
        "api_key": "",
        "provider_format": "openai",
        "model": "",
    },
    "max_requests_per_minute": 0,
    "max_tokens": 4096,
    "temperatures": {
        "time": 0.3,
        "location": 0.5,
        "props": 0.5,
        "climate": 0.3,
        "characters": 0.5,
        "relationships": 0.6,
        "scene": 0.5,
        "narrative": 0.6,
        "chapters": 0.5,
    },
    "track": {category: True for category in TRACK_CATEGORIES},
    "debug_logging": False,
    "temperature_unit": "fahrenheit",
    "time_format": "12h",
}


class LLMConnection(BaseModel):
    provider_url: str
    api_key: str
    provider_format: Literal["openai", "koboldcpp"]
    model: str


class AppConfig(BaseModel):
    """Shape check for a merged config; storage keeps plain dicts."""

    llm_connection: LLMConnection
    max_requests_per_minute: int
    max_tokens: int = Field(gt=0)
    temperatures: dict[str, float]
    track: dict[str, bool]
    debug_logging: bool
    temperature_unit: Literal["fahrenheit", "celsius"]
    time_format: Literal["12h", "24h"]


def default_config() -> dict[str, Any]:
    return copy.deepcopy(_CONFIG_DEFAULTS)


def apply_track_dependencies(track: dict[str, bool]) -> dict[str, bool]:
    """Switch off every category whose sources are switched off."""
    track = dict(track)
    changed = True
    while changed:
        changed = False
        for category, needs in TRACK_DEPENDENCIES.items():
            if track.get(category) and not all(track.get(n) for n in needs):
                track[category] = False
                changed = True
    return track


def merge_config(base: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Merge ``fields`` into a copy of ``base``. Unknown keys are dropped."""
    config = copy.deepcopy(base)
    for key, value in fields.items():
        if key not in _CONFIG_DEFAULTS:
            continue
        if isinstance(_CONFIG_DEFAULTS[key], dict):
            if isinstance(value, dict):
                config[key].update(value)
        else:
            config[key] = value
    config["track"] = apply_track_dependencies(config["track"])
    AppConfig.model_validate(config)
    return config


def rate_limiter_from_config(config: dict[str, Any]) -> RateLimiter:
    return RateLimiter(config["max_requests_per_minute"])


def generator_from_config(
    config: dict[str, Any], limiter: RateLimiter | None = None
) -> RateLimitedGenerator:
    conn = config["llm_connection"]
    http = HttpGenerator(
        provider_url=conn["provider_url"],
        api_key=conn["api_key"],
        provider_format=conn["provider_format"],
        model=conn["model"],
    )
    return RateLimitedGenerator(http, limiter or rate_limiter_from_config(config))
