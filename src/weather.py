# src/weather.py
"""
Atmospheric conditions at the observer, used for rain fade.

Readings come from a source callable (simulated or Open-Meteo) and are
cached for WEATHER_TTL_SECONDS.
"""

import logging
import time
from dataclasses import dataclass

import numpy as np
import requests

import config
from terminal_log import tagged

log = tagged(logging.getLogger(__name__), "WEATHER")
err = tagged(logging.getLogger(__name__), "ERROR")


@dataclass
class WeatherState:
    cloud_cover: float  # %
    precipitation_mm_h: float
    humidity: float  # %
    temperature_c: float


CLEAR_SKY = WeatherState(cloud_cover=0.0, precipitation_mm_h=0.0, humidity=70.0, temperature_c=25.0)


def simulated_weather(rng=None):
    rng = rng if rng is not None else np.random.default_rng()
    return WeatherState(
        cloud_cover=float(rng.uniform(0, 100)),
        precipitation_mm_h=float(rng.uniform(0, 10)),
        humidity=float(60 + rng.uniform(0, 30)),
        temperature_c=float(20 + rng.uniform(0, 15)),
    )


def open_meteo_weather(lat, lon, url=config.OPEN_METEO_URL):
    resp = requests.get(url, params={
        "latitude": lat,
        "longitude": lon,
        "current": "temperature_2m,relative_humidity_2m,precipitation,cloud_cover",
    }, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()

    current = resp.json()["current"]
    return WeatherState(
        cloud_cover=float(current["cloud_cover"]),
        precipitation_mm_h=float(current["precipitation"]),
        humidity=float(current["relative_humidity_2m"]),
        temperature_c=float(current["temperature_2m"]),
    )


class WeatherProvider:
    def __init__(self, source=None, ttl_seconds=config.WEATHER_TTL_SECONDS, clock=time.monotonic):
        self.source = source if source is not None else simulated_weather
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._state = None
        self._fetched_at = None

    def invalidate(self):
        self._fetched_at = None

    def current(self):
        now = self.clock()
        if self._state is not None and self._fetched_at is not None \
                and now - self._fetched_at < self.ttl_seconds:
            return self._state

        log.info("Fetching atmospheric data...")
        try:
            self._state = self.source()
        except (requests.RequestException, KeyError, ValueError) as e:
            err.error(f"Weather fetch failed: {e}")
            self._state = CLEAR_SKY
        self._fetched_at = now
        return self._state


def provider_for(observer, source_name=config.WEATHER_SOURCE):
    """Weather provider for an observer according to the configured source."""
    if source_name == "open-meteo":
        return WeatherProvider(lambda: open_meteo_weather(observer.lat, observer.lon))
    return WeatherProvider()
