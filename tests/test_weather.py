"""Tests for weather readings and their cache."""

import numpy as np
import pytest
import requests

import weather
from propagate_positions import Observer
from weather import CLEAR_SKY, WeatherProvider, WeatherState, open_meteo_weather, provider_for, simulated_weather


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code != 200:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        return self.payload


def test_simulated_ranges():
    w = simulated_weather(np.random.default_rng(1))
    assert 0 <= w.cloud_cover <= 100
    assert 0 <= w.precipitation_mm_h <= 10
    assert 60 <= w.humidity <= 90
    assert 20 <= w.temperature_c <= 35


class TestWeatherProvider:

    def test_cached_within_ttl(self):
        calls = []
        clock = FakeClock()

        def source():
            calls.append(clock.now)
            return WeatherState(10, float(len(calls)), 70, 22)

        provider = WeatherProvider(source, ttl_seconds=1800, clock=clock)
        assert provider.current().precipitation_mm_h == 1.0
        clock.now = 1799
        assert provider.current().precipitation_mm_h == 1.0
        clock.now = 1800
        assert provider.current().precipitation_mm_h == 2.0
        assert calls == [0.0, 1800]

    def test_invalidate(self):
        counter = iter(range(10))
        provider = WeatherProvider(lambda: WeatherState(0, next(counter), 70, 20), clock=FakeClock())
        first = provider.current()
        provider.invalidate()
        assert provider.current().precipitation_mm_h == first.precipitation_mm_h + 1

    def test_falls_back_to_clear_sky(self):
        def broken():
            raise requests.ConnectionError("offline")

        provider = WeatherProvider(broken, clock=FakeClock())
        assert provider.current() == CLEAR_SKY

    def test_default_source_is_simulated(self):
        w = WeatherProvider(clock=FakeClock()).current()
        assert 0 <= w.precipitation_mm_h <= 10


class TestOpenMeteo:

    def test_parses_current(self, monkeypatch):
        seen = {}

        def fake_get(url, params=None, timeout=None):
            seen.update(params)
            return FakeResponse({"current": {
                "temperature_2m": 18.5,
                "relative_humidity_2m": 81,
                "precipitation": 2.4,
                "cloud_cover": 90,
            }})

        monkeypatch.setattr(weather.requests, "get", fake_get)
        w = open_meteo_weather(-27.5, -48.6)
        assert w == WeatherState(90.0, 2.4, 81.0, 18.5)
        assert seen["latitude"] == -27.5
        assert "precipitation" in seen["current"]

    def test_http_error_handled_by_provider(self, monkeypatch):
        monkeypatch.setattr(weather.requests, "get", lambda *a, **kw: FakeResponse({}, 503))
        provider = WeatherProvider(lambda: open_meteo_weather(0, 0), clock=FakeClock())
        assert provider.current() == CLEAR_SKY

    def test_missing_field_handled_by_provider(self, monkeypatch):
        monkeypatch.setattr(weather.requests, "get", lambda *a, **kw: FakeResponse({"hourly": {}}))
        provider = WeatherProvider(lambda: open_meteo_weather(0, 0), clock=FakeClock())
        assert provider.current() == CLEAR_SKY


def test_provider_for(monkeypatch):
    monkeypatch.setattr(weather.requests, "get", lambda *a, **kw: FakeResponse({"current": {
        "temperature_2m": 10, "relative_humidity_2m": 50, "precipitation": 7.0, "cloud_cover": 100,
    }}))
    obs = Observer(1.0, 2.0)
    assert provider_for(obs, "open-meteo").current().precipitation_mm_h == pytest.approx(7.0)
    assert provider_for(obs, "simulated").source is simulated_weather
