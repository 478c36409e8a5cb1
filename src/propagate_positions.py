# src/propagate_positions.py
"""
Per-satellite orbital state: SGP4 propagation of a TLE with skyfield,
WGS84 sub-point, and look angles from a ground observer.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
import pandas as pd
from skyfield.api import EarthSatellite, Loader, wgs84

import config
from link_budget import doppler_shift_khz
from terminal_log import tagged

log = tagged(logging.getLogger(__name__), "CALC")

load = Loader(config.SKYFIELD_DATA_DIR, verbose=False)
ts = load.timescale()


@dataclass
class Observer:
    lat: float
    lon: float
    elev_min: float = config.DEFAULT_OBSERVER["elev_min"]
    height_m: float = 0.0

    def topos(self):
        return wgs84.latlon(self.lat, self.lon, elevation_m=self.height_m)


@dataclass
class SatState:
    lat: float
    lon: float
    alt_km: float
    az_deg: float
    el_deg: float
    range_km: float
    speed_km_s: float
    range_rate_km_s: float
    doppler_khz: float

    def is_visible(self, observer):
        return self.el_deg >= observer.elev_min


def _utc(when):
    if when is None:
        return datetime.now(timezone.utc)
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when


def _time_grid(start, step_minutes, periods):
    return pd.date_range(start=_utc(start), periods=periods, freq=pd.Timedelta(minutes=step_minutes))


def _propagated(geocentric):
    """True where SGP4 returned a finite position without an error message."""
    message = geocentric.message
    if isinstance(message, list):
        ok = np.array([m is None for m in message], dtype=bool)
    else:
        ok = message is None
    return ok & np.all(np.isfinite(geocentric.position.km), axis=0)


def build_satellites(records, timescale=ts):
    """One EarthSatellite per record, None where the TLE can't be used."""
    satellites = []
    for rec in records:
        if not rec.line1 or not rec.line2:
            satellites.append(None)
            continue
        try:
            satellites.append(EarthSatellite(rec.line1, rec.line2, rec.name, timescale))
        except (ValueError, IndexError) as e:
            log.warning(f"Bad TLE for {rec.name}: {e}")
            satellites.append(None)

    valid = sum(s is not None for s in satellites)
    log.info(f"{valid} valid orbits calculated")
    return satellites


def satellite_state(sat, observer, when=None, timescale=ts, frequency_hz=config.FREQ_DOWNLINK):
    """Propagate `sat` to `when` and look at it from `observer`.

    Returns None when there is no satellite or SGP4 fails (decayed orbit,
    epoch too far away).
    """
    if sat is None:
        return None

    t = timescale.from_datetime(_utc(when))
    geocentric = sat.at(t)
    if not _propagated(geocentric):
        return None

    lat, lon = wgs84.latlon_of(geocentric)
    alt = wgs84.height_of(geocentric).km
    speed = float(np.linalg.norm(geocentric.velocity.km_per_s))

    topos = observer.topos()
    topocentric = (sat - topos).at(t)
    el, az, distance = topocentric.altaz()
    range_rate = topocentric.frame_latlon_and_rates(topos)[5].km_per_s

    return SatState(
        lat=float(lat.degrees),
        lon=float(lon.degrees),
        alt_km=float(alt),
        az_deg=float(az.degrees),
        el_deg=float(el.degrees),
        range_km=float(distance.km),
        speed_km_s=speed,
        range_rate_km_s=float(range_rate),
        doppler_khz=doppler_shift_khz(float(range_rate), frequency_hz),
    )


def ground_track(sat, start=None, period_minutes=config.ORBIT_PERIOD_MINUTES,
                 steps=config.ORBIT_STEPS, timescale=ts):
    """Sub-points over the next orbit, for drawing the orbit path."""
    df = propagate_track([sat], start, step_minutes=period_minutes / steps, periods=steps,
                         timescale=timescale)
    return df.drop(columns='name')


def propagate_track(satellites, start=None, hours=24, step_minutes=10, timescale=ts, periods=None):
    """Long-form positions table for a set of satellites over a time span.

    Samples where SGP4 reports an error are dropped.
    """
    if periods is None:
        periods = int(hours * 60 // step_minutes) + 1
    times = _time_grid(start, step_minutes, periods)
    t = timescale.from_datetimes(list(times.to_pydatetime()))

    frames = []
    for sat in satellites:
        if sat is None:
            continue
        geocentric = sat.at(t)
        ok = _propagated(geocentric)
        lat, lon = wgs84.latlon_of(geocentric)
        frames.append(pd.DataFrame({
            'name': sat.name,
            'datetime_utc': times,
            'latitude_deg': lat.degrees,
            'longitude_deg': lon.degrees,
            'altitude_km': wgs84.height_of(geocentric).km,
        })[ok])

    columns = ['name', 'datetime_utc', 'latitude_deg', 'longitude_deg', 'altitude_km']
    if not frames:
        return pd.DataFrame(columns=columns)
    return pd.concat(frames, ignore_index=True)[columns]


def doppler_series(sat, observer, start=None, minutes=60, timescale=ts, frequency_hz=config.FREQ_DOWNLINK):
    """Downlink Doppler seen by `observer`, one sample per minute."""
    columns = ['minute', 'datetime_utc', 'el_deg', 'range_rate_km_s', 'doppler_khz']
    if sat is None:
        return pd.DataFrame(columns=columns)

    times = _time_grid(start, 1, minutes)
    t = timescale.from_datetimes(list(times.to_pydatetime()))
    ok = _propagated(sat.at(t))

    topos = observer.topos()
    topocentric = (sat - topos).at(t)
    el, _, _ = topocentric.altaz()
    range_rate = topocentric.frame_latlon_and_rates(topos)[5].km_per_s

    df = pd.DataFrame({
        'minute': np.arange(minutes),
        'datetime_utc': times,
        'el_deg': el.degrees,
        'range_rate_km_s': range_rate,
        'doppler_khz': doppler_shift_khz(range_rate, frequency_hz),
    })
    return df[ok].reset_index(drop=True)
