# src/footprint.py
"""Satellite footprints: the ground area that sees a satellite above a minimum elevation."""

import numpy as np

import config


def footprint_half_angle(alt_km, elev_min_deg, earth_radius=config.EARTH_RADIUS_KM):
    """Earth central angle (rad) from sub-point to footprint edge."""
    e = np.radians(elev_min_deg)
    return np.arccos(earth_radius / (earth_radius + alt_km) * np.cos(e)) - e


def footprint_radius_km(alt_km, elev_min_deg, earth_radius=config.EARTH_RADIUS_KM):
    return earth_radius * footprint_half_angle(alt_km, elev_min_deg, earth_radius)


def footprint_polygon(lat, lon, alt_km, elev_min_deg, points=64):
    """Ring of (lat, lon) points around the sub-point, longitudes in [-180, 180]."""
    alpha = footprint_half_angle(alt_km, elev_min_deg)

    lat_r = np.radians(lat)
    lon_r = np.radians(lon)
    bearings = np.radians(np.arange(points) * 360.0 / points)

    new_lat = np.arcsin(
        np.sin(lat_r) * np.cos(alpha) +
        np.cos(lat_r) * np.sin(alpha) * np.cos(bearings)
    )
    new_lon = lon_r + np.arctan2(
        np.sin(bearings) * np.sin(alpha) * np.cos(lat_r),
        np.cos(alpha) - np.sin(lat_r) * np.sin(new_lat)
    )

    lons = (np.degrees(new_lon) + 180) % 360 - 180
    return list(zip(np.degrees(new_lat), lons))
