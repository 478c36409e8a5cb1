# src/link_budget.py
"""
Ku-band downlink budget for a Starlink user terminal.

Closed-form, pointwise: free-space path loss, a small atmospheric term,
ITU-R style rain attenuation, kTB noise. The resulting SNR drives the
adaptive modulation choice, BER and Shannon capacity estimates.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.special import erfc

import config


@dataclass
class LinkBudget:
    distance_km: float
    fspl_db: float
    atmospheric_loss_db: float
    rain_attenuation_db: float
    rx_power_dbw: float
    noise_floor_dbw: float
    snr_db: float
    margin_db: float
    modulation: str
    data_rate_mbps: int


# ----------------------
# Propagation losses
# ----------------------

def slant_range_km(elevation_deg, altitude_km=config.SHELL_ALTITUDE_KM,
                   earth_radius=config.EARTH_RADIUS_KM):
    """Distance to a satellite at `altitude_km` seen at `elevation_deg` (spherical Earth)."""
    e = np.radians(elevation_deg)
    r = earth_radius + altitude_km
    return np.sqrt(r**2 - (earth_radius * np.cos(e))**2) - earth_radius * np.sin(e)


def free_space_path_loss_db(distance_km, frequency_hz=config.FREQ_DOWNLINK):
    return 20 * np.log10(distance_km) + 20 * np.log10(frequency_hz / 1e9) + 92.45


def atmospheric_loss_db(elevation_deg):
    return 0.5 / np.sin(np.radians(max(elevation_deg, 5)))


def rain_attenuation_db(elevation_deg, precipitation_mm_h, consider_rain=True):
    """Rain fade along the slant path through the rain layer, capped."""
    if not consider_rain or precipitation_mm_h <= 0:
        return 0.0

    specific = config.RAIN_K * precipitation_mm_h ** config.RAIN_ALPHA  # dB/km
    path = config.RAIN_HEIGHT_KM / np.sin(np.radians(max(elevation_deg, 5)))
    return float(min(specific * path, config.RAIN_MAX_DB))


def noise_floor_dbw(bandwidth=config.BANDWIDTH, noise_temp=config.NOISE_TEMP):
    return 10 * np.log10(config.BOLTZMANN * noise_temp * bandwidth)


# ----------------------
# Budget & modulation
# ----------------------

def select_modcod(snr_db):
    for threshold, modulation, rate in config.MODCOD_TABLE:
        if snr_db > threshold:
            return modulation, rate
    return config.FALLBACK_MODCOD


def calculate_link_budget(elevation_deg, rain_attenuation=0.0, consider_rain=True,
                          slant_range=None, frequency_hz=config.FREQ_DOWNLINK):
    """Downlink budget at a given elevation.

    `slant_range` (km) overrides the nominal-shell geometry when the real
    range to the satellite is known.
    """
    distance = slant_range if slant_range is not None else slant_range_km(elevation_deg)
    fspl = free_space_path_loss_db(distance, frequency_hz)
    atmos = atmospheric_loss_db(elevation_deg)
    rain = rain_attenuation if consider_rain else 0.0

    rx_power = config.SATELLITE_EIRP - fspl - atmos - rain + config.TERMINAL_GAIN
    noise = noise_floor_dbw()
    snr = rx_power - noise
    modulation, rate = select_modcod(snr)

    return LinkBudget(
        distance_km=float(distance),
        fspl_db=float(fspl),
        atmospheric_loss_db=float(atmos),
        rain_attenuation_db=float(rain),
        rx_power_dbw=float(rx_power),
        noise_floor_dbw=float(noise),
        snr_db=float(snr),
        margin_db=float(snr - config.REQUIRED_SNR_DB),
        modulation=modulation,
        data_rate_mbps=rate,
    )


def link_status(margin_db):
    if margin_db > 10:
        return "EXCELLENT"
    elif margin_db > 5:
        return "GOOD"
    elif margin_db > 0:
        return "MARGINAL"
    return "DEGRADED"


def snr_class(snr_db):
    if snr_db > 15:
        return "good"
    elif snr_db > 8:
        return "warning"
    return "critical"


# ----------------------
# Channel figures
# ----------------------

def q_function(x):
    return 0.5 * erfc(np.asarray(x) / np.sqrt(2))


def bit_error_rate(snr_db, modulation="QPSK"):
    snr = 10 ** (snr_db / 10)
    if modulation == "16QAM":
        ber = 0.75 * q_function(np.sqrt(snr / 1.25))
    elif modulation == "64QAM":
        ber = 0.625 * q_function(np.sqrt(snr / 3.5))
    else:
        ber = q_function(np.sqrt(2 * snr))
    return float(max(ber, 1e-10))


def shannon_capacity_mbps(snr_db, bandwidth=config.BANDWIDTH):
    return bandwidth * np.log2(1 + 10 ** (snr_db / 10)) / 1e6


def doppler_shift_khz(range_rate_km_s, frequency_hz=config.FREQ_DOWNLINK):
    """Received minus transmitted frequency; negative while the satellite recedes."""
    return -range_rate_km_s * 1000 / config.SPEED_OF_LIGHT * frequency_hz / 1000


# ----------------------
# Chart tables
# ----------------------

def snr_vs_elevation(precipitation_mm_h=0.0, consider_rain=True, step=5):
    rows = []
    for el in np.arange(0, 90 + step, step):
        rain = rain_attenuation_db(el, precipitation_mm_h, consider_rain)
        rows.append([el, calculate_link_budget(el, rain, consider_rain).snr_db])
    return pd.DataFrame(rows, columns=['elevation_deg', 'snr_db'])


def link_budget_table(precipitation_mm_h=0.0, consider_rain=True, step=2.5):
    rows = []
    for el in np.arange(0, 90 + step, step):
        rain = rain_attenuation_db(el, precipitation_mm_h, consider_rain)
        lb = calculate_link_budget(el, rain, consider_rain)
        rows.append([el, lb.rx_power_dbw, lb.fspl_db, lb.snr_db])
    return pd.DataFrame(rows, columns=['elevation_deg', 'rx_power_dbw', 'fspl_db', 'snr_db'])


def ber_table(snr_range=range(-5, 25)):
    rows = [
        [snr, mod, bit_error_rate(snr, mod)]
        for mod in ("QPSK", "16QAM", "64QAM")
        for snr in snr_range
    ]
    return pd.DataFrame(rows, columns=['snr_db', 'modulation', 'ber'])


def capacity_table(snr_range=range(-5, 25), bandwidth=config.BANDWIDTH):
    snrs = np.array(list(snr_range), dtype=float)
    return pd.DataFrame({
        'snr_db': snrs,
        'capacity_mbps': shannon_capacity_mbps(snrs, bandwidth),
    })


def throughput_table(snr_db, bandwidth=config.BANDWIDTH, roll_off=config.ROLL_OFF):
    """Rough rate per modulation order; zero where the SNR is below its requirement."""
    symbol_rate = bandwidth / (1 + roll_off)
    rows = []
    for modulation, bits in config.THROUGHPUT_MODULATIONS:
        required = bits * config.SNR_PER_BIT_DB
        supported = snr_db >= required
        rows.append([modulation, bits, required, bits * symbol_rate / 1e6 if supported else 0.0, supported])
    return pd.DataFrame(rows, columns=['modulation', 'bits_per_symbol', 'required_snr_db',
                                       'throughput_mbps', 'supported'])


def antenna_pattern(peak_gain_dbi=config.TERMINAL_GAIN, step_deg=5):
    # simplified four-lobe pattern, clipped at 0 dBi
    angles = np.arange(0, 360, step_deg)
    gains = np.maximum(0.0, peak_gain_dbi * np.cos(np.radians(angles) * 2))
    return pd.DataFrame({'angle_deg': angles, 'gain_dbi': gains})


# ----------------------
# Constellation diagram
# ----------------------

# symbols per ring, innermost first
APSK_RINGS = {
    16: (4, 12),
    32: (4, 12, 16),
    64: (4, 12, 20, 28),
    128: (8, 16, 24, 32, 48),
    256: (8, 16, 24, 32, 40, 48, 88),
}


def ideal_symbols(modulation):
    """Unit-scale I/Q points for a modulation name."""
    if modulation == "QPSK":
        return np.array([[1, 1], [1, -1], [-1, 1], [-1, -1]], dtype=float)
    if modulation == "8PSK":
        angles = np.arange(8) * np.pi / 4
        return np.column_stack([np.cos(angles), np.sin(angles)])
    if modulation.endswith("APSK"):
        rings = APSK_RINGS[int(modulation.split("-")[0])]
        points = []
        for k, n in enumerate(rings):
            radius = 1.5 * (k + 1) / len(rings)
            angles = np.arange(n) * 2 * np.pi / n + np.pi / n
            points.append(np.column_stack([radius * np.cos(angles), radius * np.sin(angles)]))
        return np.vstack(points)
    raise ValueError(f"Unknown modulation: {modulation}")


def constellation_points(modulation, snr_db, n=500, rng=None):
    """Received symbols: ideal points cycled to `n` plus Gaussian noise scaled by SNR."""
    rng = rng if rng is not None else np.random.default_rng()
    symbols = ideal_symbols(modulation)
    sigma = max(0.01, 0.5 / np.sqrt(10 ** (snr_db / 10)))

    ideal = symbols[np.arange(n) % len(symbols)]
    return ideal + rng.normal(0.0, sigma, size=ideal.shape)
