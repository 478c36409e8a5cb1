# src/config.py
"""
Configuration for the Starlink link dashboard.
Contains data paths, observer defaults and the RF / handover constants.
"""

import os

# ----------------------
# Paths & sources
# ----------------------
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
DATA_DIR = os.environ.get("STARLINK_DATA_DIR", os.path.join(BASE_DIR, "data"))
CATALOG_FILE = os.path.join(DATA_DIR, "starlink_tle.json")
META_FILE = os.path.join(DATA_DIR, "meta.json")
SKYFIELD_DATA_DIR = os.environ.get("SKYFIELD_DATA_DIR", "~/skyfield_data")

CELESTRAK_STARLINK_URL = "https://celestrak.org/NORAD/elements/gp.php?GROUP=starlink&FORMAT=tle"
HTTP_TIMEOUT = 30  # s

# ----------------------
# Dashboard
# ----------------------
REFRESH_SECONDS = float(os.environ.get("STARLINK_REFRESH_SECONDS", "3"))
MAX_DRAW = 1000
MAX_FOOTPRINTS = 5
LOG_LINES = 100

ORBIT_PERIOD_MINUTES = 95
ORBIT_STEPS = 180

# Florianopolis
DEFAULT_OBSERVER = {
    "lat": -27.588,
    "lon": -48.613,
    "elev_min": 25.0,
}

# ----------------------
# Physical constants
# ----------------------
EARTH_RADIUS_KM = 6371.0
SPEED_OF_LIGHT = 299792458.0  # m/s
BOLTZMANN = 1.38e-23  # J/K

# ----------------------
# RF (Ku-band user downlink)
# ----------------------
FREQ_DOWNLINK = 11.5e9  # Hz
BANDWIDTH = 250e6  # Hz
SATELLITE_EIRP = 35.0  # dBW
TERMINAL_GAIN = 33.0  # dBi, phased array
NOISE_TEMP = 290.0  # K
SHELL_ALTITUDE_KM = 550.0
REQUIRED_SNR_DB = 5.0
ROLL_OFF = 0.2

# SNR threshold (dB), modulation, data rate (Mbps); first match wins
MODCOD_TABLE = [
    (25.0, "256-APSK", 400),
    (20.0, "128-APSK", 350),
    (18.0, "64-APSK", 300),
    (15.0, "32-APSK", 250),
    (12.0, "16-APSK", 200),
    (8.0, "8PSK", 150),
]
FALLBACK_MODCOD = ("QPSK", 50)

# modulation order, bits per symbol; throughput estimate at the current SNR
THROUGHPUT_MODULATIONS = [
    ("BPSK", 1), ("QPSK", 2), ("8PSK", 3), ("16QAM", 4),
    ("32QAM", 5), ("64QAM", 6), ("128QAM", 7), ("256QAM", 8),
]
SNR_PER_BIT_DB = 3.0

# ITU-R P.838 style coefficients near 11.5 GHz
RAIN_K = 0.0188
RAIN_ALPHA = 1.217
RAIN_HEIGHT_KM = 3.0
RAIN_MAX_DB = 20.0

# ----------------------
# Handover
# ----------------------
HANDOVER_HYSTERESIS_DB = 3.0
HANDOVER_CANDIDATES = 3
HANDOVER_HISTORY = 50

# ----------------------
# Weather
# ----------------------
WEATHER_SOURCE = os.environ.get("STARLINK_WEATHER_SOURCE", "simulated")
WEATHER_TTL_SECONDS = 30 * 60
OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
