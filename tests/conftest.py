from datetime import datetime, timezone

import pytest

from ingest_tle import TleRecord
from propagate_positions import Observer, build_satellites, satellite_state

ISS_LINE1 = "1 25544U 98067A   14020.93268519  .00009878  00000-0  18200-3 0  5082"
ISS_LINE2 = "2 25544  51.6498 109.4756 0003572  55.9686 274.8005 15.49815350868473"

# TLE epoch: 2014 day 20.93268519
EPOCH = datetime(2014, 1, 20, 22, 23, 4, tzinfo=timezone.utc)


@pytest.fixture
def iss_record():
    return TleRecord("ISS (ZARYA)", 25544, ISS_LINE1, ISS_LINE2)


@pytest.fixture
def iss(iss_record):
    return build_satellites([iss_record])[0]


@pytest.fixture
def observer_below(iss):
    """Observer standing at the ISS sub-point at EPOCH."""
    at_epoch = satellite_state(iss, Observer(0.0, 0.0), EPOCH)
    return Observer(at_epoch.lat, at_epoch.lon, elev_min=25.0)


@pytest.fixture
def observer_far(observer_below):
    """Observer on the opposite side of the Earth."""
    lon = observer_below.lon + 180 if observer_below.lon < 0 else observer_below.lon - 180
    return Observer(-observer_below.lat, lon, elev_min=25.0)
