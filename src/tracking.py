# src/tracking.py
"""
Frame computation for the dashboard: propagates a sub-sample of the
catalog, evaluates the link budget per satellite, classifies markers,
picks footprints and drives the handover simulation.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import pandas as pd

import config
from footprint import footprint_polygon
from handover import Candidate, HandoverController
from link_budget import calculate_link_budget, link_status, rain_attenuation_db, snr_class
from propagate_positions import build_satellites, doppler_series, ground_track, satellite_state, ts
from terminal_log import tagged

log = tagged(logging.getLogger(__name__), "CALC")
select_log = tagged(logging.getLogger(__name__), "SELECT")
config_log = tagged(logging.getLogger(__name__), "CONFIG")

# status: colour, marker radius, opacity
MARKER_STYLES = {
    "serving": ("#ffffff", 5, 1.0),
    "selected": ("#ff0000", 5, 0.9),
    "candidate": ("#ffaa00", 4, 0.8),
    "visible": ("#00ff00", 3, 0.7),
    "inactive": ("#333333", 1, 0.3),
}

FRAME_COLUMNS = [
    'index', 'name', 'norad_id', 'lat', 'lon', 'alt_km', 'az_deg', 'el_deg',
    'range_km', 'speed_km_s', 'doppler_khz', 'snr_db', 'modulation',
    'visible', 'status', 'color', 'radius', 'opacity',
]


@dataclass
class TrackerOptions:
    consider_rain: bool = True
    show_footprints: bool = True
    footprint_only_selected: bool = False
    max_footprints: int = config.MAX_FOOTPRINTS
    max_draw: int = config.MAX_DRAW
    handover: bool = False


@dataclass
class Footprint:
    norad_id: int
    points: list
    color: str
    weight: int


@dataclass
class Frame:
    time: datetime
    satellites: pd.DataFrame
    footprints: list = field(default_factory=list)
    visible: int = 0
    drawn: int = 0
    total: int = 0
    elapsed_ms: float = 0.0
    handover_event: object = None


@dataclass
class SatelliteReport:
    name: str
    norad_id: int
    state: object
    link: object
    status: str
    snr_class: str
    track: pd.DataFrame
    doppler: pd.DataFrame


class Tracker:
    def __init__(self, records, observer, options=None, weather=None, timescale=ts, satellites=None):
        self.records = list(records)
        self.observer = observer
        self.options = options or TrackerOptions()
        self.weather = weather
        self.timescale = timescale
        self.satellites = satellites if satellites is not None else build_satellites(self.records, timescale)
        self.handover = HandoverController()
        self.selected = None

        invalid = sum(s is None for s in self.satellites)
        if invalid:
            log.warning(f"{invalid} records without a usable orbit")

    @property
    def total(self):
        return len(self.records)

    def set_observer(self, observer):
        self.observer = observer
        self.handover.reset()
        if self.weather is not None:
            self.weather.invalidate()
        config_log.info(f"Position: [{observer.lat:.3f}, {observer.lon:.3f}] elev >= {observer.elev_min:.0f}")

    def select(self, norad_id):
        self.selected = norad_id
        found = self._record_for(norad_id)
        if found is None:
            return None
        rec = found[1]
        select_log.info(f"Target acquired: {rec.name} [{rec.norad_id}]")
        return rec

    def precipitation(self):
        if self.weather is None or not self.options.consider_rain:
            return 0.0
        return self.weather.current().precipitation_mm_h

    def link_for(self, state, precipitation=None):
        precipitation = self.precipitation() if precipitation is None else precipitation
        rain = rain_attenuation_db(state.el_deg, precipitation, self.options.consider_rain)
        return calculate_link_budget(state.el_deg, rain, self.options.consider_rain,
                                     slant_range=state.range_km)

    def frame(self, when=None):
        when = when or datetime.now(timezone.utc)
        started = time.perf_counter()
        precipitation = self.precipitation()

        step = max(1, math.ceil(self.total / max(1, self.options.max_draw)))
        rows = []
        for i in range(0, self.total, step):
            rec = self.records[i]
            state = satellite_state(self.satellites[i], self.observer, when, self.timescale)
            if state is None:
                continue
            link = self.link_for(state, precipitation)
            rows.append([
                i, rec.name, rec.norad_id, state.lat, state.lon, state.alt_km,
                state.az_deg, state.el_deg, state.range_km, state.speed_km_s,
                state.doppler_khz, link.snr_db, link.modulation,
                state.is_visible(self.observer),
            ])

        df = pd.DataFrame(rows, columns=FRAME_COLUMNS[:14])
        df['visible'] = df['visible'].astype(bool)

        event = None
        if self.options.handover:
            visible = df[df['visible']]
            event = self.handover.update([
                Candidate(int(r['index']), r['name'], int(r['norad_id']), float(r['snr_db']), float(r['el_deg']))
                for _, r in visible.iterrows()
            ], when)

        df['status'] = [self._status(r) for _, r in df.iterrows()] if len(df) else []
        styles = [MARKER_STYLES[s] for s in df['status']]
        df['color'] = [s[0] for s in styles]
        df['radius'] = [s[1] for s in styles]
        df['opacity'] = [s[2] for s in styles]

        footprints = self._footprints(df)
        visible_count = int(df['visible'].sum()) if len(df) else 0

        return Frame(
            time=when,
            satellites=df[FRAME_COLUMNS],
            footprints=footprints,
            visible=visible_count,
            drawn=len(df),
            total=self.total,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            handover_event=event,
        )

    def _status(self, row):
        norad_id = row['norad_id']
        if self.options.handover and self.handover.serving is not None \
                and self.handover.serving.norad_id == norad_id:
            return "serving"
        if self.selected is not None and self.selected == norad_id:
            return "selected"
        if self.options.handover and any(c.norad_id == norad_id for c in self.handover.candidates):
            return "candidate"
        if row['visible']:
            return "visible"
        return "inactive"

    def _footprints(self, df):
        if not self.options.show_footprints or df.empty:
            return []

        if self.options.footprint_only_selected:
            chosen = df[df['norad_id'] == self.selected]
            weight = 2
        else:
            chosen = df[df['visible']].head(self.options.max_footprints)
            weight = 1

        return [
            Footprint(
                norad_id=int(r['norad_id']),
                points=footprint_polygon(r['lat'], r['lon'], r['alt_km'], self.observer.elev_min),
                color=MARKER_STYLES["selected"][0] if self.options.footprint_only_selected else r['color'],
                weight=weight,
            )
            for _, r in chosen.iterrows()
        ]

    def _record_for(self, norad_id):
        for i, rec in enumerate(self.records):
            if rec.norad_id == norad_id:
                return i, rec
        return None

    def report(self, norad_id=None, when=None):
        """Details of the selected (or given) satellite, None if it can't be propagated."""
        when = when or datetime.now(timezone.utc)
        norad_id = self.selected if norad_id is None else norad_id
        found = self._record_for(norad_id) if norad_id is not None else None
        if found is None:
            return None

        i, rec = found
        sat = self.satellites[i]
        state = satellite_state(sat, self.observer, when, self.timescale)
        if state is None:
            return None

        link = self.link_for(state)
        return SatelliteReport(
            name=rec.name,
            norad_id=rec.norad_id,
            state=state,
            link=link,
            status=link_status(link.margin_db),
            snr_class=snr_class(link.snr_db),
            track=ground_track(sat, when, timescale=self.timescale),
            doppler=doppler_series(sat, self.observer, when, timescale=self.timescale),
        )
