"""Tests for frame computation: sampling, marker classes, footprints, handover, reports."""

from datetime import datetime, timezone

import pytest

import config
from ingest_tle import TleRecord
from tracking import FRAME_COLUMNS, MARKER_STYLES, Tracker, TrackerOptions
from weather import WeatherProvider, WeatherState

from conftest import EPOCH, ISS_LINE1, ISS_LINE2


def _records(n=2):
    # same orbit under different catalog ids
    return [TleRecord(f"SAT-{i}", 1000 + i, ISS_LINE1, ISS_LINE2) for i in range(n)]


def _fixed_weather(precipitation):
    return WeatherProvider(lambda: WeatherState(50, precipitation, 80, 20), clock=lambda: 0.0)


class TestFrame:

    def test_visible_overhead(self, observer_below):
        tracker = Tracker(_records(2), observer_below)
        frame = tracker.frame(EPOCH)

        assert list(frame.satellites.columns) == FRAME_COLUMNS
        assert frame.drawn == 2
        assert frame.total == 2
        assert frame.visible == 2
        assert set(frame.satellites['status']) == {"visible"}
        assert (frame.satellites['color'] == MARKER_STYLES["visible"][0]).all()
        assert frame.elapsed_ms >= 0
        assert frame.handover_event is None

    def test_snr_uses_real_range(self, observer_below):
        frame = Tracker(_records(1), observer_below).frame(EPOCH)
        # ISS at ~400 km is closer than the 550 km shell
        assert frame.satellites['snr_db'].iloc[0] > 19.0

    def test_far_side_inactive(self, observer_far):
        frame = Tracker(_records(2), observer_far).frame(EPOCH)
        assert frame.visible == 0
        assert set(frame.satellites['status']) == {"inactive"}
        assert frame.footprints == []

    def test_sub_sampling(self, observer_below):
        tracker = Tracker(_records(5), observer_below, TrackerOptions(max_draw=2))
        frame = tracker.frame(EPOCH)
        # step = ceil(5 / 2) = 3 -> indices 0 and 3
        assert list(frame.satellites['index']) == [0, 3]
        assert frame.total == 5

    def test_unusable_records_skipped(self, observer_below):
        records = _records(2) + [TleRecord("EMPTY", 9, "", "")]
        tracker = Tracker(records, observer_below)
        assert tracker.satellites[2] is None
        frame = tracker.frame(EPOCH)
        assert frame.drawn == 2
        assert frame.total == 3

    def test_decayed_orbits_not_drawn(self, observer_below):
        tracker = Tracker(_records(2), observer_below)
        frame = tracker.frame(datetime(2030, 1, 1, tzinfo=timezone.utc))
        assert frame.drawn == 0
        assert frame.visible == 0
        assert frame.total == 2
        assert frame.footprints == []

    def test_empty_catalog(self, observer_below):
        frame = Tracker([], observer_below).frame(EPOCH)
        assert frame.drawn == 0
        assert frame.visible == 0
        assert frame.satellites.empty

    def test_rain_lowers_snr(self, observer_below):
        dry = Tracker(_records(1), observer_below, weather=_fixed_weather(0.0)).frame(EPOCH)
        wet = Tracker(_records(1), observer_below, weather=_fixed_weather(25.0)).frame(EPOCH)
        assert wet.satellites['snr_db'].iloc[0] < dry.satellites['snr_db'].iloc[0]

    def test_rain_toggle(self, observer_below):
        opts = TrackerOptions(consider_rain=False)
        tracker = Tracker(_records(1), observer_below, opts, weather=_fixed_weather(25.0))
        assert tracker.precipitation() == 0.0


class TestFootprints:

    def test_limited_to_max(self, observer_below):
        tracker = Tracker(_records(4), observer_below, TrackerOptions(max_footprints=3))
        frame = tracker.frame(EPOCH)
        assert len(frame.footprints) == 3
        assert all(fp.weight == 1 for fp in frame.footprints)
        assert len(frame.footprints[0].points) == 64

    def test_hidden(self, observer_below):
        tracker = Tracker(_records(2), observer_below, TrackerOptions(show_footprints=False))
        assert tracker.frame(EPOCH).footprints == []

    def test_only_selected(self, observer_below):
        tracker = Tracker(_records(3), observer_below, TrackerOptions(footprint_only_selected=True))
        assert tracker.frame(EPOCH).footprints == []

        tracker.select(1001)
        frame = tracker.frame(EPOCH)
        assert [fp.norad_id for fp in frame.footprints] == [1001]
        assert frame.footprints[0].color == MARKER_STYLES["selected"][0]
        assert frame.footprints[0].weight == 2


class TestSelection:

    def test_selected_marker(self, observer_below):
        tracker = Tracker(_records(2), observer_below)
        rec = tracker.select(1000)
        assert rec.name == "SAT-0"
        df = tracker.frame(EPOCH).satellites.set_index('norad_id')
        assert df.loc[1000, 'status'] == "selected"
        assert df.loc[1001, 'status'] == "visible"

    def test_unknown_selection(self, observer_below):
        tracker = Tracker(_records(1), observer_below)
        assert tracker.select(42) is None
        assert tracker.report(when=EPOCH) is None

    def test_report(self, observer_below):
        tracker = Tracker(_records(1), observer_below)
        tracker.select(1000)
        report = tracker.report(when=EPOCH)
        assert report.name == "SAT-0"
        assert report.state.el_deg > 85
        assert report.link.snr_db == pytest.approx(
            tracker.frame(EPOCH).satellites['snr_db'].iloc[0])
        assert report.status == "EXCELLENT"
        assert report.snr_class == "good"
        assert len(report.track) == config.ORBIT_STEPS
        assert len(report.doppler) == 60
        assert report.doppler['doppler_khz'].iloc[0] == pytest.approx(report.state.doppler_khz, abs=1e-3)

    def test_report_decayed_is_none(self, observer_below):
        tracker = Tracker(_records(1), observer_below)
        tracker.select(1000)
        assert tracker.report(when=datetime(2030, 1, 1, tzinfo=timezone.utc)) is None

    def test_report_nothing_selected(self, observer_below):
        assert Tracker(_records(1), observer_below).report(when=EPOCH) is None


class TestHandoverInFrame:

    def test_serving_and_candidate(self, observer_below):
        tracker = Tracker(_records(2), observer_below, TrackerOptions(handover=True))
        frame = tracker.frame(EPOCH)

        assert frame.handover_event.kind == "acquire"
        statuses = sorted(frame.satellites['status'])
        assert statuses == ["candidate", "serving"]

        # equal SNR: no switch on the next frame
        assert tracker.frame(EPOCH).handover_event is None

    def test_lost_when_out_of_view(self, observer_below, observer_far):
        tracker = Tracker(_records(1), observer_below, TrackerOptions(handover=True))
        tracker.frame(EPOCH)
        tracker.observer = observer_far
        assert tracker.frame(EPOCH).handover_event.kind == "lost"

    def test_set_observer_resets(self, observer_below, observer_far):
        tracker = Tracker(_records(1), observer_below, TrackerOptions(handover=True),
                          weather=_fixed_weather(0.0))
        tracker.frame(EPOCH)
        tracker.set_observer(observer_far)
        assert tracker.handover.serving is None
        assert tracker.frame(EPOCH).handover_event is None
