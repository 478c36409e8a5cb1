# src/dashboard.py
import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import logging
from streamlit.runtime.scriptrunner import get_script_run_ctx

import config
from ingest_tle import CatalogError, load_catalog, load_meta, meta_source_for
from link_budget import (
    antenna_pattern,
    ber_table,
    capacity_table,
    constellation_points,
    link_budget_table,
    rain_attenuation_db,
    snr_vs_elevation,
    throughput_table,
)
from propagate_positions import Observer, build_satellites
from terminal_log import attach_terminal, setup_logging, tagged
from tracking import MARKER_STYLES, Tracker, TrackerOptions
from weather import provider_for

log = tagged(logging.getLogger(__name__), "SYSTEM")
config_log = tagged(logging.getLogger(__name__), "CONFIG")


st.set_page_config(page_title="Starlink Link Dashboard", layout="wide")
st.title("🛰️ Starlink Link Dashboard – Visibility, Link Budget & Handover")

# ----------------------
# Create dark-mode view
# ----------------------
st.markdown(
    """
    <style>
    /* Page background */
    .stApp {
        background-color: #000000;
        color: #FFFFFF;
    }

    /* Terminal panel */
    .stCode, pre {
        background-color: #0a0a0a !important;
        color: #00ff00 !important;
    }

    /* Headings */
    h1, h2, h3, h4 {
        color: #FFFFFF;
    }
    </style>
    """,
    unsafe_allow_html=True
)


# ----------------------
# Cached resources
# ----------------------

def _session_id():
    ctx = get_script_run_ctx()
    return ctx.session_id if ctx is not None else None


def get_terminal():
    """Terminal lines of this browser session only."""
    setup_logging()
    terminal = st.session_state.get("terminal")
    if terminal is None:
        session_id = _session_id()
        terminal = attach_terminal(lambda record: _session_id() == session_id)
        st.session_state["terminal"] = terminal
    return terminal


@st.cache_data(ttl=3600, show_spinner="Fetching orbital elements...")
def cached_catalog(source):
    return load_catalog(source)


@st.cache_data(ttl=3600, show_spinner=False)
def cached_meta(source):
    return load_meta(source)


@st.cache_resource(show_spinner="Processing orbital data...")
def cached_satellites(source):
    return build_satellites(cached_catalog(source))


def get_tracker(source, observer):
    tracker = st.session_state.get("tracker")
    if tracker is None or st.session_state.get("tracker_source") != source:
        tracker = Tracker(
            cached_catalog(source),
            observer,
            weather=provider_for(observer),
            satellites=cached_satellites(source),
        )
        st.session_state["tracker"] = tracker
        st.session_state["tracker_source"] = source
        log.info("TRACKING SYSTEMS ONLINE")
    return tracker


# ----------------------
# Figures
# ----------------------

def map_figure(frame, observer, report=None):
    df = frame.satellites
    fig = go.Figure()

    for fp in frame.footprints:
        lats, lons = zip(*(fp.points + fp.points[:1]))
        fig.add_trace(go.Scattergeo(
            lat=lats, lon=lons,
            mode='lines',
            line=dict(color=fp.color, width=fp.weight, dash='dash'),
            hoverinfo='skip',
            showlegend=False
        ))

    if report is not None and not report.track.empty:
        fig.add_trace(go.Scattergeo(
            lat=report.track['latitude_deg'],
            lon=report.track['longitude_deg'],
            mode='lines',
            line=dict(color=MARKER_STYLES["candidate"][0], width=2, dash='dot'),
            name='Orbit path',
            hoverinfo='skip'
        ))

    if not df.empty:
        fig.add_trace(go.Scattergeo(
            lat=df['lat'],
            lon=df['lon'],
            mode='markers',
            marker=dict(
                size=df['radius'] * 2 + 2,
                color=df['color'],
                opacity=df['opacity'],
                line=dict(width=0)
            ),
            text=(
                df['name'] + '<br>NORAD: ' + df['norad_id'].astype(str)
                + '<br>ALT: ' + df['alt_km'].round(0).astype(str) + ' km'
                + '<br>ELEV: ' + df['el_deg'].round(1).astype(str) + '°'
                + '<br>SNR: ' + df['snr_db'].round(1).astype(str) + ' dB'
                + '<br>MOD: ' + df['modulation']
            ),
            hoverinfo='text',
            name='Satellites'
        ))

    fig.add_trace(go.Scattergeo(
        lat=[observer.lat], lon=[observer.lon],
        mode='text',
        text=['⊕'],
        textfont=dict(color='#ff0000', size=20),
        name='Observer',
        hoverinfo='name'
    ))

    fig.update_layout(
        geo=dict(
            projection_type='equirectangular',
            showland=True,
            landcolor='rgb(20,20,20)',
            showocean=True,
            oceancolor='rgb(5,5,15)',
            showcountries=True,
            countrycolor='rgb(60,60,60)',
            bgcolor='black',
            center=dict(lat=observer.lat, lon=observer.lon)
        ),
        margin=dict(l=0, r=0, b=0, t=30),
        paper_bgcolor='black',
        font_color='white',
        height=520,
        showlegend=False
    )
    return fig


def snr_figure(precipitation, consider_rain, current_el=None):
    df = snr_vs_elevation(precipitation, consider_rain)
    fig = px.line(df, x='elevation_deg', y='snr_db', markers=True, template="plotly_dark")
    if current_el is not None:
        fig.add_vline(x=current_el, line_dash="dot", line_color="red",
                      annotation_text="Target", annotation_position="top left")
    fig.update_layout(xaxis_title="Elevation (°)", yaxis_title="SNR (dB)", title="SNR vs Elevation")
    return fig


def constellation_figure(modulation, snr_db):
    pts = constellation_points(modulation, snr_db)
    fig = px.scatter(x=pts[:, 0], y=pts[:, 1], template="plotly_dark")
    fig.update_traces(marker=dict(color="#ff0000", size=3, opacity=0.6))
    fig.update_layout(
        title=f"{modulation} Constellation",
        xaxis=dict(range=[-2, 2], title="I"),
        yaxis=dict(range=[-2, 2], title="Q", scaleanchor="x")
    )
    return fig


def link_budget_figure(precipitation, consider_rain):
    df = link_budget_table(precipitation, consider_rain).rename(columns={
        'rx_power_dbw': 'Rx Power (dBW)',
        'fspl_db': 'FSPL (dB)',
        'snr_db': 'SNR (dB)',
    })
    fig = px.line(
        df.melt(id_vars='elevation_deg', var_name='term', value_name='db'),
        x='elevation_deg', y='db', color='term', template="plotly_dark"
    )
    fig.update_layout(xaxis_title="Elevation (°)", yaxis_title="dB", title="Link Budget vs Elevation")
    return fig


def doppler_figure(doppler):
    fig = px.line(doppler, x='minute', y='doppler_khz', template="plotly_dark")
    fig.update_traces(line_color="#4488ff")
    fig.update_layout(xaxis_title="Time (min)", yaxis_title="Doppler Shift (kHz)", title="Doppler Shift over Time")
    return fig


def throughput_figure(snr_db):
    df = throughput_table(snr_db)
    fig = px.bar(df, x='modulation', y='throughput_mbps', template="plotly_dark")
    fig.update_traces(marker_color=["#00ff44" if ok else "#ff4444" for ok in df['supported']])
    fig.update_layout(xaxis_title="Modulation", yaxis_title="Throughput (Mbps)",
                      title=f"Estimated Throughput @ SNR={snr_db:.1f} dB")
    return fig


def antenna_figure():
    df = antenna_pattern()
    fig = go.Figure(go.Scatterpolar(
        r=df['gain_dbi'], theta=df['angle_deg'],
        fill='toself', fillcolor='rgba(0,255,68,0.2)', line=dict(color="#00ff44")
    ))
    fig.update_layout(template="plotly_dark", title="Antenna Pattern (simulated)",
                      polar=dict(radialaxis=dict(visible=True, range=[0, 35])))
    return fig


def ber_figure():
    fig = px.line(ber_table(), x='snr_db', y='ber', color='modulation', log_y=True, template="plotly_dark")
    fig.update_layout(xaxis_title="SNR (dB)", yaxis_title="BER", title="BER vs SNR")
    return fig


def capacity_figure():
    fig = px.line(capacity_table(), x='snr_db', y='capacity_mbps', template="plotly_dark")
    fig.update_layout(xaxis_title="SNR (dB)", yaxis_title="Capacity (Mbps)", title="Channel Capacity (Shannon)")
    return fig


# ----------------------
# Page
# ----------------------

def main():
    terminal = get_terminal()

    # ----------------------
    # Sidebar controls
    # ----------------------
    st.sidebar.header("Observer")

    defaults = config.DEFAULT_OBSERVER
    with st.sidebar.form("observer_form"):
        lat = st.number_input("Latitude (°)", -90.0, 90.0, defaults["lat"], format="%.3f")
        lon = st.number_input("Longitude (°)", -180.0, 180.0, defaults["lon"], format="%.3f")
        elev_min = st.number_input("Min Elevation (°)", 0.0, 90.0, defaults["elev_min"], step=1.0)
        applied = st.form_submit_button("Apply")

    source = st.sidebar.text_input("Catalog", config.CATALOG_FILE)
    observer = Observer(lat, lon, elev_min)

    try:
        tracker = get_tracker(source, observer)
    except CatalogError as e:
        st.error(f"Critical failure: {e}")
        st.stop()

    if applied:
        tracker.set_observer(observer)
        tracker.weather = provider_for(observer)

    st.sidebar.header("Display & RF")
    options = TrackerOptions(
        consider_rain=st.sidebar.checkbox("Rain attenuation", value=True),
        show_footprints=st.sidebar.checkbox("Show footprints", value=True),
        footprint_only_selected=st.sidebar.checkbox("Footprint only for selected", value=False),
        handover=st.sidebar.checkbox("Handover simulation", value=False),
    )
    if options != tracker.options:
        config_log.info(
            f"Rain: {'ACTIVE' if options.consider_rain else 'INACTIVE'} | "
            f"Footprints: {'VISIBLE' if options.show_footprints else 'HIDDEN'} | "
            f"Mode: {'SELECTED' if options.footprint_only_selected else 'ALL'} | "
            f"Handover: {'ON' if options.handover else 'OFF'}"
        )
        if options.handover != tracker.options.handover:
            tracker.handover.reset()
        tracker.options = options

    labels = {f"{r.name} [{r.norad_id}]": r.norad_id for r in tracker.records}
    choice = st.sidebar.selectbox("Target satellite", ["---"] + list(labels))
    target = labels.get(choice)
    if target != tracker.selected:
        tracker.select(target)

    auto_refresh = st.sidebar.checkbox(f"Auto refresh ({config.REFRESH_SECONDS:g} s)", value=True)

    meta = cached_meta(meta_source_for(source))
    if meta is not None:
        st.sidebar.caption(f"{meta.count} satellites · {meta.source} · updated {meta.updated_at}")

    @st.fragment(run_every=config.REFRESH_SECONDS if auto_refresh else None)
    def live_view():
        frame = tracker.frame()
        report = tracker.report()
        precipitation = tracker.precipitation()

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Visible", frame.visible)
        c2.metric("Tracked", frame.drawn)
        c3.metric("Total", frame.total)
        c4.metric("Render", f"{frame.elapsed_ms:.0f} ms")

        tabs = st.tabs(["Map", "RF Analysis", "Weather", "Handover", "Terminal"])

        # Map tab
        with tabs[0]:
            col_map, col_info = st.columns([3, 1])
            with col_map:
                st.plotly_chart(map_figure(frame, tracker.observer, report), use_container_width=True)

            with col_info:
                st.subheader("Target")
                if report is None:
                    st.markdown("SAT ID: ---  \nELEV: ---  \nAZIM: ---  \nRANGE: ---  \nSNR: ---")
                else:
                    s, lb = report.state, report.link
                    st.markdown(
                        f"**{report.name}**  \n"
                        f"SAT ID: {report.norad_id}  \n"
                        f"ELEV: {s.el_deg:.1f}°  \n"
                        f"AZIM: {s.az_deg:.1f}°  \n"
                        f"RANGE: {s.range_km:.0f} km  \n"
                        f"ALTITUDE: {s.alt_km:.0f} km  \n"
                        f"VELOCITY: {s.speed_km_s:.1f} km/s  \n"
                        f"DOPPLER: {s.doppler_khz:.1f} kHz"
                    )
                    st.metric("SNR", f"{lb.snr_db:.1f} dB", help=f"class: {report.snr_class}")
                    st.markdown(
                        f"MOD: **{lb.modulation}**  \n"
                        f"RATE: **{lb.data_rate_mbps} Mbps**  \n"
                        f"STATUS: **{report.status}**"
                    )

            with st.expander("ℹ️ How to read this view"):
                st.markdown("""
                - **Green** = visible above the minimum elevation
                - **Red** = selected target, **White** = serving satellite
                - **Orange** = handover candidates / orbit path
                - Dashed rings = coverage footprint at the minimum elevation
                """)

        # RF tab
        with tabs[1]:
            current_el = report.state.el_deg if report is not None else None
            col_a, col_b = st.columns(2)
            with col_a:
                st.plotly_chart(snr_figure(precipitation, tracker.options.consider_rain, current_el),
                                use_container_width=True)
                st.plotly_chart(link_budget_figure(precipitation, tracker.options.consider_rain),
                                use_container_width=True)
                st.plotly_chart(capacity_figure(), use_container_width=True)
            with col_b:
                if report is not None:
                    st.plotly_chart(constellation_figure(report.link.modulation, report.link.snr_db),
                                    use_container_width=True)
                else:
                    st.info("Select a target satellite to see its constellation diagram.")
                st.plotly_chart(ber_figure(), use_container_width=True)
                st.plotly_chart(antenna_figure(), use_container_width=True)

            if report is not None:
                col_c, col_d = st.columns(2)
                with col_c:
                    if report.doppler.empty:
                        st.info("No Doppler samples: the orbit could not be propagated.")
                    else:
                        st.plotly_chart(doppler_figure(report.doppler), use_container_width=True)
                with col_d:
                    st.plotly_chart(throughput_figure(report.link.snr_db), use_container_width=True)

        # Weather tab
        with tabs[2]:
            if tracker.weather is None:
                st.info("No weather source configured.")
            else:
                w = tracker.weather.current()
                rain_att = rain_attenuation_db(45, w.precipitation_mm_h, tracker.options.consider_rain)
                w1, w2, w3, w4 = st.columns(4)
                w1.metric("Precip", f"{w.precipitation_mm_h:.1f} mm/h")
                w2.metric("Clouds", f"{w.cloud_cover:.0f}%")
                w3.metric("Humidity", f"{w.humidity:.0f}%")
                w4.metric("Rain att. @45°", f"{rain_att:.1f} dB")

        # Handover tab
        with tabs[3]:
            ho = tracker.handover
            if not tracker.options.handover:
                st.info("Handover simulation is off.")
            elif ho.serving is None:
                st.markdown("**NO ACTIVE CONNECTION**")
            else:
                st.markdown(f"**SERVING:** {ho.serving.name} · SNR {ho.serving.snr_db:.1f} dB")

            if ho.candidates:
                st.dataframe(pd.DataFrame([vars(c) for c in ho.candidates]), hide_index=True)
            if ho.events:
                st.dataframe(pd.DataFrame([vars(e) for e in reversed(ho.events)]), hide_index=True)

        # Terminal tab
        with tabs[4]:
            st.code("\n".join(terminal.lines) or "(no output)", language=None)

    live_view()


if __name__ == "__main__":
    main()
