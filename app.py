# app.py — Hazard map: long-press (click) the map to report, tap a marker to remove it
import atexit

import streamlit as st
from streamlit_autorefresh import st_autorefresh
from streamlit_folium import st_folium

from hazard_map.categories import SELECTION_TITLE
from hazard_map.config import configure_logging, load_settings
from hazard_map.context import Runtime, build_context
from hazard_map.device import GEO_PARAMS, parse_report
from hazard_map.dialogs import CLOSE_HINT, dismiss_options
from hazard_map.errors import ConfigError
from hazard_map.notices import TOAST
from hazard_map.presenter import PIN_TITLE
from hazard_map.render import build_map, legend_html

# ---------------- Config ----------------
st.set_page_config(page_title="Hazard Map", layout="wide", initial_sidebar_state="collapsed")

try:
    settings = load_settings()
except ConfigError as e:
    st.error(f"Invalid configuration: {e}")
    st.stop()
configure_logging(settings.log_level)


# ---------- Runtime (Firestore client + feed, one per server process) ----------
@st.cache_resource(show_spinner=False)
def get_runtime():
    runtime = Runtime.launch(build_context(settings))
    atexit.register(runtime.shutdown)
    return runtime


try:
    runtime = get_runtime()
except ConfigError as e:
    st.error(f"🔥 Firebase initialization failed: {e}")
    st.stop()

# ---------- Session (viewport, dialogs, location, one per browser tab) ----------
if "session" not in st.session_state:
    st.session_state.session = runtime.open_browser_session(st.context.headers.get("User-Agent"))
session = st.session_state.session
presenter = session.presenter

# ---------------- Session defaults ----------------
st.session_state.setdefault("last_map_click", None)
st.session_state.setdefault("last_marker_click", None)
st.session_state.setdefault("selected_event", None)
st.session_state.setdefault("alerts", [])

st.markdown("""
<style>
.block-container { padding-top: 0.5rem !important; }
.loading { display:flex; justify-content:center; align-items:center; height:70vh; color:rgba(0,0,0,0.4); font-size:18px; }
.legend { background: rgba(0,0,0,0.6); color: white; border-radius: 8px; padding: 8px; font-size: 12.5px; display:inline-block; }
.legend-collapsed { border-radius: 999px; width: 32px; text-align: center; font-weight: 700; }
.legend-row { display:flex; align-items:center; }
.legend-dot { height: 8px; width: 8px; border-radius: 999px; margin-right: 4px; display:inline-block; }
</style>
""", unsafe_allow_html=True)

# ---------------- Browser location handoff ----------------
report = parse_report(st.query_params)
if report is not None:
    runtime.invoke(session.device.deliver, report)
    for k in GEO_PARAMS:
        if k in st.query_params:
            del st.query_params[k]
elif session.device.pending:
    st.components.v1.html(session.device.locator_html(), height=0)

# ---------------- Notices ----------------
for notice in session.notifier.drain():
    if notice.kind == TOAST:
        st.toast(notice.title)
    else:
        st.session_state.alerts.append(notice)

for notice in list(st.session_state.alerts):
    st.warning(notice.title + (f"\n\n{notice.message}" if notice.message else ""))
    actions = notice.actions or ()
    cols = st.columns(max(1, len(actions)))
    if not actions:
        if cols[0].button("OK", key=f"alert_ok_{notice.id}"):
            st.session_state.alerts.remove(notice)
            st.rerun()
    for i, action in enumerate(actions):
        if cols[i].button(action.label, key=f"alert_{notice.id}_{i}"):
            runtime.call(action.run)
            st.session_state.alerts.remove(notice)
            st.rerun()

# keeps feed snapshots and dialog state flowing into the page
st_autorefresh(interval=settings.refresh_interval_ms, key="hazard_feed")


# ---------------- Dialogs ----------------
def close_selector():
    runtime.invoke(session.selector.dismiss)


def close_confirm():
    runtime.invoke(session.confirm.cancel)


@st.dialog(SELECTION_TITLE, **dismiss_options(st.dialog, close_selector))
def category_dialog():
    for i, opt in enumerate(session.selector.options):
        if st.button(opt.label, key=f"cat_{i}", use_container_width=True):
            runtime.invoke(session.selector.select, opt)
            st.rerun()
    if st.button("Cancelar", key="cat_cancel"):
        close_selector()
        st.rerun()
    st.caption(CLOSE_HINT)


@st.dialog(session.confirm.title, **dismiss_options(st.dialog, close_confirm))
def confirm_dialog():
    st.write(session.confirm.message)
    c1, c2 = st.columns(2)
    if c1.button(session.confirm.CANCEL, key="confirm_cancel", use_container_width=True):
        close_confirm()
        st.rerun()
    if c2.button(session.confirm.CONFIRM, key="confirm_ok", use_container_width=True):
        runtime.invoke(session.confirm.confirm)
        st.session_state.selected_event = None
        st.rerun()
    st.caption(CLOSE_HINT)


if session.selector.visible:
    category_dialog()
elif session.confirm.visible:
    confirm_dialog()

# ---------------- Map ----------------
if presenter.loading:
    st.markdown("<div class='loading'>⏳ Loading events…</div>", unsafe_allow_html=True)
    st.stop()

map_col, side_col = st.columns([4, 1], gap="small")

with side_col:
    if st.button("Legenda", key="legend_toggle"):
        runtime.invoke(presenter.toggle_legend)
    st.markdown(legend_html(presenter.legend(), presenter.legend_expanded), unsafe_allow_html=True)

    selected = presenter.markers.get(st.session_state.selected_event) if st.session_state.selected_event else None
    if selected is not None:
        st.markdown(f"**{PIN_TITLE}**  \n{selected.value}")
        if st.button("Excluir marcador", key=f"callout_{selected.id}"):
            runtime.invoke(session.callout_press, selected.id)
            st.rerun()

with map_col:
    m = build_map(presenter.region, presenter.pins(), presenter.user_position)
    map_result = st_folium(m, width="100%", height=700, key="hazard_map",
                           returned_objects=["last_clicked", "last_object_clicked"])

map_result = map_result if isinstance(map_result, dict) else {}

marker_click = map_result.get("last_object_clicked")
if marker_click and marker_click != st.session_state.last_marker_click:
    st.session_state.last_marker_click = marker_click
    rec = presenter.marker_at(float(marker_click["lat"]), float(marker_click["lng"]))
    st.session_state.selected_event = rec.id if rec else None
    st.rerun()

map_click = map_result.get("last_clicked")
if map_click and map_click != st.session_state.last_map_click:
    st.session_state.last_map_click = map_click
    runtime.invoke(session.long_press, map_click["lat"], map_click["lng"])
    st.rerun()
