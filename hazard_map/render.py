# render.py — folium map + legend markup
import html
import math
from typing import Iterable, Optional

import folium

from .categories import CategoryOption
from .models import Coordinate, RegionState

ZOOM_MIN = 1
ZOOM_MAX = 19
# colours folium.Icon (Leaflet.awesome-markers) can draw
PIN_COLORS = {
    "red", "darkred", "lightred", "orange", "beige", "green", "darkgreen",
    "lightgreen", "blue", "darkblue", "lightblue", "cadetblue", "purple",
    "darkpurple", "pink", "white", "gray", "lightgray", "black",
}
USER_COLOR = "#2563EB"


def zoom_for(region: RegionState) -> int:
    """Web-mercator zoom whose viewport spans roughly `longitude_delta` degrees."""
    delta = max(region.longitude_delta, 1e-9)
    zoom = round(math.log2(360.0 / delta))
    return max(ZOOM_MIN, min(ZOOM_MAX, zoom))


def build_map(region: RegionState, pins: Iterable, user_position: Optional[Coordinate] = None) -> folium.Map:
    m = folium.Map(location=[region.latitude, region.longitude], zoom_start=zoom_for(region), control_scale=True)
    for pin in pins:
        color = pin.color if pin.color in PIN_COLORS else "gray"
        popup = f"<b>{html.escape(pin.title)}</b><br/>{html.escape(pin.description)}"
        folium.Marker(
            [pin.latitude, pin.longitude],
            tooltip=html.escape(pin.description or pin.title),
            popup=folium.Popup(popup, max_width=240),
            icon=folium.Icon(color=color),
        ).add_to(m)
    if user_position is not None:
        folium.CircleMarker(location=[user_position.latitude, user_position.longitude],
                            radius=7, color=USER_COLOR, fill=True, fill_color=USER_COLOR).add_to(m)
    return m


def legend_html(options: Iterable[CategoryOption], expanded: bool) -> str:
    if not expanded:
        return "<div class='legend legend-collapsed'>?</div>"
    rows = []
    for opt in options:
        rows.append(
            "<div class='legend-row'>"
            f"<span class='legend-dot' style='background:{html.escape(opt.color)}'></span>"
            f"<span>{html.escape(opt.label)}</span></div>"
        )
    return "<div class='legend'>" + "".join(rows) + "</div>"
