"""
Map View Module for PollutionWatch

Owns one long-lived Folium map with a single marker layer holding every
stored report that has usable coordinates. The layer is rebuilt from the
backend on each refresh.
"""

import html
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import folium

from src.core.constants import (
    DEFAULT_MAP_CENTER,
    DEFAULT_MAP_ZOOM,
    DEFAULT_MARKER_COLOR,
    MSG_NO_DESCRIPTION,
    MSG_UNKNOWN_TIME,
    POLLUTION_TYPE_COLORS,
    POPUP_TIME_FORMAT,
    REPORTS_PAGE_SIZE,
)
from src.core.errors import FetchError
from src.crowdsource.reports import StoredReport
from src.ingestion.backend_gateway import BackendGateway

logger = logging.getLogger(__name__)

MARKER_LAYER_NAME = "Pollution Reports"


@dataclass
class RenderedMarker:
    """A marker currently on the map."""
    report_id: str
    latitude: float
    longitude: float
    category: str
    popup_html: str

    @property
    def position(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


def get_category_color(category: str) -> str:
    """Get marker color for a report category."""
    return POLLUTION_TYPE_COLORS.get(category, DEFAULT_MARKER_COLOR)


def format_timestamp(report: StoredReport) -> str:
    if report.created_at is None:
        return MSG_UNKNOWN_TIME
    return report.created_at.strftime(POPUP_TIME_FORMAT)


def build_popup_html(report: StoredReport) -> str:
    """
    Build the popup body for one report.

    Shows the category, the description (or a placeholder), a clickable
    thumbnail when the report has a photo, and the report time.
    """
    category = html.escape(report.category_label or "Unknown")
    description = html.escape(report.description.strip()) if report.description.strip() else (
        f"<i>{MSG_NO_DESCRIPTION}</i>"
    )

    image_html = ""
    if report.image_url:
        url = html.escape(report.image_url, quote=True)
        image_html = (
            f'<a href="{url}" target="_blank" rel="noopener noreferrer">'
            f'<img src="{url}" alt="Report photo" '
            f'style="width: 100%; max-height: 150px; object-fit: cover; margin-top: 5px; border-radius: 4px;">'
            f"</a><br>"
        )

    return f"""
    <div style="font-family: Arial; min-width: 200px;">
        <h4 style="margin: 0;">{category}</h4>
        <hr style="margin: 5px 0;">
        <p style="margin: 0 0 5px 0;">{description}</p>
        {image_html}
        <small style="color: #666;">Reported: {html.escape(format_timestamp(report))}</small>
    </div>
    """


LEGEND_HTML = """
<div style="position: fixed;
            bottom: 30px; right: 30px;
            background-color: rgba(255,255,255,0.9);
            padding: 10px;
            border-radius: 5px;
            z-index: 9999;
            font-family: Arial;
            font-size: 12px;">
    <b>Pollution Type</b><br>
    {rows}
</div>
"""


def _legend_html() -> str:
    rows = "".join(
        f'<span style="color: {color};">&#9679;</span> {html.escape(category)}<br>'
        for category, color in POLLUTION_TYPE_COLORS.items()
    )
    return LEGEND_HTML.format(rows=rows)


class MapView:
    """
    Map of stored reports.

    Lifecycle:
        view = MapView(gateway)
        await view.initialize()   # once per mount
        await view.refresh()      # after each successful insert
        view.teardown()           # release; initialize() may run again

    Usable as ``async with MapView(gateway) as view``.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        center: Tuple[float, float] = DEFAULT_MAP_CENTER,
        zoom: int = DEFAULT_MAP_ZOOM,
        page_size: int = REPORTS_PAGE_SIZE,
    ):
        """
        Initialize map view.

        Args:
            gateway: Backend to list reports from
            center: Initial map center (lat, lon)
            zoom: Initial zoom level (1-18)
            page_size: Maximum number of reports fetched per refresh
        """
        self.gateway = gateway
        self.center = center
        self.zoom = zoom
        self.page_size = page_size

        self._map: Optional[folium.Map] = None
        self._marker_layer: Optional[folium.FeatureGroup] = None
        self.markers: List[RenderedMarker] = []
        self.skipped_count = 0
        self.is_loading = False
        self.error: Optional[str] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, *args):
        self.teardown()

    @property
    def is_initialized(self) -> bool:
        return self._map is not None

    @property
    def map(self) -> Optional[folium.Map]:
        return self._map

    async def initialize(self) -> None:
        """
        Create the map and load the current reports.

        Calls made while the map already exists do nothing. A failed
        initial load is kept in ``error``; the map stays usable.
        """
        if self._map is not None:
            return

        report_map = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom,
            tiles=None,
        )

        folium.TileLayer(
            tiles="OpenStreetMap",
            name="Street",
        ).add_to(report_map)

        report_map.get_root().html.add_child(folium.Element(_legend_html()))

        self._map = report_map
        self._swap_marker_layer(folium.FeatureGroup(name=MARKER_LAYER_NAME))
        logger.info(f"Map initialized at {self.center}, zoom {self.zoom}")

        try:
            await self.refresh()
        except FetchError:
            # Recorded in self.error by refresh()
            pass

    async def refresh(self) -> None:
        """
        Re-fetch reports and rebuild the marker layer.

        Before initialize() this only logs a warning.

        Raises:
            FetchError: If listing fails; existing markers are kept
        """
        if self._map is None or self._marker_layer is None:
            logger.warning("refresh() called before the map was initialized; ignoring")
            return

        self.is_loading = True
        try:
            rows = await self.gateway.list_reports(limit=self.page_size)
        except FetchError as e:
            self.error = e.message
            raise
        finally:
            self.is_loading = False

        self.error = None
        self._render_markers(rows)

    def _render_markers(self, rows: List[Dict[str, Any]]) -> None:
        if self._map is None:
            return

        layer = folium.FeatureGroup(name=MARKER_LAYER_NAME)
        markers: List[RenderedMarker] = []
        skipped = 0

        for row in rows:
            try:
                report = StoredReport.from_record(row)
                if report is None:
                    skipped += 1
                    continue
                marker, popup_html = self._build_marker(report)
                marker.add_to(layer)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                skipped += 1
                logger.warning(f"Skipping malformed report {_row_id(row)}: {e}")
                continue

            markers.append(RenderedMarker(
                report_id=report.id,
                latitude=report.latitude,
                longitude=report.longitude,
                category=report.category_label,
                popup_html=popup_html,
            ))

        self._swap_marker_layer(layer)
        self.markers = markers
        self.skipped_count = skipped

        if skipped:
            logger.info(f"Skipped {skipped} reports without usable coordinates")
        logger.info(f"Rendered {len(markers)} report markers")

    def _swap_marker_layer(self, layer: folium.FeatureGroup) -> None:
        """Replace the marker layer on the map with a freshly built one."""
        old = self._marker_layer
        if old is not None:
            # branca elements have no public remove; children are keyed by name
            self._map._children.pop(old.get_name(), None)
        layer.add_to(self._map)
        self._marker_layer = layer

    def _build_marker(self, report: StoredReport) -> Tuple[folium.Marker, str]:
        popup_html = build_popup_html(report)
        marker = folium.Marker(
            location=[report.latitude, report.longitude],
            popup=folium.Popup(popup_html, max_width=300),
            tooltip=html.escape(report.category_label),
            icon=folium.Icon(color=get_category_color(report.category_label), icon="info-sign"),
        )
        return marker, popup_html

    def render_html(self) -> str:
        """Render the map as a standalone HTML document."""
        if self._map is None:
            return (
                "<!DOCTYPE html><html><body style=\"font-family: Arial;\">"
                "<p>Map is not initialized.</p></body></html>"
            )
        return self._map.get_root().render()

    def save(self, output_path: str) -> str:
        """
        Save the map to an HTML file.

        Returns:
            Path to saved file
        """
        if self._map is None:
            raise RuntimeError("Map is not initialized")
        self._map.save(output_path)
        logger.info(f"Map saved to {output_path}")
        return output_path

    def teardown(self) -> None:
        """Release the map and every marker reference. Safe to call repeatedly."""
        if self._map is not None:
            logger.info("Map torn down")
        self._map = None
        self._marker_layer = None
        self.markers = []
        self.skipped_count = 0
        self.is_loading = False
        self.error = None


def _row_id(row: Any) -> str:
    if isinstance(row, dict):
        return str(row.get("id", "?"))
    return "?"
