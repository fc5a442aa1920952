"""
Tests for the report map
"""
import asyncio
import pytest

import folium

import sys
sys.path.insert(0, '.')

from src.core.constants import DEFAULT_MAP_CENTER, MSG_NO_DESCRIPTION, MSG_UNKNOWN_TIME
from src.core.errors import FetchError
from src.crowdsource.reports import StoredReport, parse_timestamp
from src.visualization.map_view import MapView, build_popup_html, get_category_color


def run(coro):
    return asyncio.run(coro)


class TestPopup:
    """Test popup content."""

    def test_full_popup(self, sample_rows):
        report = StoredReport.from_record(sample_rows[0])
        popup = build_popup_html(report)

        assert "Trash Dump" in popup
        assert "Pile of plastic near the river bank" in popup
        assert f'href="{sample_rows[0]["image_url"]}"' in popup
        assert "<img" in popup
        assert "Feb 10, 2025 08:15 AM" in popup

    def test_separators_and_placeholder(self, sample_rows):
        report = StoredReport.from_record(sample_rows[1])
        popup = build_popup_html(report)

        assert "Sewage Leak" in popup
        assert "Sewage_Leak" not in popup
        assert MSG_NO_DESCRIPTION in popup
        assert "<img" not in popup

    def test_missing_timestamp(self):
        report = StoredReport.from_record({"id": "x", "latitude": 1, "longitude": 2})
        assert MSG_UNKNOWN_TIME in build_popup_html(report)

    @pytest.mark.parametrize("text,micro", [
        ("2025-02-10T08:15:00.12345+00:00", 123450),
        ("2025-02-10T08:15:00.1Z", 100000),
        ("2025-02-10T08:15:00.1234567+00:00", 123456),
        ("2025-02-10T08:15:00+00:00", 0),
    ])
    def test_timestamp_fraction_lengths(self, text, micro):
        parsed = parse_timestamp(text)

        assert parsed is not None
        assert parsed.microsecond == micro
        assert parsed.utcoffset().total_seconds() == 0

    def test_description_is_escaped(self):
        report = StoredReport.from_record({
            "id": "x", "latitude": 1, "longitude": 2,
            "pollution_type": "Other", "description": "<script>alert(1)</script>",
        })
        popup = build_popup_html(report)

        assert "<script>" not in popup
        assert "&lt;script&gt;" in popup

    def test_category_is_escaped_in_tooltip(self, gateway):
        gateway.rows = [{
            "id": "x", "latitude": 1, "longitude": 2,
            "pollution_type": "<img src=x onerror=alert(1)>", "description": "y",
        }]
        view = MapView(gateway)
        run(view.initialize())

        page = view.render_html()

        assert "<img src=x onerror=alert(1)>" not in page
        assert "&lt;img src=x onerror=alert(1)&gt;" in page

    def test_category_color(self):
        assert get_category_color("Water Pollution") == "blue"
        assert get_category_color("Mystery") == "cadetblue"


class TestMapView:
    """Test suite for MapView."""

    def test_initialize_creates_map_and_fetches(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)

        run(view.initialize())

        assert view.is_initialized
        assert view.map.location == list(DEFAULT_MAP_CENTER)
        assert gateway.calls == [("list", 500)]
        assert [m.report_id for m in view.markers] == ["a1", "a2", "a3"]

    def test_initialize_is_reentrant(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)

        run(view.initialize())
        first_map = view.map
        run(view.initialize())

        assert view.map is first_map
        assert gateway.call_names() == ["list"]

    def test_refresh_before_initialize_is_noop(self, gateway, caplog):
        view = MapView(gateway)

        with caplog.at_level("WARNING"):
            run(view.refresh())

        assert gateway.calls == []
        assert view.markers == []
        assert "before the map was initialized" in caplog.text

    def test_invalid_coordinates_excluded(self, gateway, sample_rows, bad_rows):
        gateway.rows = bad_rows + sample_rows
        view = MapView(gateway)

        run(view.initialize())

        assert len(view.markers) == len(sample_rows)
        assert view.skipped_count == len(bad_rows)

    def test_malformed_rows_do_not_blank_map(self, gateway, sample_rows):
        gateway.rows = [None, "garbage", {"id": "z"}] + sample_rows
        view = MapView(gateway)

        run(view.initialize())

        assert len(view.markers) == 3
        assert view.skipped_count == 3

    def test_refresh_is_idempotent(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)
        run(view.initialize())

        run(view.refresh())
        first = [m.position for m in view.markers]
        layer_children = len(view._marker_layer._children)
        run(view.refresh())
        second = [m.position for m in view.markers]

        assert first == second
        assert len(second) == 3
        assert len(view._marker_layer._children) == layer_children == 3
        layers = [c for c in view.map._children.values() if isinstance(c, folium.FeatureGroup)]
        assert layers == [view._marker_layer]

    def test_refresh_replaces_marker_set(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)
        run(view.initialize())

        gateway.rows = sample_rows[:1]
        run(view.refresh())

        assert [m.report_id for m in view.markers] == ["a1"]

    def test_initial_fetch_failure_is_recorded(self, gateway):
        gateway.fetch_error = "permission denied for table"
        view = MapView(gateway)

        run(view.initialize())

        assert view.is_initialized
        assert view.error == "Failed to load reports: permission denied for table"
        assert view.is_loading is False

    def test_refresh_failure_keeps_markers(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)
        run(view.initialize())

        gateway.fetch_error = "offline"
        with pytest.raises(FetchError):
            run(view.refresh())

        assert len(view.markers) == 3
        assert view.error is not None

        gateway.fetch_error = None
        run(view.refresh())
        assert view.error is None

    def test_teardown_and_remount(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)
        run(view.initialize())

        view.teardown()
        view.teardown()
        assert not view.is_initialized
        assert view.markers == []

        run(view.initialize())
        assert view.is_initialized
        assert len(view.markers) == 3

    def test_context_manager(self, gateway, sample_rows):
        gateway.rows = sample_rows

        async def scenario():
            async with MapView(gateway) as view:
                assert view.is_initialized
            return view

        view = run(scenario())
        assert not view.is_initialized

    def test_render_html(self, gateway, sample_rows):
        gateway.rows = sample_rows
        view = MapView(gateway)
        assert "not initialized" in view.render_html()

        run(view.initialize())
        page = view.render_html()

        assert "leaflet" in page.lower()
        assert "Brick kiln smoke" in page
        assert "Pollution Type" in page

    def test_save(self, gateway, sample_rows, tmp_path):
        gateway.rows = sample_rows
        view = MapView(gateway)
        run(view.initialize())

        output = view.save(str(tmp_path / "map.html"))

        assert (tmp_path / "map.html").read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
        assert output.endswith("map.html")


class TestGenerateMapScript:
    """Test the map export script."""

    def test_exits_when_backend_not_configured(self, monkeypatch, tmp_path):
        import generate_map
        from src.core.config import Settings

        monkeypatch.setattr(generate_map, "get_settings",
                            lambda: Settings(backend_url=None, backend_anon_key=None, _env_file=None))
        monkeypatch.setattr(sys, "argv", ["generate_map.py", str(tmp_path / "map.html")])

        with pytest.raises(SystemExit) as exc:
            generate_map.main()

        assert exc.value.code == 1
        assert not (tmp_path / "map.html").exists()
