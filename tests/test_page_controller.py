"""
Tests for the submission pipeline
"""
import asyncio
import re

import sys
sys.path.insert(0, '.')

from src.core.constants import MSG_IMAGE_REQUIRED, MSG_SUBMIT_SUCCESS
from src.crowdsource.page_controller import PageController, StatusLevel
from src.crowdsource.previews import PreviewStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def run(coro):
    return asyncio.run(coro)


def fill(controller, image=None, description="Oil on the water"):
    controller.form.set_pollution_type("Water Pollution")
    controller.form.set_description(description)
    controller.form.set_coordinates("27.7", "85.3")
    if image is not None:
        controller.form.select_image(image)


class TestPageController:
    """Test suite for PageController."""

    def setup_method(self):
        self.clock = FakeClock()

    def make(self, gateway, **kwargs):
        controller = PageController(gateway, clock=self.clock, **kwargs)
        run(controller.mount())
        return controller

    def test_mount_initializes_map(self, gateway, sample_rows):
        gateway.rows = sample_rows
        controller = self.make(gateway)

        assert controller.map_view.is_initialized
        assert len(controller.map_view.markers) == 3

    def test_submit_with_image_runs_in_order(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.calls.clear()
        fill(controller, jpeg_image)

        assert run(controller.submit()) is True

        assert gateway.call_names() == ["upload", "insert", "list"]
        path = gateway.calls[0][1]
        assert re.fullmatch(r"public/\d{13}_[a-z0-9]{6}\.jpg", path)

        record = gateway.calls[1][1]
        assert record == {
            "latitude": 27.7,
            "longitude": 85.3,
            "pollution_type": "Water Pollution",
            "description": "Oil on the water",
            "image_url": f"https://storage.test/public/{path}",
        }

        assert controller.status.level == StatusLevel.SUCCESS
        assert controller.status.text == MSG_SUBMIT_SUCCESS
        assert len(controller.map_view.markers) == 1

    def test_upload_failure_aborts_before_insert(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.calls.clear()
        gateway.upload_error = "Bucket not found"
        fill(controller, jpeg_image)

        assert run(controller.submit()) is False

        assert gateway.call_names() == ["upload"]
        assert controller.status.level == StatusLevel.ERROR
        assert controller.status.text == "Failed to upload image: Bucket not found"
        # Data kept for a manual retry
        assert controller.form.pending.description == "Oil on the water"
        assert controller.form.pending.image is jpeg_image

    def test_insert_failure_skips_refresh(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.calls.clear()
        gateway.insert_error = "new row violates row-level security policy"
        fill(controller, jpeg_image)

        assert run(controller.submit()) is False

        assert gateway.call_names() == ["upload", "insert"]
        assert controller.status.level == StatusLevel.ERROR
        assert controller.status.text.startswith("Failed to submit report: ")
        assert "row-level security" in controller.status.text

    def test_upload_without_public_url_inserts_null(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.public_url = False
        fill(controller, jpeg_image)

        assert run(controller.submit()) is True
        record = [c for n, c in gateway.calls if n == "insert"][0]
        assert record["image_url"] is None

    def test_submission_without_image_not_persisted_by_default(self, gateway):
        controller = self.make(gateway)
        gateway.calls.clear()
        fill(controller)

        assert run(controller.submit()) is False

        assert gateway.calls == []
        assert controller.status.level == StatusLevel.INFO
        assert controller.status.text == MSG_IMAGE_REQUIRED

    def test_submission_without_image_when_allowed(self, gateway):
        controller = self.make(gateway, require_image=False)
        gateway.calls.clear()
        fill(controller)

        assert run(controller.submit()) is True
        assert gateway.call_names() == ["insert", "list"]

    def test_validation_failure_makes_no_backend_call(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.calls.clear()
        fill(controller, jpeg_image, description="   ")

        assert run(controller.submit()) is False
        assert gateway.calls == []
        assert controller.status is None

    def test_validation_failure_clears_previous_status(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.insert_error = "rls violation"
        fill(controller, jpeg_image)
        assert run(controller.submit()) is False
        assert controller.status.level == StatusLevel.ERROR

        fill(controller, jpeg_image, description="   ")
        assert run(controller.submit()) is False

        assert controller.status is None
        assert controller.form.error == "Please fill in all required fields."

    def test_refresh_failure_after_insert_still_succeeds(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.fetch_error = "upstream timeout"
        fill(controller, jpeg_image)

        assert run(controller.submit()) is True
        assert controller.status.level == StatusLevel.SUCCESS
        assert controller.map_view.error == "Failed to load reports: upstream timeout"

    def test_status_clears_after_seven_seconds(self, gateway, jpeg_image):
        controller = self.make(gateway)
        fill(controller, jpeg_image)
        run(controller.submit())

        self.clock.now += 6.5
        assert controller.status is not None
        self.clock.now += 0.5
        assert controller.status is None

    def test_error_status_also_clears(self, gateway, jpeg_image):
        controller = self.make(gateway)
        gateway.upload_error = "nope"
        fill(controller, jpeg_image)
        run(controller.submit())

        self.clock.now += 7
        assert controller.status is None

    def test_round_trip_renders_marker(self, gateway):
        controller = self.make(gateway, require_image=False)
        controller.form.set_pollution_type("Sewage Leak")
        controller.form.set_description("x")
        controller.form.set_coordinates(27.7, 85.3)

        assert run(controller.submit()) is True

        markers = controller.map_view.markers
        assert len(markers) == 1
        assert markers[0].position == (27.7, 85.3)
        assert "Sewage Leak" in markers[0].popup_html
        assert ">x<" in markers[0].popup_html

    def test_teardown_releases_everything(self, gateway, jpeg_image):
        previews = PreviewStore()
        controller = self.make(gateway, previews=previews)
        controller.form.select_image(jpeg_image)

        controller.teardown()
        controller.teardown()

        assert len(previews) == 0
        assert not controller.map_view.is_initialized

    def test_to_dict(self, gateway, sample_rows):
        gateway.rows = sample_rows
        controller = self.make(gateway)

        data = controller.to_dict()
        assert data["status"] is None
        assert data["form"]["state"] == "idle"
        assert data["map"]["markers"] == 3
