"""
Report form for crowdsourced pollution reports
Collects one pending report, validates it and hands it to a submit callback
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from src.core.errors import (
    FormBusyError,
    InvalidFileError,
    LocationError,
    PollutionWatchError,
    ValidationError,
)
from src.core.geo_utils import Coordinates, to_coordinates
from src.crowdsource.geolocation import GeolocationProvider
from src.crowdsource.previews import PreviewStore
from src.crowdsource.reports import ImageFile, PendingReport, ReportSubmission
from src.crowdsource.validation import coerce_pollution_type, validate_image, validate_report

logger = logging.getLogger(__name__)


class FormState(Enum):
    """Lifecycle of a submit attempt. IDLE is both initial and terminal."""
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"


SubmitCallback = Callable[[ReportSubmission], Awaitable[bool]]


class ReportForm:
    """
    Form holding a single pending report.

    At most one submission is in flight per form. While it is, every
    input is disabled and mutating calls raise FormBusyError.
    """

    def __init__(
        self,
        on_submit: SubmitCallback,
        previews: Optional[PreviewStore] = None,
        geolocation: Optional[GeolocationProvider] = None,
    ):
        """
        Initialize form.

        Args:
            on_submit: Coroutine receiving the validated submission and
                returning True on success
            previews: Store for image preview URLs
            geolocation: Provider used by use_current_location()
        """
        self.on_submit = on_submit
        self.previews = previews or PreviewStore()
        self.geolocation = geolocation

        self.pending = PendingReport()
        self.state = FormState.IDLE
        self.error: Optional[str] = None
        self.preview_url: Optional[str] = None
        self.is_locating = False
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @property
    def is_submitting(self) -> bool:
        return self.state == FormState.SUBMITTING

    @property
    def disabled(self) -> bool:
        return self.is_submitting

    @property
    def coordinates(self) -> Optional[Coordinates]:
        return to_coordinates(self.pending.latitude, self.pending.longitude)

    def _ensure_editable(self) -> None:
        if self.is_submitting:
            raise FormBusyError()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_pollution_type(self, value: Any) -> None:
        self._ensure_editable()
        self.pending.pollution_type = coerce_pollution_type(value)

    def set_description(self, text: Optional[str]) -> None:
        self._ensure_editable()
        self.pending.description = text or ""

    def set_coordinates(self, latitude: Any, longitude: Any) -> None:
        """Store coordinates as entered. They are checked on submit."""
        self._ensure_editable()
        self.pending.latitude = latitude
        self.pending.longitude = longitude

    def select_image(self, image: Optional[ImageFile]) -> Optional[str]:
        """
        Select (or clear, with None) the image to attach.

        The previous preview URL is released in every case. A file that
        is not an image is rejected and not kept.

        Returns:
            Preview URL for the new selection, or None

        Raises:
            InvalidFileError: If the file's media type is not image/*
        """
        self._ensure_editable()
        self._release_preview()
        self.pending.image = None

        if image is None:
            return None

        try:
            validate_image(image)
        except InvalidFileError as e:
            self.error = e.message
            raise

        self.pending.image = image
        self.preview_url = self.previews.create_url(image.data, image.content_type)
        self.error = None
        return self.preview_url

    async def use_current_location(self) -> Optional[Coordinates]:
        """
        Fill the coordinates from the geolocation provider.

        Overwrites whatever was entered before. On failure the coordinates
        are cleared and the provider's message is shown as the form error.

        Returns:
            The resolved coordinates, or None on failure
        """
        self._ensure_editable()
        provider = self.geolocation or GeolocationProvider()

        self.is_locating = True
        try:
            coords = await provider.acquire_location()
        except LocationError as e:
            self.pending.latitude = None
            self.pending.longitude = None
            self.error = e.message
            return None
        finally:
            self.is_locating = False

        self.pending.latitude = coords.latitude
        self.pending.longitude = coords.longitude
        self.error = None
        return coords

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self) -> bool:
        """
        Validate the pending report and hand it to on_submit.

        Returns:
            True if the callback reported success. Validation failures,
            a concurrent submit and callback failures return False with
            ``error`` set.
        """
        if self.is_submitting:
            logger.warning("Submit ignored: a submission is already in progress")
            return False

        self.state = FormState.VALIDATING
        self.error = None

        try:
            submission = validate_report(self.pending)
        except (ValidationError, InvalidFileError) as e:
            self.error = e.message
            self.state = FormState.IDLE
            return False

        self.state = FormState.SUBMITTING
        try:
            ok = await self.on_submit(submission)
        except PollutionWatchError as e:
            self.error = e.message
            ok = False
        finally:
            self.state = FormState.IDLE

        if ok:
            self.reset()
        elif self.error is None:
            self.error = "Submission failed."

        return ok

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Discard the pending report and start a fresh one."""
        self._release_preview()
        self.pending = PendingReport()
        self.error = None

    def close(self) -> None:
        """Release held resources. Safe to call more than once."""
        if self._closed:
            return
        self._release_preview()
        self.pending = PendingReport()
        self._closed = True

    def _release_preview(self) -> None:
        if self.preview_url:
            self.previews.revoke_url(self.preview_url)
            self.preview_url = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "disabled": self.disabled,
            "pollution_type": self.pending.pollution_type.value,
            "description": self.pending.description,
            "latitude": self.pending.latitude,
            "longitude": self.pending.longitude,
            "has_image": self.pending.image is not None,
            "preview_url": self.preview_url,
            "error": self.error,
        }
