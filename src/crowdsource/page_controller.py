"""
Page controller for the report workflow
Runs submit -> upload -> insert -> refresh and owns the status message
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from src.core.constants import MSG_IMAGE_REQUIRED, MSG_SUBMIT_SUCCESS
from src.core.errors import BackendError, FetchError
from src.crowdsource.geolocation import GeolocationProvider
from src.crowdsource.previews import PreviewStore
from src.crowdsource.report_form import ReportForm
from src.crowdsource.reports import ReportSubmission
from src.ingestion.backend_gateway import BackendGateway, build_image_path
from src.visualization.map_view import MapView

logger = logging.getLogger(__name__)


class StatusLevel(Enum):
    """Color class of the status message."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StatusMessage:
    level: StatusLevel
    text: str
    set_at: float

    def to_dict(self) -> dict:
        return {"level": self.level.value, "text": self.text}


class PageController:
    """
    Composes the report form and the map.

    A submission is a strict sequence with early exit on failure:
    upload the photo, insert the record, refresh the map. The single
    status message clears itself ``status_clear_seconds`` after it is set.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        map_view: Optional[MapView] = None,
        previews: Optional[PreviewStore] = None,
        geolocation: Optional[GeolocationProvider] = None,
        status_clear_seconds: float = 7.0,
        require_image: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize controller.

        Args:
            gateway: Backend used for uploads, inserts and listing
            map_view: Map to refresh after inserts (built from gateway if None)
            previews: Preview store shared with the form
            geolocation: Provider for the form's "use my location"
            status_clear_seconds: Lifetime of a status message
            require_image: Only persist reports that carry a photo
            clock: Monotonic time source
        """
        self.gateway = gateway
        self.map_view = map_view or MapView(gateway)
        self.form = ReportForm(
            on_submit=self.handle_submit,
            previews=previews,
            geolocation=geolocation,
        )
        self.status_clear_seconds = status_clear_seconds
        self.require_image = require_image
        self._clock = clock
        self._status: Optional[StatusMessage] = None

    # ------------------------------------------------------------------
    # Status slot
    # ------------------------------------------------------------------

    @property
    def status(self) -> Optional[StatusMessage]:
        """Current status, or None once it has expired."""
        if self._status is None:
            return None
        if self._clock() - self._status.set_at >= self.status_clear_seconds:
            self._status = None
        return self._status

    def set_status(self, level: StatusLevel, text: str) -> None:
        self._status = StatusMessage(level=level, text=text, set_at=self._clock())

    def clear_status(self) -> None:
        self._status = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> None:
        await self.map_view.initialize()

    def teardown(self) -> None:
        self.form.close()
        self.map_view.teardown()
        self._status = None

    # ------------------------------------------------------------------
    # Submission pipeline
    # ------------------------------------------------------------------

    async def handle_submit(self, submission: ReportSubmission) -> bool:
        """
        Persist a validated submission and refresh the map.

        Returns:
            True if the report was stored
        """
        image_url: Optional[str] = None

        if submission.image is not None:
            path = build_image_path(submission.image.filename, submission.image.content_type)
            try:
                image_url = await self.gateway.upload_image(
                    submission.image.data, path, submission.image.content_type
                )
            except BackendError as e:
                logger.error(f"Image upload failed: {e.message}")
                self.set_status(StatusLevel.ERROR, e.message)
                return False
            if not image_url:
                logger.warning(f"Upload of {path} returned no public URL")
        elif self.require_image:
            # Photo-less reports are only stored when require_image is off
            logger.warning("Submission without image not persisted (require_image=True)")
            self.set_status(StatusLevel.INFO, MSG_IMAGE_REQUIRED)
            return False

        record = submission.to_record(image_url=image_url)
        try:
            await self.gateway.insert_report(record)
        except BackendError as e:
            logger.error(f"Report insert failed: {e.message}")
            self.set_status(StatusLevel.ERROR, e.message)
            return False

        logger.info(f"Report stored: {submission.pollution_type.value} at "
                    f"({submission.latitude}, {submission.longitude})")
        self.set_status(StatusLevel.SUCCESS, MSG_SUBMIT_SUCCESS)

        try:
            await self.map_view.refresh()
        except FetchError as e:
            # The insert succeeded; the map shows its own load error
            logger.warning(f"Map refresh after insert failed: {e.message}")

        return True

    async def submit(self) -> bool:
        """
        Submit the form.

        The status slot is cleared first, so after a validation failure
        it stays empty and the failure is reported by ``form.error``.
        """
        self.clear_status()
        return await self.form.submit()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        status = self.status
        return {
            "status": status.to_dict() if status else None,
            "form": self.form.to_dict(),
            "map": {
                "initialized": self.map_view.is_initialized,
                "loading": self.map_view.is_loading,
                "markers": len(self.map_view.markers),
                "error": self.map_view.error,
            },
        }
