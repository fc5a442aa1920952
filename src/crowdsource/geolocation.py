"""
Geolocation for report forms

Wraps a position source (in production the browser's location API,
whose result the page posts back) and turns its outcome into either
Coordinates or a classified LocationError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from src.core.errors import LocationError, LocationErrorKind
from src.core.geo_utils import Coordinates, to_coordinates

logger = logging.getLogger(__name__)


LOCATION_ERROR_MESSAGES: Dict[LocationErrorKind, str] = {
    LocationErrorKind.PERMISSION_DENIED: "Location permission denied. Please allow location access or enter coordinates manually.",
    LocationErrorKind.POSITION_UNAVAILABLE: "Location information is unavailable.",
    LocationErrorKind.TIMEOUT: "The request to get your location timed out.",
    LocationErrorKind.UNSUPPORTED: "Geolocation is not supported by your browser.",
    LocationErrorKind.UNKNOWN: "An unknown error occurred while getting your location.",
}

# W3C GeolocationPositionError codes
POSITION_ERROR_CODES: Dict[int, LocationErrorKind] = {
    1: LocationErrorKind.PERMISSION_DENIED,
    2: LocationErrorKind.POSITION_UNAVAILABLE,
    3: LocationErrorKind.TIMEOUT,
}


@dataclass(frozen=True)
class PositionOptions:
    """Options for a single-shot position request."""
    enable_high_accuracy: bool = True
    timeout_seconds: float = 10.0
    maximum_age_seconds: float = 0.0

    def to_js(self) -> Dict[str, Any]:
        """Options in the shape navigator.geolocation expects."""
        return {
            "enableHighAccuracy": self.enable_high_accuracy,
            "timeout": int(self.timeout_seconds * 1000),
            "maximumAge": int(self.maximum_age_seconds * 1000),
        }


class PositionError(Exception):
    """Failure raised by a position source, tagged with a W3C error code."""

    def __init__(self, code: int, message: str = ""):
        super().__init__(message or f"position error {code}")
        self.code = code
        self.message = message


PositionSource = Callable[[PositionOptions], Awaitable[Any]]


def location_error(kind: LocationErrorKind) -> LocationError:
    return LocationError(kind, LOCATION_ERROR_MESSAGES[kind])


class GeolocationProvider:
    """
    Single-shot location lookup.

    Usage:
        provider = GeolocationProvider(source)
        coords = await provider.acquire_location()

    The provider enforces the timeout itself, so a source that never
    answers still fails with TIMEOUT.
    """

    def __init__(
        self,
        source: Optional[PositionSource] = None,
        options: Optional[PositionOptions] = None,
    ):
        """
        Initialize provider.

        Args:
            source: Coroutine function returning a position; None means
                the platform has no location support
            options: Request options (high accuracy, 10 s timeout, no cache)
        """
        self.source = source
        self.options = options or PositionOptions()

    @property
    def is_supported(self) -> bool:
        return self.source is not None

    async def acquire_location(self) -> Coordinates:
        """
        Request the current position once.

        Returns:
            Coordinates of the device

        Raises:
            LocationError: With one of the LocationErrorKind values
        """
        if self.source is None:
            raise location_error(LocationErrorKind.UNSUPPORTED)

        try:
            position = await asyncio.wait_for(
                self.source(self.options),
                timeout=self.options.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.info(f"Location request timed out after {self.options.timeout_seconds}s")
            raise location_error(LocationErrorKind.TIMEOUT)
        except PositionError as e:
            kind = POSITION_ERROR_CODES.get(e.code, LocationErrorKind.UNKNOWN)
            logger.info(f"Location request failed: {kind.value} ({e})")
            raise location_error(kind)
        except LocationError:
            raise
        except Exception as e:
            logger.warning(f"Location source raised unexpectedly: {e}")
            raise location_error(LocationErrorKind.UNKNOWN)

        coords = _extract_coordinates(position)
        if coords is None:
            logger.warning(f"Location source returned unusable position: {position!r}")
            raise location_error(LocationErrorKind.POSITION_UNAVAILABLE)

        return coords


def _extract_coordinates(position: Any) -> Optional[Coordinates]:
    """Accept Coordinates, (lat, lon) pairs or {"latitude", "longitude"} mappings."""
    if isinstance(position, Coordinates):
        return to_coordinates(position.latitude, position.longitude)
    if isinstance(position, dict):
        return to_coordinates(position.get("latitude"), position.get("longitude"))
    if isinstance(position, (tuple, list)) and len(position) == 2:
        return to_coordinates(position[0], position[1])
    return None


class ReportedPositionSource:
    """
    Position source backed by what the page's geolocation callback posted.

    The browser performs the actual lookup with the provider's options;
    this replays the outcome (coordinates or a W3C error code).
    """

    def __init__(
        self,
        latitude: Any = None,
        longitude: Any = None,
        error_code: Optional[int] = None,
        error_message: str = "",
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.error_code = error_code
        self.error_message = error_message

    async def __call__(self, options: PositionOptions) -> Dict[str, Any]:
        if self.error_code is not None:
            raise PositionError(self.error_code, self.error_message)
        return {"latitude": self.latitude, "longitude": self.longitude}
