"""
PollutionWatch - Error Types

Every failure the report workflow can surface is a PollutionWatchError
carrying a kind tag and a human-readable message. Callers branch on
``kind`` rather than on message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Top-level error categories."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    LOCATION = "location"
    INVALID_FILE = "invalid_file"
    UPLOAD = "upload"
    INSERT = "insert"
    FETCH = "fetch"


class LocationErrorKind(str, Enum):
    """Reasons a location request can fail."""
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


class PollutionWatchError(Exception):
    """Base class for all workflow errors."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"kind": self.kind.value, "message": self.message}


class ConfigurationError(PollutionWatchError):
    """Required configuration is missing. Fatal."""
    kind = ErrorKind.CONFIGURATION


class ValidationError(PollutionWatchError):
    """Pending report failed local validation. The form stays open."""
    kind = ErrorKind.VALIDATION


class FormBusyError(ValidationError):
    """The form was mutated or resubmitted while a submit was in flight."""

    def __init__(self, message: str = "A submission is already in progress."):
        super().__init__(message)


class InvalidFileError(PollutionWatchError):
    """Selected file is not an image."""
    kind = ErrorKind.INVALID_FILE


class LocationError(PollutionWatchError):
    """Location could not be acquired."""
    kind = ErrorKind.LOCATION

    def __init__(self, location_kind: LocationErrorKind, message: str):
        super().__init__(message)
        self.location_kind = location_kind

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["location_kind"] = self.location_kind.value
        return data


class BackendError(PollutionWatchError):
    """
    Failure reported by the managed backend.

    The message is prefixed with the action that failed and the
    backend's own message is appended verbatim.
    """

    prefix = "Backend request failed"

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(f"{self.prefix}: {detail}")
        self.detail = detail
        self.status_code = status_code


class UploadError(BackendError):
    kind = ErrorKind.UPLOAD
    prefix = "Failed to upload image"


class InsertError(BackendError):
    kind = ErrorKind.INSERT
    prefix = "Failed to submit report"


class FetchError(BackendError):
    kind = ErrorKind.FETCH
    prefix = "Failed to load reports"
