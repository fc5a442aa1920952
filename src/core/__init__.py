"""
PollutionWatch - Core Utilities
Central configuration, error types, constants and coordinate helpers.
"""

from src.core.config import settings
from src.core.constants import (
    PollutionType,
    DEFAULT_POLLUTION_TYPE,
    DEFAULT_MAP_CENTER,
    REPORTS_PAGE_SIZE,
)
from src.core.errors import (
    ErrorKind,
    PollutionWatchError,
    ConfigurationError,
    ValidationError,
    LocationError,
    InvalidFileError,
    UploadError,
    InsertError,
    FetchError,
)
from src.core.geo_utils import (
    Coordinates,
    parse_coordinate,
    to_coordinates,
)

__all__ = [
    "settings",
    "PollutionType",
    "DEFAULT_POLLUTION_TYPE",
    "DEFAULT_MAP_CENTER",
    "REPORTS_PAGE_SIZE",
    "ErrorKind",
    "PollutionWatchError",
    "ConfigurationError",
    "ValidationError",
    "LocationError",
    "InvalidFileError",
    "UploadError",
    "InsertError",
    "FetchError",
    "Coordinates",
    "parse_coordinate",
    "to_coordinates",
]
