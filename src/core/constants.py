"""
PollutionWatch - Constants and Reference Data
Static values used throughout the application.
"""

from enum import Enum
from typing import Dict, Tuple


# =============================================================================
# REPORT CATEGORIES
# =============================================================================

class PollutionType(str, Enum):
    """Categories a citizen can pick when reporting pollution."""
    TRASH_DUMP = "Trash Dump"
    SEWAGE_LEAK = "Sewage Leak"
    AIR_POLLUTION = "Air Pollution"
    WATER_POLLUTION = "Water Pollution"
    ILLEGAL_BURNING = "Illegal Burning"
    NOISE_POLLUTION = "Noise Pollution"
    OTHER = "Other"


DEFAULT_POLLUTION_TYPE = PollutionType.TRASH_DUMP

# Marker colors (folium.Icon palette) per category
POLLUTION_TYPE_COLORS: Dict[str, str] = {
    PollutionType.TRASH_DUMP.value: "darkred",
    PollutionType.SEWAGE_LEAK.value: "orange",
    PollutionType.AIR_POLLUTION.value: "gray",
    PollutionType.WATER_POLLUTION.value: "blue",
    PollutionType.ILLEGAL_BURNING.value: "red",
    PollutionType.NOISE_POLLUTION.value: "purple",
    PollutionType.OTHER.value: "green",
}

DEFAULT_MARKER_COLOR = "cadetblue"


# =============================================================================
# GEOGRAPHIC BOUNDARIES
# =============================================================================

LATITUDE_RANGE: Tuple[float, float] = (-90.0, 90.0)
LONGITUDE_RANGE: Tuple[float, float] = (-180.0, 180.0)

# Default map view (Kathmandu)
DEFAULT_MAP_CENTER: Tuple[float, float] = (27.7172, 85.324)
DEFAULT_MAP_ZOOM = 13


# =============================================================================
# BACKEND
# =============================================================================

REPORTS_PAGE_SIZE = 500
IMAGE_PATH_PREFIX = "public"
IMAGE_SUFFIX_LENGTH = 6
DEFAULT_IMAGE_EXTENSION = "jpg"


# =============================================================================
# USER-FACING MESSAGES
# =============================================================================

MSG_REQUIRED_FIELDS = "Please fill in all required fields."
MSG_INVALID_LOCATION = "Invalid location. Please provide valid latitude and longitude."
MSG_INVALID_IMAGE = "Invalid image file. Please select an image."
MSG_SUBMIT_SUCCESS = "Report submitted successfully!"
MSG_IMAGE_REQUIRED = "Report not saved: attach a photo to submit a report."
MSG_NO_DESCRIPTION = "No description provided."
MSG_UNKNOWN_TIME = "Unknown time"

POPUP_TIME_FORMAT = "%b %d, %Y %I:%M %p"
