"""
Report data types for crowdsourced pollution reports
Pending (client-held) drafts, validated submissions and stored records
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from src.core.constants import DEFAULT_POLLUTION_TYPE, PollutionType
from src.core.geo_utils import Coordinates, to_coordinates

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


@dataclass
class ImageFile:
    """A locally held image that has not been uploaded yet."""
    filename: str
    content_type: str
    data: bytes

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").lower().startswith("image/")

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PendingReport:
    """
    Draft report held by a form while the user fills it in.

    Coordinates are kept as entered (numbers or text) and only
    checked when the form is submitted.
    """
    pollution_type: PollutionType = DEFAULT_POLLUTION_TYPE
    description: str = ""
    latitude: Any = None
    longitude: Any = None
    image: Optional[ImageFile] = None


@dataclass(frozen=True)
class ReportSubmission:
    """Validated snapshot of a pending report, handed to the submit callback."""
    pollution_type: PollutionType
    description: str
    latitude: float
    longitude: float
    image: Optional[ImageFile] = None

    def to_record(self, image_url: Optional[str] = None) -> Dict[str, Any]:
        """Build the backend insert record. id/created_at are backend-assigned."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "pollution_type": self.pollution_type.value,
            "description": self.description,
            "image_url": image_url,
        }


@dataclass
class StoredReport:
    """
    Report record as returned by the backend.

    Built with from_record(), which refuses rows whose coordinates
    are missing, non-numeric or out of range.
    """
    id: str
    latitude: float
    longitude: float
    pollution_type: str = ""
    description: str = ""
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)

    @property
    def category_label(self) -> str:
        """Category with internal separators replaced by spaces."""
        return " ".join(self.pollution_type.replace("_", " ").split())

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> Optional["StoredReport"]:
        """
        Parse a backend row.

        Args:
            record: Row dictionary from the reports table

        Returns:
            StoredReport, or None if the coordinates are unusable
        """
        coords = to_coordinates(record.get("latitude"), record.get("longitude"))
        if coords is None:
            return None

        return cls(
            id=str(record.get("id", "")),
            latitude=coords.latitude,
            longitude=coords.longitude,
            pollution_type=str(record.get("pollution_type") or ""),
            description=str(record.get("description") or ""),
            image_url=record.get("image_url") or None,
            created_at=parse_timestamp(record.get("created_at")),
            raw=record,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "pollution_type": self.pollution_type,
            "description": self.description,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the backend, or None."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    # Fractional seconds padded or cut to 6 digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparsable timestamp: {value!r}")
        return None
