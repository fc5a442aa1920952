"""
Validation for crowdsourced pollution reports
Checks a pending report before anything is sent to the backend
"""

import logging
from typing import Any, Optional

from src.core.constants import (
    MSG_INVALID_IMAGE,
    MSG_INVALID_LOCATION,
    MSG_REQUIRED_FIELDS,
    PollutionType,
)
from src.core.errors import InvalidFileError, ValidationError
from src.core.geo_utils import to_coordinates
from src.crowdsource.reports import ImageFile, PendingReport, ReportSubmission

logger = logging.getLogger(__name__)


def coerce_pollution_type(value: Any) -> PollutionType:
    """
    Resolve a category from an enum member, its value or its name.

    Raises:
        ValidationError: If the value is not one of the known categories
    """
    if isinstance(value, PollutionType):
        return value

    text = str(value or "").strip()
    try:
        return PollutionType(text)
    except ValueError:
        pass

    # Accept separator variants such as "Sewage_Leak" or "SEWAGE_LEAK"
    normalized = text.replace("_", " ").replace("-", " ").lower()
    for member in PollutionType:
        if member.value.lower() == normalized:
            return member

    raise ValidationError(f"Unknown pollution type: {text!r}")


def validate_image(image: Optional[ImageFile]) -> Optional[ImageFile]:
    """
    Check that a selected file is an image.

    Raises:
        InvalidFileError: If the file's media type is not image/*
    """
    if image is None:
        return None

    if not image.is_image:
        logger.info(f"Rejected non-image file {image.filename!r} ({image.content_type})")
        raise InvalidFileError(MSG_INVALID_IMAGE)

    return image


def validate_report(pending: PendingReport) -> ReportSubmission:
    """
    Validate a pending report and freeze it into a submission.

    Args:
        pending: Draft held by the form

    Returns:
        ReportSubmission with trimmed description and float coordinates

    Raises:
        ValidationError: On empty description or invalid coordinates
    """
    description = (pending.description or "").strip()
    if not description:
        raise ValidationError(MSG_REQUIRED_FIELDS)

    coords = to_coordinates(pending.latitude, pending.longitude)
    if coords is None:
        raise ValidationError(MSG_INVALID_LOCATION)

    return ReportSubmission(
        pollution_type=coerce_pollution_type(pending.pollution_type),
        description=description,
        latitude=coords.latitude,
        longitude=coords.longitude,
        image=validate_image(pending.image),
    )
