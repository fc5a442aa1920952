"""
PollutionWatch - Crowdsource Module
Report types, validation, geolocation and the report form.
The page controller lives in src.crowdsource.page_controller.
"""

from src.crowdsource.reports import (
    ImageFile,
    PendingReport,
    ReportSubmission,
    StoredReport,
)
from src.crowdsource.geolocation import (
    GeolocationProvider,
    PositionOptions,
    ReportedPositionSource,
)
from src.crowdsource.report_form import (
    ReportForm,
    FormState,
)
from src.crowdsource.validation import validate_report

__all__ = [
    # Reports
    "ImageFile",
    "PendingReport",
    "ReportSubmission",
    "StoredReport",
    # Geolocation
    "GeolocationProvider",
    "PositionOptions",
    "ReportedPositionSource",
    # Form
    "ReportForm",
    "FormState",
    "validate_report",
]
