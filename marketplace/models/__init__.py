from marketplace.models.common import FileReference, ModerationStatus, UserRole  # noqa: F401
from marketplace.models.report import (  # noqa: F401
    Priority,
    ReportReason,
    ReportStatus,
    ReportType,
    ResolutionType,
    Severity,
)
