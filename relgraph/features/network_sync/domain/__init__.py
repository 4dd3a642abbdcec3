"""
Domain subpackage for network sync feature.
"""

from .models import (
    ApprovalResult,
    ApprovedContactRow,
    CalendarAccount,
    CompanyStrength,
    ContactAggregate,
    MeetingRecord,
    SyncResult,
    SyncStatus,
)

__all__ = [
    "ApprovalResult",
    "ApprovedContactRow",
    "CalendarAccount",
    "CompanyStrength",
    "ContactAggregate",
    "MeetingRecord",
    "SyncResult",
    "SyncStatus",
]
