"""
Network sync feature package.

This vertical slice keeps every layer of calendar-derived relationship
sync co-located: domain models and errors, the aggregation /
reconciliation / scoring pipeline, orchestration services, the background
job and the API routers.
"""

# Re-export the primary building blocks for easy access.
from .domain.errors import CalendarSyncError, CredentialExpiredError  # noqa: F401
from .domain.models import SyncResult, SyncStatus  # noqa: F401
from .pipeline.scoring.service import RelationshipScorer, relationship_scorer  # noqa: F401
from .services.sync_service import CalendarSyncService, calendar_sync_service  # noqa: F401
