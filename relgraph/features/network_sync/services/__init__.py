"""
Service layer for network sync.
"""

from .fetcher import EventFetcher
from .sync_gate import SyncGate, sync_gate
from .sync_service import CalendarSyncService, calendar_sync_service

__all__ = [
    "CalendarSyncService",
    "EventFetcher",
    "SyncGate",
    "calendar_sync_service",
    "sync_gate",
]
