"""
Job runners for the network sync feature.
"""

from .calendar_sync_job import CalendarSyncJob, run_calendar_sync_job, start_calendar_sync_scheduler

__all__ = ["CalendarSyncJob", "run_calendar_sync_job", "start_calendar_sync_scheduler"]
