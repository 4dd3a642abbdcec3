# relgraph/models/api/network_response.py
"""
Network sync API response models.
Used by routes for output formatting.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class SyncResponse(BaseModel):
    """Response for a completed sync pass."""

    success: bool = Field(default=True, description="Whether the sync pass completed")
    contacts_found: int = Field(..., description="Distinct business contacts seen in the window")
    companies_found: int = Field(..., description="Distinct company domains seen in the window")


class SyncStatusResponse(BaseModel):
    """Response for calendar sync status."""

    is_connected: bool = Field(..., description="Whether a calendar credential is stored")
    last_synced_at: datetime | None = Field(None, description="Last completed primary sync")
    accounts_count: int = Field(..., description="Active additional calendar accounts")


class CalendarAccountResponse(BaseModel):
    """Response model for a connected calendar account."""

    id: str = Field(..., description="Calendar account ID")
    email: str = Field(..., description="Calendar account email")
    name: str | None = Field(None, description="Display name")
    last_synced_at: datetime | None = Field(None, description="Last completed sync")
    is_active: bool = Field(..., description="Whether the account is active")
    has_credentials: bool = Field(..., description="Whether a usable credential is stored")
    contacts_count: int = Field(default=0, description="Contacts sourced from this account")


class ApprovalResponse(BaseModel):
    """Response for contact approval."""

    approved: int = Field(..., description="Contacts flipped to approved")
    relationships_updated: int = Field(..., description="Relationship rows recomputed")


class RescoreResponse(BaseModel):
    relationships_updated: int = Field(..., description="Relationship rows recomputed")


class ReauthRequiredResponse(BaseModel):
    """Body returned with HTTP 401 when the calendar must be reconnected."""

    error: str = Field(default="Calendar access expired")
    message: str = Field(default="Please reconnect your calendar")
    needs_reauth: bool = Field(default=True)
