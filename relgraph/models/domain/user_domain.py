from datetime import datetime

from pydantic import BaseModel, ConfigDict


class UserProfile(BaseModel):
    """User fields needed by auth and calendar sync (no credential envelopes)."""

    model_config = ConfigDict(extra="ignore")

    user_id: str
    email: str
    name: str | None = None
    timezone: str = "UTC"
    calendar_connected: bool = False
    calendar_synced_at: datetime | None = None
