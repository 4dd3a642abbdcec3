# relgraph/models/api/network_request.py
"""
Network sync API request models.
Used by routes for input validation.
"""

from pydantic import BaseModel, Field


class ApproveContactsRequest(BaseModel):
    """Request for approving a set of contacts."""

    contact_ids: list[str] = Field(
        ..., min_length=1, max_length=500, description="IDs of contacts to approve"
    )
