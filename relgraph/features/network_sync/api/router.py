"""
Network sync routes.

Calendar sync triggers and status, calendar account management, contact
approval and relationship rescoring. Credential failures return an explicit
reconnect payload; every other failure is a generic 500.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from relgraph.auth.verify import current_user_dependency
from relgraph.features.network_sync.domain.errors import (
    CalendarSyncError,
    CredentialExpiredError,
    SyncTargetNotFoundError,
)
from relgraph.features.network_sync.pipeline.scoring.service import (
    RelationshipScorer,
    relationship_scorer,
)
from relgraph.features.network_sync.services.sync_service import (
    CalendarSyncService,
    calendar_sync_service,
)
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.api.network_request import ApproveContactsRequest
from relgraph.models.api.network_response import (
    ApprovalResponse,
    CalendarAccountResponse,
    ReauthRequiredResponse,
    RescoreResponse,
    SyncResponse,
    SyncStatusResponse,
)
from relgraph.models.domain.user_domain import UserProfile

logger = get_logger(__name__)

calendar_router = APIRouter(prefix="/calendar", tags=["calendar"])
contacts_router = APIRouter(prefix="/contacts", tags=["contacts"])
relationships_router = APIRouter(prefix="/relationships", tags=["relationships"])


def get_sync_service() -> CalendarSyncService:
    return calendar_sync_service


def get_relationship_scorer() -> RelationshipScorer:
    return relationship_scorer


def _reauth_response(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=ReauthRequiredResponse(message=message).model_dump(),
    )


@calendar_router.post("/sync", response_model=SyncResponse)
async def trigger_calendar_sync(
    user: UserProfile = Depends(current_user_dependency),
    service: CalendarSyncService = Depends(get_sync_service),
):
    """Run a full sync pass for the user's primary calendar."""
    try:
        result = await service.sync_for_user(user.user_id)
    except CredentialExpiredError:
        return _reauth_response("Please reconnect your calendar")
    except SyncTargetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except CalendarSyncError as e:
        logger.error("Calendar sync failed", user_id=user.user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to sync calendar"
        ) from e

    return SyncResponse(
        contacts_found=result.contacts_found, companies_found=result.companies_found
    )


@calendar_router.get("/status", response_model=SyncStatusResponse)
async def get_calendar_sync_status(
    user: UserProfile = Depends(current_user_dependency),
    service: CalendarSyncService = Depends(get_sync_service),
):
    try:
        sync_status = await service.get_sync_status(user.user_id)
    except CalendarSyncError as e:
        logger.error("Error getting calendar status", user_id=user.user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get calendar status",
        ) from e

    return SyncStatusResponse(
        is_connected=sync_status.is_connected,
        last_synced_at=sync_status.last_synced_at,
        accounts_count=sync_status.accounts_count,
    )


@calendar_router.get("/accounts", response_model=list[CalendarAccountResponse])
async def list_calendar_accounts(
    user: UserProfile = Depends(current_user_dependency),
    service: CalendarSyncService = Depends(get_sync_service),
):
    try:
        accounts = await service.list_calendar_accounts(user.user_id)
    except CalendarSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get calendar accounts",
        ) from e

    return [
        CalendarAccountResponse(
            id=account.id,
            email=account.email,
            name=account.name,
            last_synced_at=account.last_synced_at,
            is_active=account.is_active,
            has_credentials=account.has_credentials,
            contacts_count=account.contacts_count,
        )
        for account in accounts
    ]


@calendar_router.delete("/accounts/{account_id}")
async def remove_calendar_account(
    account_id: str,
    user: UserProfile = Depends(current_user_dependency),
    service: CalendarSyncService = Depends(get_sync_service),
) -> dict:
    try:
        await service.remove_calendar_account(user.user_id, account_id)
    except SyncTargetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except CalendarSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete calendar account",
        ) from e

    return {"success": True}


@calendar_router.post("/accounts/{account_id}/sync", response_model=SyncResponse)
async def sync_calendar_account(
    account_id: str,
    user: UserProfile = Depends(current_user_dependency),
    service: CalendarSyncService = Depends(get_sync_service),
):
    try:
        result = await service.sync_calendar_account(user.user_id, account_id)
    except CredentialExpiredError:
        return _reauth_response("Please reconnect this calendar account")
    except SyncTargetNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except CalendarSyncError as e:
        logger.error(
            "Calendar account sync failed",
            user_id=user.user_id,
            account_id=account_id,
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to sync calendar"
        ) from e

    return SyncResponse(
        contacts_found=result.contacts_found, companies_found=result.companies_found
    )


@contacts_router.post("/approve", response_model=ApprovalResponse)
async def approve_contacts(
    request: ApproveContactsRequest,
    user: UserProfile = Depends(current_user_dependency),
    scorer: RelationshipScorer = Depends(get_relationship_scorer),
):
    try:
        result = await scorer.approve_contacts(user.user_id, request.contact_ids)
    except CalendarSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to approve contacts"
        ) from e

    return ApprovalResponse(
        approved=result.approved, relationships_updated=result.relationships_updated
    )


@contacts_router.post("/approve-all", response_model=ApprovalResponse)
async def approve_all_contacts(
    user: UserProfile = Depends(current_user_dependency),
    scorer: RelationshipScorer = Depends(get_relationship_scorer),
):
    try:
        result = await scorer.approve_all_contacts(user.user_id)
    except CalendarSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to approve contacts"
        ) from e

    return ApprovalResponse(
        approved=result.approved, relationships_updated=result.relationships_updated
    )


@relationships_router.post("/rescore", response_model=RescoreResponse)
async def rescore_relationships(
    user: UserProfile = Depends(current_user_dependency),
    scorer: RelationshipScorer = Depends(get_relationship_scorer),
):
    try:
        updated = await scorer.rescore_relationships(user.user_id)
    except CalendarSyncError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to rescore relationships",
        ) from e

    return RescoreResponse(relationships_updated=updated)
