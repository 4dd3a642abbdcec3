"""
Calendar sync orchestration.

One sync pass = load credentials -> fetch + aggregate -> reconcile, run
sequentially for a single user under the per-user gate. Relationship
scores are not touched; see RelationshipScorer.
"""

import time
from datetime import UTC, datetime

from relgraph.db.helpers import DatabaseError
from relgraph.features.network_sync.domain.errors import (
    CalendarSyncError,
    CredentialExpiredError,
    SyncTargetNotFoundError,
)
from relgraph.features.network_sync.domain.models import CalendarAccount, SyncResult, SyncStatus
from relgraph.features.network_sync.pipeline.aggregation.service import ContactAggregator
from relgraph.features.network_sync.pipeline.reconciliation.service import GraphReconciler
from relgraph.features.network_sync.repository.calendar_account_repository import (
    CalendarAccountRepository,
)
from relgraph.features.network_sync.services.fetcher import EventFetcher
from relgraph.features.network_sync.services.sync_gate import SyncGate, sync_gate
from relgraph.infrastructure.observability.logging import get_logger, log_sync_outcome
from relgraph.models.domain.credentials_domain import CredentialOwner, CredentialPair
from relgraph.models.domain.user_domain import UserProfile
from relgraph.services import user_service
from relgraph.services.calendar.google_client import GoogleCalendarError
from relgraph.services.token_service import TokenService, TokenServiceError, token_service

logger = get_logger(__name__)


class CalendarSyncService:
    """
    Entry point for sync passes, sync status and calendar account management.

    Collaborators are injectable; defaults are the process-wide instances.
    """

    def __init__(
        self,
        fetcher: EventFetcher | None = None,
        reconciler: GraphReconciler | None = None,
        tokens: TokenService | None = None,
        accounts=CalendarAccountRepository,
        users=user_service,
        gate: SyncGate | None = None,
        clock=None,
    ):
        self.tokens = tokens or token_service
        self.fetcher = fetcher or EventFetcher(tokens=self.tokens)
        self.reconciler = reconciler or GraphReconciler()
        self.accounts = accounts
        self.users = users
        self.gate = gate or sync_gate
        self._clock = clock or (lambda: datetime.now(UTC))

    async def sync_for_user(self, user_id: str) -> SyncResult:
        """
        Run a full sync pass for the user's primary calendar.

        Raises:
            CredentialExpiredError: reconnect required
            SyncTargetNotFoundError: unknown user
            CalendarSyncError: any other failure (fetch or persistence)
        """
        async with self.gate.hold(user_id):
            started = time.monotonic()
            try:
                profile = await self._get_profile(user_id)
                owner = CredentialOwner.for_user(user_id)
                credentials = await self._load_credentials(owner)
                await self._detect_timezone(profile, credentials)
                result = await self._run_pass(owner, credentials, own_email=profile.email)
            except CalendarSyncError as e:
                self._log_failure(user_id, e, started)
                raise

            log_sync_outcome(
                user_id,
                "success",
                self._elapsed_ms(started),
                contacts_found=result.contacts_found,
                companies_found=result.companies_found,
            )
            return result

    async def sync_calendar_account(self, user_id: str, account_id: str) -> SyncResult:
        """Run a sync pass for one additional calendar account of the user."""
        # Same gate key as the primary sync: both write the user's contact set
        async with self.gate.hold(user_id):
            started = time.monotonic()
            try:
                account = await self._get_account(user_id, account_id)
                owner = CredentialOwner.for_account(user_id, account_id)
                credentials = await self._load_credentials(owner)
                result = await self._run_pass(owner, credentials, own_email=account.email)
            except CalendarSyncError as e:
                self._log_failure(user_id, e, started)
                raise

            log_sync_outcome(
                user_id,
                "success",
                self._elapsed_ms(started),
                contacts_found=result.contacts_found,
                companies_found=result.companies_found,
            )
            return result

    async def get_sync_status(self, user_id: str) -> SyncStatus:
        try:
            profile = await self.users.get_user_profile(user_id)
            accounts_count = await self.accounts.count_active_accounts(user_id)
        except DatabaseError as e:
            logger.error("Failed to read sync status", user_id=user_id, error=str(e))
            raise CalendarSyncError("Failed to get calendar status", user_id=user_id) from e

        if profile is None:
            raise SyncTargetNotFoundError("User not found", user_id=user_id)

        return SyncStatus(
            is_connected=profile.calendar_connected or accounts_count > 0,
            last_synced_at=profile.calendar_synced_at,
            accounts_count=accounts_count,
        )

    async def list_calendar_accounts(self, user_id: str) -> list[CalendarAccount]:
        try:
            return await self.accounts.list_accounts(user_id)
        except DatabaseError as e:
            logger.error("Failed to list calendar accounts", user_id=user_id, error=str(e))
            raise CalendarSyncError("Failed to get calendar accounts", user_id=user_id) from e

    async def remove_calendar_account(self, user_id: str, account_id: str) -> None:
        try:
            removed = await self.accounts.delete_account(user_id, account_id)
        except DatabaseError as e:
            logger.error(
                "Failed to remove calendar account",
                user_id=user_id,
                account_id=account_id,
                error=str(e),
            )
            raise CalendarSyncError(
                "Failed to delete calendar account", user_id=user_id, account_id=account_id
            ) from e

        if not removed:
            raise SyncTargetNotFoundError(
                "Calendar account not found", user_id=user_id, account_id=account_id
            )

    async def _run_pass(
        self, owner: CredentialOwner, credentials: CredentialPair, own_email: str | None
    ) -> SyncResult:
        now = self._clock()
        aggregator = ContactAggregator(user_email=own_email, now=now)
        await self.fetcher.fetch(owner, credentials, aggregator)
        return await self.reconciler.reconcile(owner, aggregator.contacts(), synced_at=now)

    async def _get_profile(self, user_id: str) -> UserProfile:
        try:
            profile = await self.users.get_user_profile(user_id)
        except DatabaseError as e:
            raise CalendarSyncError("Failed to load user", user_id=user_id) from e

        if profile is None:
            raise SyncTargetNotFoundError("User not found", user_id=user_id)
        return profile

    async def _get_account(self, user_id: str, account_id: str) -> CalendarAccount:
        try:
            account = await self.accounts.get_account(user_id, account_id)
        except DatabaseError as e:
            raise CalendarSyncError(
                "Failed to load calendar account", user_id=user_id, account_id=account_id
            ) from e

        if account is None:
            raise SyncTargetNotFoundError(
                "Calendar account not found", user_id=user_id, account_id=account_id
            )
        return account

    async def _load_credentials(self, owner: CredentialOwner) -> CredentialPair:
        try:
            credentials = await self.tokens.load_credentials(owner)
        except TokenServiceError as e:
            raise CalendarSyncError(
                "Failed to load calendar credentials",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e

        if credentials is None:
            raise CredentialExpiredError(
                "Calendar access expired", user_id=owner.user_id, account_id=owner.account_id
            )
        return credentials

    async def _detect_timezone(self, profile: UserProfile, credentials: CredentialPair) -> None:
        """Best effort; a failure here never fails the pass."""
        try:
            timezone = await self.fetcher.calendar_client.get_timezone(credentials.access_token)
            if timezone and timezone != profile.timezone:
                await self.users.update_user_timezone(profile.user_id, timezone)
        except (GoogleCalendarError, DatabaseError) as e:
            logger.warning(
                "Timezone detection failed",
                user_id=profile.user_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    def _log_failure(self, user_id: str, error: CalendarSyncError, started: float) -> None:
        outcome = "reauth_required" if isinstance(error, CredentialExpiredError) else "failed"
        log_sync_outcome(user_id, outcome, self._elapsed_ms(started), error=str(error))

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.monotonic() - started) * 1000, 2)


calendar_sync_service = CalendarSyncService()
