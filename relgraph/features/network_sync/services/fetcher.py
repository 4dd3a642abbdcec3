"""
Event fetcher for calendar sync.

Pages through the trailing sync window and folds every page into the
aggregator. Rotated credentials reported by the client are persisted
before the page is folded or the next page is requested.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from relgraph.config import settings
from relgraph.features.network_sync.domain.errors import CalendarFetchError, CredentialExpiredError
from relgraph.features.network_sync.pipeline.aggregation.service import ContactAggregator
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.credentials_domain import CredentialOwner, CredentialPair
from relgraph.services.calendar.google_client import (
    GoogleCalendarError,
    GoogleCalendarService,
    google_calendar_service,
)
from relgraph.services.google_oauth_service import GoogleOAuthError
from relgraph.services.token_service import TokenService, TokenServiceError, token_service

logger = get_logger(__name__)


class EventFetcher:
    def __init__(
        self,
        calendar_client: GoogleCalendarService | None = None,
        tokens: TokenService | None = None,
        window_days: int | None = None,
        page_size: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.calendar_client = calendar_client or google_calendar_service
        self.tokens = tokens or token_service
        self.window_days = window_days or settings.CALENDAR_SYNC_WINDOW_DAYS
        self.page_size = page_size or settings.CALENDAR_PAGE_SIZE
        self._clock = clock or (lambda: datetime.now(UTC))

    async def fetch(
        self,
        owner: CredentialOwner,
        credentials: CredentialPair,
        aggregator: ContactAggregator,
    ) -> CredentialPair:
        """
        Fold every event in the window into the aggregator.

        Returns:
            CredentialPair: the pair in effect at the end of the fetch

        Raises:
            CredentialExpiredError: provider rejected the credentials
            CalendarFetchError: any other provider or persistence failure
        """
        time_max = self._clock()
        time_min = time_max - timedelta(days=self.window_days)
        page_token: str | None = None
        pages = 0

        while True:
            page = await self._fetch_page(owner, credentials, time_min, time_max, page_token)
            pages += 1

            if page.rotated_credentials is not None:
                await self._persist_rotation(owner, page.rotated_credentials)
                credentials = page.rotated_credentials

            aggregator.fold_page(page.events)

            page_token = page.next_page_token
            if not page_token:
                break

        logger.info(
            "Calendar events fetched",
            user_id=owner.user_id,
            account_id=owner.account_id,
            pages=pages,
            **aggregator.summary(),
        )
        return credentials

    async def _fetch_page(self, owner, credentials, time_min, time_max, page_token):
        try:
            return await self.calendar_client.list_events_page(
                credentials,
                time_min=time_min,
                time_max=time_max,
                page_token=page_token,
                max_results=self.page_size,
            )
        except GoogleCalendarError as e:
            if e.requires_reauth:
                raise CredentialExpiredError(
                    "Calendar access expired",
                    user_id=owner.user_id,
                    account_id=owner.account_id,
                ) from e
            raise CalendarFetchError(
                f"Failed to fetch calendar events: {e}",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e
        except GoogleOAuthError as e:
            if e.requires_reauth:
                raise CredentialExpiredError(
                    "Calendar access expired",
                    user_id=owner.user_id,
                    account_id=owner.account_id,
                ) from e
            raise CalendarFetchError(
                f"Failed to refresh calendar access: {e}",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e

    async def _persist_rotation(self, owner: CredentialOwner, credentials: CredentialPair) -> None:
        try:
            await self.tokens.store_credentials(owner, credentials)
        except TokenServiceError as e:
            raise CalendarFetchError(
                "Failed to persist rotated credentials",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e

        logger.info(
            "Rotated calendar credentials persisted",
            user_id=owner.user_id,
            account_id=owner.account_id,
        )
