"""
Graph reconciliation service.

Persists one completed aggregation pass: companies first (create-if-absent),
then contacts in batches, each contact's meeting cache replaced wholesale.
Relationship rows are not touched here; scoring is driven by approvals.
"""

from __future__ import annotations

from datetime import UTC, datetime

from .repository import GraphReconciliationRepository
from relgraph.config import settings
from relgraph.db.helpers import DatabaseError
from relgraph.features.network_sync.domain.errors import GraphPersistenceError
from relgraph.features.network_sync.domain.models import ContactAggregate, SyncResult
from relgraph.features.network_sync.pipeline.classification import normalize_company_name
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.credentials_domain import CredentialOwner

logger = get_logger(__name__)


class GraphReconciler:
    """Writes aggregates into the store. Not safe to run twice at once for one user."""

    def __init__(
        self,
        repository=GraphReconciliationRepository,
        batch_size: int | None = None,
        max_meetings: int | None = None,
    ):
        self.repository = repository
        self.batch_size = batch_size or settings.RECONCILE_BATCH_SIZE
        self.max_meetings = max_meetings or settings.MAX_MEETINGS_PER_CONTACT

    async def reconcile(
        self,
        owner: CredentialOwner,
        contacts: list[ContactAggregate],
        synced_at: datetime | None = None,
    ) -> SyncResult:
        synced_at = synced_at or datetime.now(UTC)
        domains = list(dict.fromkeys(contact.domain for contact in contacts))

        try:
            company_ids = await self._ensure_companies(domains)
        except DatabaseError as e:
            logger.error(
                "Company upsert failed",
                user_id=owner.user_id,
                domain_count=len(domains),
                error=str(e),
            )
            raise GraphPersistenceError(
                "Failed to persist companies",
                operation="ensure_companies",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e

        written = 0
        for start in range(0, len(contacts), self.batch_size):
            batch = contacts[start : start + self.batch_size]
            for contact in batch:
                try:
                    await self._write_contact(owner, contact, company_ids.get(contact.domain))
                except DatabaseError as e:
                    logger.error(
                        "Contact reconciliation failed",
                        user_id=owner.user_id,
                        contacts_written=written,
                        contacts_total=len(contacts),
                        operation=e.operation,
                        error=str(e),
                    )
                    raise GraphPersistenceError(
                        "Failed to persist contact",
                        operation="upsert_contact",
                        user_id=owner.user_id,
                        account_id=owner.account_id,
                    ) from e
                written += 1

            logger.debug(
                "Contact batch reconciled",
                user_id=owner.user_id,
                batch_size=len(batch),
                contacts_written=written,
            )

        try:
            if owner.is_account:
                await self.repository.stamp_account_synced(owner.account_id, synced_at)
            else:
                await self.repository.stamp_user_synced(owner.user_id, synced_at)
        except DatabaseError as e:
            raise GraphPersistenceError(
                "Failed to record sync completion",
                operation="stamp_synced",
                user_id=owner.user_id,
                account_id=owner.account_id,
            ) from e

        logger.info(
            "Graph reconciled",
            user_id=owner.user_id,
            account_id=owner.account_id,
            contacts_found=len(contacts),
            companies_found=len(domains),
        )
        return SyncResult(contacts_found=len(contacts), companies_found=len(domains))

    async def _ensure_companies(self, domains: list[str]) -> dict[str, str]:
        for start in range(0, len(domains), self.batch_size):
            batch = domains[start : start + self.batch_size]
            await self.repository.ensure_companies(
                [(domain, normalize_company_name(domain)) for domain in batch]
            )
        return await self.repository.fetch_company_ids(domains)

    async def _write_contact(
        self, owner: CredentialOwner, contact: ContactAggregate, company_id: str | None
    ) -> None:
        contact_id = await self.repository.upsert_contact(
            owner.user_id,
            contact,
            company_id,
            source_account_id=owner.account_id,
        )
        await self.repository.replace_meetings(
            contact_id, contact.recent_meetings(self.max_meetings)
        )
