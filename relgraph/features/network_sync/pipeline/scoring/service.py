"""
Relationship scoring service.

A relationship is the user's aggregate standing with a company, derived
from every approved contact at that company:

    days_since_last = max(0, now - last_seen_at in days)
    recency         = max(0, 1 - days_since_last / 365)
    frequency       = min(1, meetings_count / 20)
    strength        = (recency * 0.6 + frequency * 0.4) * 100

Rows are always recomputed from current approved contacts and written as
a full replace, never incremented.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from .repository import RelationshipScoringRepository
from relgraph.db.helpers import DatabaseError
from relgraph.features.network_sync.domain.errors import GraphPersistenceError
from relgraph.features.network_sync.domain.models import (
    ApprovalResult,
    ApprovedContactRow,
    CompanyStrength,
)
from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RECENCY_WINDOW_DAYS = 365
FREQUENCY_SATURATION = 20
RECENCY_WEIGHT = 0.6
FREQUENCY_WEIGHT = 0.4


def compute_strength_score(
    meetings_count: int, last_seen_at: datetime | None, now: datetime | None = None
) -> float:
    now = now or datetime.now(UTC)

    if last_seen_at is None:
        recency = 0.0
    else:
        days_since_last = max(0.0, (now - last_seen_at).total_seconds() / 86400)
        recency = max(0.0, 1 - days_since_last / RECENCY_WINDOW_DAYS)

    frequency = min(1.0, max(0, meetings_count) / FREQUENCY_SATURATION)
    score = (recency * RECENCY_WEIGHT + frequency * FREQUENCY_WEIGHT) * 100
    return min(100.0, max(0.0, score))


def group_by_company(
    user_id: str, contacts: Iterable[ApprovedContactRow], now: datetime | None = None
) -> list[CompanyStrength]:
    """Sum meetings and take the latest last_seen_at per company."""
    totals: dict[str, list] = {}
    for contact in contacts:
        entry = totals.setdefault(contact.company_id, [0, None])
        entry[0] += contact.meetings_count
        if contact.last_seen_at is not None and (
            entry[1] is None or contact.last_seen_at > entry[1]
        ):
            entry[1] = contact.last_seen_at

    return [
        CompanyStrength(
            user_id=user_id,
            company_id=company_id,
            meetings_count=meetings_count,
            last_seen_at=last_seen_at,
            strength_score=compute_strength_score(meetings_count, last_seen_at, now),
        )
        for company_id, (meetings_count, last_seen_at) in totals.items()
    ]


class RelationshipScorer:
    def __init__(self, repository=RelationshipScoringRepository, clock=None):
        self.repository = repository
        self._clock = clock or (lambda: datetime.now(UTC))

    async def approve_contacts(self, user_id: str, contact_ids: Sequence[str]) -> ApprovalResult:
        """Approve the given contacts and recompute their companies' relationships."""
        try:
            rows = await self.repository.approve_contacts(user_id, list(contact_ids))
        except DatabaseError as e:
            logger.error("Contact approval failed", user_id=user_id, error=str(e))
            raise GraphPersistenceError(
                "Failed to approve contacts", operation="approve_contacts", user_id=user_id
            ) from e

        return await self._recompute_after_approval(user_id, rows)

    async def approve_all_contacts(self, user_id: str) -> ApprovalResult:
        try:
            rows = await self.repository.approve_pending_contacts(user_id)
        except DatabaseError as e:
            logger.error("Bulk contact approval failed", user_id=user_id, error=str(e))
            raise GraphPersistenceError(
                "Failed to approve contacts", operation="approve_all_contacts", user_id=user_id
            ) from e

        return await self._recompute_after_approval(user_id, rows)

    async def rescore_relationships(self, user_id: str) -> int:
        """Recompute every company that currently has approved contacts."""
        updated = await self._recompute(user_id, company_ids=None)
        logger.info("Relationships rescored", user_id=user_id, relationships_updated=updated)
        return updated

    async def _recompute_after_approval(self, user_id: str, rows: list[dict]) -> ApprovalResult:
        """
        Rescore every company touched by the newly approved rows.

        Each company is rebuilt from all of its approved contacts, so contacts
        approved earlier at the same company count toward the new score too.
        """
        company_ids = list(
            dict.fromkeys(str(row["company_id"]) for row in rows if row.get("company_id"))
        )
        updated = await self._recompute(user_id, company_ids) if company_ids else 0

        logger.info(
            "Contacts approved",
            user_id=user_id,
            approved=len(rows),
            relationships_updated=updated,
        )
        return ApprovalResult(approved=len(rows), relationships_updated=updated)

    async def _recompute(self, user_id: str, company_ids: list[str] | None) -> int:
        try:
            contacts = await self.repository.fetch_approved_contacts(user_id, company_ids)
            strengths = group_by_company(user_id, contacts, self._clock())
            await self.repository.upsert_relationships(strengths)
        except DatabaseError as e:
            logger.error(
                "Relationship recompute failed",
                user_id=user_id,
                company_count=len(company_ids) if company_ids is not None else None,
                error=str(e),
            )
            raise GraphPersistenceError(
                "Failed to update relationships", operation="upsert_relationships", user_id=user_id
            ) from e

        return len(strengths)


relationship_scorer = RelationshipScorer()
