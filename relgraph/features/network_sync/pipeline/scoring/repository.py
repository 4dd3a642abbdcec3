"""
Repository helpers for contact approval and relationship persistence.
"""

from collections.abc import Iterable, Sequence

from relgraph.db.helpers import execute_transaction, fetch_all
from relgraph.features.network_sync.domain.models import ApprovedContactRow, CompanyStrength
from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def _to_approved_row(row: dict) -> ApprovedContactRow:
    return ApprovedContactRow(
        contact_id=str(row["id"]),
        company_id=str(row["company_id"]),
        meetings_count=row.get("meetings_count") or 0,
        last_seen_at=row.get("last_seen_at"),
    )


class RelationshipScoringRepository:
    """Thin wrappers for approval updates and relationship upserts."""

    @staticmethod
    async def approve_contacts(user_id: str, contact_ids: Sequence[str]) -> list[dict]:
        """Approve contacts owned by the user. Returns the updated (id, company_id) rows."""
        if not contact_ids:
            return []

        return await fetch_all(
            """
            UPDATE contacts
            SET is_approved = TRUE
            WHERE user_id = %s
              AND id = ANY(%s)
            RETURNING id, company_id
            """,
            (user_id, list(contact_ids)),
        )

    @staticmethod
    async def approve_pending_contacts(user_id: str) -> list[dict]:
        return await fetch_all(
            """
            UPDATE contacts
            SET is_approved = TRUE
            WHERE user_id = %s
              AND is_approved = FALSE
            RETURNING id, company_id
            """,
            (user_id,),
        )

    @staticmethod
    async def fetch_approved_contacts(
        user_id: str, company_ids: Sequence[str] | None = None
    ) -> list[ApprovedContactRow]:
        """Approved contacts that belong to a company, optionally limited to company_ids."""
        if company_ids is not None:
            if not company_ids:
                return []
            rows = await fetch_all(
                """
                SELECT id, company_id, meetings_count, last_seen_at
                FROM contacts
                WHERE user_id = %s
                  AND is_approved = TRUE
                  AND company_id = ANY(%s)
                """,
                (user_id, list(company_ids)),
            )
        else:
            rows = await fetch_all(
                """
                SELECT id, company_id, meetings_count, last_seen_at
                FROM contacts
                WHERE user_id = %s
                  AND is_approved = TRUE
                  AND company_id IS NOT NULL
                """,
                (user_id,),
            )
        return [_to_approved_row(row) for row in rows]

    @staticmethod
    async def upsert_relationships(strengths: Iterable[CompanyStrength]) -> None:
        """Full replace per (user_id, company_id) in a single transaction."""
        strengths_list = list(strengths)
        if not strengths_list:
            return

        query = """
            INSERT INTO relationships (
                user_id, company_id, meetings_count, last_seen_at, strength_score
            )
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (user_id, company_id) DO UPDATE SET
                meetings_count = EXCLUDED.meetings_count,
                last_seen_at = EXCLUDED.last_seen_at,
                strength_score = EXCLUDED.strength_score
        """

        await execute_transaction(
            [
                (
                    query,
                    (
                        strength.user_id,
                        strength.company_id,
                        strength.meetings_count,
                        strength.last_seen_at,
                        strength.strength_score,
                    ),
                )
                for strength in strengths_list
            ]
        )

        logger.debug(
            "Relationships upserted",
            user_id=strengths_list[0].user_id,
            relationship_count=len(strengths_list),
        )
