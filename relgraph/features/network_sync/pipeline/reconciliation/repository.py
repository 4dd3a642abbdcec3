"""
Repository helpers for writing a sync pass into the relationship graph.
"""

from collections.abc import Sequence
from datetime import datetime

from relgraph.db.helpers import execute_query, execute_transaction, fetch_all, fetch_one, with_db_retry
from relgraph.features.network_sync.domain.models import ContactAggregate, MeetingRecord
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.services.user_cache import invalidate_user_cache

logger = get_logger(__name__)

CALENDAR_SOURCE = "google_calendar"


class GraphReconciliationRepository:
    """Idempotent writes for companies, contacts and their meeting caches."""

    @staticmethod
    @with_db_retry(max_retries=2)
    async def ensure_companies(companies: Sequence[tuple[str, str]]) -> None:
        """Create-if-absent by domain. Existing names are never overwritten."""
        if not companies:
            return

        query = """
            INSERT INTO companies (domain, name)
            VALUES (%s, %s)
            ON CONFLICT (domain) DO NOTHING
        """
        await execute_transaction([(query, (domain, name)) for domain, name in companies])

    @staticmethod
    async def fetch_company_ids(domains: Sequence[str]) -> dict[str, str]:
        if not domains:
            return {}

        rows = await fetch_all(
            """
            SELECT id, domain
            FROM companies
            WHERE domain = ANY(%s)
            """,
            (list(domains),),
        )
        return {row["domain"]: str(row["id"]) for row in rows}

    @staticmethod
    @with_db_retry(max_retries=2)
    async def upsert_contact(
        user_id: str,
        contact: ContactAggregate,
        company_id: str | None,
        source_account_id: str | None = None,
    ) -> str:
        """Create or update by (user_id, email); calendar contacts are auto-approved."""
        row = await fetch_one(
            """
            INSERT INTO contacts (
                user_id, email, name, company_id, meetings_count,
                last_seen_at, last_event_title, is_approved, source,
                source_account_id
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, TRUE, %s, %s)
            ON CONFLICT (user_id, email) DO UPDATE SET
                name = COALESCE(EXCLUDED.name, contacts.name),
                company_id = EXCLUDED.company_id,
                meetings_count = EXCLUDED.meetings_count,
                last_seen_at = EXCLUDED.last_seen_at,
                last_event_title = EXCLUDED.last_event_title,
                is_approved = TRUE,
                source = EXCLUDED.source,
                source_account_id = COALESCE(EXCLUDED.source_account_id, contacts.source_account_id)
            RETURNING id
            """,
            (
                user_id,
                contact.email,
                contact.name,
                company_id,
                contact.meetings_count,
                contact.last_seen_at,
                contact.last_event_title,
                CALENDAR_SOURCE,
                source_account_id,
            ),
        )
        return str(row["id"])

    @staticmethod
    @with_db_retry(max_retries=2)
    async def replace_meetings(contact_id: str, meetings: Sequence[MeetingRecord]) -> None:
        # Atomic transaction: DELETE old + INSERT new meetings
        queries = [("DELETE FROM meetings WHERE contact_id = %s", (contact_id,))]

        insert_query = """
            INSERT INTO meetings (contact_id, title, date, duration)
            VALUES (%s, %s, %s, %s)
        """
        for meeting in meetings:
            queries.append(
                (insert_query, (contact_id, meeting.title, meeting.date, meeting.duration_minutes))
            )

        await execute_transaction(queries)

    @staticmethod
    async def stamp_user_synced(user_id: str, synced_at: datetime) -> None:
        await execute_query(
            "UPDATE users SET calendar_synced_at = %s WHERE id = %s",
            (synced_at, user_id),
        )
        invalidate_user_cache(user_id)

    @staticmethod
    async def stamp_account_synced(account_id: str, synced_at: datetime) -> None:
        await execute_query(
            "UPDATE calendar_accounts SET last_synced_at = %s WHERE id = %s",
            (synced_at, account_id),
        )
