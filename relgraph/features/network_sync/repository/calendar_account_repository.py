"""
Repository for additional connected calendar accounts.
Credential envelopes are never selected here; see TokenService.
"""

from relgraph.db.helpers import execute_query, fetch_all, fetch_one, fetch_val
from relgraph.features.network_sync.domain.models import CalendarAccount
from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

_ACCOUNT_COLUMNS = """
    ca.id, ca.user_id, ca.email, ca.name, ca.is_active,
    ca.last_synced_at, ca.created_at,
    (ca.google_access_token IS NOT NULL AND ca.google_access_token <> '') AS has_credentials,
    (SELECT COUNT(*) FROM contacts c WHERE c.source_account_id = ca.id) AS contacts_count
"""


def _row_to_account(row: dict) -> CalendarAccount:
    return CalendarAccount(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        email=row["email"],
        name=row.get("name"),
        is_active=bool(row.get("is_active", True)),
        last_synced_at=row.get("last_synced_at"),
        created_at=row.get("created_at"),
        has_credentials=bool(row.get("has_credentials")),
        contacts_count=row.get("contacts_count") or 0,
    )


class CalendarAccountRepository:
    @staticmethod
    async def list_accounts(user_id: str) -> list[CalendarAccount]:
        rows = await fetch_all(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM calendar_accounts ca
            WHERE ca.user_id = %s
            ORDER BY ca.created_at DESC
            """,
            (user_id,),
        )
        return [_row_to_account(row) for row in rows]

    @staticmethod
    async def get_account(user_id: str, account_id: str) -> CalendarAccount | None:
        row = await fetch_one(
            f"""
            SELECT {_ACCOUNT_COLUMNS}
            FROM calendar_accounts ca
            WHERE ca.id = %s AND ca.user_id = %s
            """,
            (account_id, user_id),
        )
        return _row_to_account(row) if row else None

    @staticmethod
    async def count_active_accounts(user_id: str) -> int:
        count = await fetch_val(
            "SELECT COUNT(*) FROM calendar_accounts WHERE user_id = %s AND is_active = TRUE",
            (user_id,),
        )
        return int(count or 0)

    @staticmethod
    async def delete_account(user_id: str, account_id: str) -> bool:
        deleted = await execute_query(
            "DELETE FROM calendar_accounts WHERE id = %s AND user_id = %s",
            (account_id, user_id),
        )
        if deleted:
            logger.info("Calendar account removed", user_id=user_id, account_id=account_id)
        return bool(deleted)
