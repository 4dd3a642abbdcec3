"""
User service for database operations.
Fetches user profiles and writes the few user fields calendar sync owns.
"""

from relgraph.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.user_domain import UserProfile
from relgraph.services.user_cache import invalidate_user_cache

logger = get_logger(__name__)


@with_db_retry(max_retries=3, base_delay=0.1)
async def get_user_profile(user_id: str) -> UserProfile | None:
    """
    Fetch a user profile.

    Args:
        user_id: UUID string of the user

    Returns:
        UserProfile, None if not found
    """
    row = await fetch_one(
        """
        SELECT
            id, email, name, timezone, calendar_synced_at,
            google_access_token IS NOT NULL AS calendar_connected
        FROM users
        WHERE id = %s
        """,
        (user_id,),
    )

    if not row:
        logger.info("User not found", user_id=user_id)
        return None

    return UserProfile(
        user_id=str(row["id"]),
        email=row["email"],
        name=row.get("name"),
        timezone=row.get("timezone") or "UTC",
        calendar_connected=bool(row.get("calendar_connected")),
        calendar_synced_at=row.get("calendar_synced_at"),
    )


async def update_user_timezone(user_id: str, timezone: str) -> bool:
    """
    Store a detected timezone. Returns True when the stored value changed.
    """
    updated = await execute_query(
        """
        UPDATE users
        SET timezone = %s
        WHERE id = %s
          AND timezone IS DISTINCT FROM %s
        """,
        (timezone, user_id, timezone),
    )

    if updated:
        invalidate_user_cache(user_id)
        logger.info("User timezone updated", user_id=user_id, timezone=timezone)
    return bool(updated)


async def list_users_with_calendar_credentials() -> list[str]:
    rows = await fetch_all(
        """
        SELECT id
        FROM users
        WHERE google_access_token IS NOT NULL
        ORDER BY calendar_synced_at ASC NULLS FIRST
        """
    )
    return [str(row["id"]) for row in rows]
