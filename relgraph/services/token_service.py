"""
Token Service for calendar credential lifecycle management.
Loads and decrypts stored envelopes, persists rotated credentials, and
clears envelopes that can no longer be decrypted.

Credentials live on the users row (primary calendar) or on a
calendar_accounts row (additional calendars); CredentialOwner says which.
"""

from relgraph.db.helpers import DatabaseError, execute_query, fetch_one, with_db_retry
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.credentials_domain import CredentialOwner, CredentialPair
from relgraph.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_credentials,
    encrypt_credentials,
)
from relgraph.services.user_cache import invalidate_user_cache

logger = get_logger(__name__)


class TokenServiceError(Exception):
    """Custom exception for token service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class TokenService:
    """
    Service for managing calendar credentials with encryption and persistence.
    """

    async def _fetch_envelopes(self, owner: CredentialOwner) -> dict | None:
        if owner.is_account:
            return await fetch_one(
                """
                SELECT google_access_token, google_refresh_token
                FROM calendar_accounts
                WHERE id = %s AND user_id = %s
                """,
                (owner.account_id, owner.user_id),
            )
        return await fetch_one(
            """
            SELECT google_access_token, google_refresh_token
            FROM users
            WHERE id = %s
            """,
            (owner.user_id,),
        )

    async def load_credentials(self, owner: CredentialOwner) -> CredentialPair | None:
        """
        Load and decrypt the owner's credential pair.

        Returns:
            CredentialPair, or None when nothing is stored or the stored
            access envelope is unusable (in which case it is cleared)

        Raises:
            TokenServiceError: On database or key configuration failures
        """
        try:
            row = await self._fetch_envelopes(owner)
        except DatabaseError as e:
            logger.error("Failed to load credential envelopes", user_id=owner.user_id, error=str(e))
            raise TokenServiceError(
                f"Failed to load credentials: {e}", user_id=owner.user_id
            ) from e

        if not row or not row.get("google_access_token"):
            logger.info(
                "No stored calendar credentials",
                user_id=owner.user_id,
                account_id=owner.account_id,
            )
            return None

        try:
            credentials = decrypt_credentials(
                row["google_access_token"], row.get("google_refresh_token")
            )
        except EncryptionError as e:
            logger.error("Encryption key unusable", user_id=owner.user_id, error=str(e))
            raise TokenServiceError(
                f"Encryption not configured: {e}", user_id=owner.user_id, recoverable=False
            ) from e

        if credentials is None:
            logger.warning(
                "Stored calendar credentials could not be decrypted, clearing",
                user_id=owner.user_id,
                account_id=owner.account_id,
            )
            await self.clear_credentials(owner)
            return None

        return credentials

    @with_db_retry(max_retries=3, base_delay=0.1)
    async def _write_envelopes(
        self, owner: CredentialOwner, access_envelope: str | None, refresh_envelope: str | None
    ) -> int:
        if owner.is_account:
            return await execute_query(
                """
                UPDATE calendar_accounts
                SET google_access_token = %s,
                    google_refresh_token = %s
                WHERE id = %s AND user_id = %s
                """,
                (access_envelope, refresh_envelope, owner.account_id, owner.user_id),
            )
        return await execute_query(
            """
            UPDATE users
            SET google_access_token = %s,
                google_refresh_token = %s
            WHERE id = %s
            """,
            (access_envelope, refresh_envelope, owner.user_id),
        )

    async def store_credentials(self, owner: CredentialOwner, credentials: CredentialPair) -> None:
        """
        Encrypt and persist a (rotated) credential pair. Must complete before
        the rotated access token is relied on.

        Raises:
            TokenServiceError: If encryption or the write fails
        """
        try:
            access_envelope, refresh_envelope = encrypt_credentials(credentials)
            updated = await self._write_envelopes(owner, access_envelope, refresh_envelope)
        except (EncryptionError, DatabaseError) as e:
            logger.error(
                "Failed to persist rotated credentials",
                user_id=owner.user_id,
                account_id=owner.account_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TokenServiceError(
                f"Failed to store credentials: {e}", user_id=owner.user_id
            ) from e

        if not owner.is_account:
            invalidate_user_cache(owner.user_id)

        logger.info(
            "Calendar credentials stored",
            user_id=owner.user_id,
            account_id=owner.account_id,
            rows_updated=updated,
            has_refresh_token=credentials.has_refresh_token(),
        )

    async def clear_credentials(self, owner: CredentialOwner) -> None:
        """Remove stored envelopes so the owner is asked to reconnect."""
        try:
            await self._write_envelopes(owner, None, None)
        except DatabaseError as e:
            logger.error("Failed to clear credentials", user_id=owner.user_id, error=str(e))
            raise TokenServiceError(
                f"Failed to clear credentials: {e}", user_id=owner.user_id
            ) from e

        if not owner.is_account:
            invalidate_user_cache(owner.user_id)

        logger.info(
            "Calendar credentials cleared",
            user_id=owner.user_id,
            account_id=owner.account_id,
        )


token_service = TokenService()
