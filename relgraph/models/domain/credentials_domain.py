# relgraph/models/domain/credentials_domain.py
"""
Provider credential domain models.
Credentials are only ever held decrypted in memory; at rest they live as
vault envelopes on either the user row or a calendar account row.
"""

from typing import Literal

from pydantic import BaseModel


class CredentialPair(BaseModel):
    """Decrypted provider credentials."""

    access_token: str
    refresh_token: str | None = None

    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def rotated(self, access_token: str, refresh_token: str | None = None) -> "CredentialPair":
        """Return the pair after a refresh; the provider may omit the refresh token."""
        return CredentialPair(
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
        )

    def __repr__(self) -> str:
        return (
            f"CredentialPair(access_token=<{len(self.access_token)} chars>, "
            f"has_refresh_token={self.has_refresh_token()})"
        )

    __str__ = __repr__


class CredentialOwner(BaseModel):
    """Row that holds a credential envelope pair."""

    kind: Literal["user", "calendar_account"]
    user_id: str
    account_id: str | None = None

    @classmethod
    def for_user(cls, user_id: str) -> "CredentialOwner":
        return cls(kind="user", user_id=user_id)

    @classmethod
    def for_account(cls, user_id: str, account_id: str) -> "CredentialOwner":
        return cls(kind="calendar_account", user_id=user_id, account_id=account_id)

    @property
    def is_account(self) -> bool:
        return self.kind == "calendar_account"
