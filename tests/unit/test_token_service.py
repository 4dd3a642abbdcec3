import pytest

from relgraph.db.helpers import DatabaseError
from relgraph.models.domain.credentials_domain import CredentialOwner, CredentialPair
from relgraph.services import token_service as token_module
from relgraph.services.infrastructure.encryption_service import encrypt_credentials
from relgraph.services.token_service import TokenService, TokenServiceError
from relgraph.services.user_cache import user_identity_cache


class EnvelopeTable:
    """Captures the SQL the token service issues against one row."""

    def __init__(self, row=None):
        self.row = row
        self.writes: list[tuple] = []

    async def fetch_one(self, query, params=None):
        return self.row

    async def execute_query(self, query, params=None):
        self.writes.append(params)
        return 1


@pytest.fixture
def table(monkeypatch):
    table = EnvelopeTable()
    monkeypatch.setattr(token_module, "fetch_one", table.fetch_one)
    monkeypatch.setattr(token_module, "execute_query", table.execute_query)
    return table


@pytest.mark.asyncio
async def test_load_decrypts_stored_pair(table, encryption_key):
    access_env, refresh_env = encrypt_credentials(
        CredentialPair(access_token="access", refresh_token="refresh")
    )
    table.row = {"google_access_token": access_env, "google_refresh_token": refresh_env}

    pair = await TokenService().load_credentials(CredentialOwner.for_user("user-123"))

    assert pair.access_token == "access"
    assert pair.refresh_token == "refresh"
    assert table.writes == []


@pytest.mark.asyncio
async def test_load_without_stored_credentials(table, encryption_key):
    table.row = {"google_access_token": None, "google_refresh_token": None}

    assert await TokenService().load_credentials(CredentialOwner.for_user("user-123")) is None
    assert table.writes == []


@pytest.mark.asyncio
async def test_undecryptable_credentials_are_cleared(table, encryption_key):
    table.row = {"google_access_token": "not-an-envelope", "google_refresh_token": None}
    user_identity_cache.set("user-123", "cached-profile")

    assert await TokenService().load_credentials(CredentialOwner.for_user("user-123")) is None

    assert table.writes == [(None, None, "user-123")]
    assert user_identity_cache.get("user-123") is None


@pytest.mark.asyncio
async def test_store_encrypts_for_account_owner(table, encryption_key):
    owner = CredentialOwner.for_account("user-123", "acct-1")

    await TokenService().store_credentials(owner, CredentialPair(access_token="new-access"))

    access_env, refresh_env, account_id, user_id = table.writes[0]
    assert access_env.count(":") == 2
    assert "new-access" not in access_env
    assert refresh_env is None
    assert (account_id, user_id) == ("acct-1", "user-123")


@pytest.mark.asyncio
async def test_store_failure_raises(monkeypatch, encryption_key):
    async def failing_execute(query, params=None):
        raise DatabaseError("write failed", operation="execute_query", recoverable=False)

    monkeypatch.setattr(token_module, "execute_query", failing_execute)

    with pytest.raises(TokenServiceError):
        await TokenService().store_credentials(
            CredentialOwner.for_user("user-123"), CredentialPair(access_token="a")
        )
