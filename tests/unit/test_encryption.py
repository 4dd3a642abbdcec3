"""
Test encryption service functionality.
"""

import pytest

from relgraph.config import settings
from relgraph.models.domain.credentials_domain import CredentialPair
from relgraph.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_credentials,
    decrypt_token,
    encrypt_credentials,
    encrypt_token,
    generate_new_key,
    validate_encryption_config,
)


def test_basic_encryption_decryption(encryption_key):
    """Test that encryption and decryption work correctly."""
    test_token = "fake_oauth_token_12345"

    encrypted = encrypt_token(test_token)

    assert encrypted != test_token
    assert encrypted.count(":") == 2
    iv_hex, tag_hex, cipher_hex = encrypted.split(":")
    assert len(iv_hex) == 32
    assert len(tag_hex) == 32
    assert cipher_hex

    assert decrypt_token(encrypted) == test_token


def test_encryption_uses_fresh_iv(encryption_key):
    """The same token never produces the same envelope twice."""
    encrypted1 = encrypt_token("consistent_test_token")
    encrypted2 = encrypt_token("consistent_test_token")

    assert encrypted1 != encrypted2
    assert decrypt_token(encrypted1) == decrypt_token(encrypted2) == "consistent_test_token"


def test_encryption_config_validation(encryption_key):
    assert validate_encryption_config() is True


def test_empty_token_rejected(encryption_key):
    with pytest.raises(EncryptionError):
        encrypt_token("")


@pytest.mark.parametrize(
    "envelope",
    [
        None,
        "",
        "garbage",
        "abcd:ef01",
        "zz:zz:zz",
        "::",
        "00" * 16 + ":" + "00" * 16 + ":" + "00" * 8,
    ],
)
def test_malformed_envelope_returns_none(encryption_key, envelope):
    assert decrypt_token(envelope) is None


def test_tampered_ciphertext_returns_none(encryption_key):
    iv_hex, tag_hex, cipher_hex = encrypt_token("secret").split(":")
    flipped = format(int(cipher_hex[:2], 16) ^ 0x01, "02x") + cipher_hex[2:]

    assert decrypt_token(f"{iv_hex}:{tag_hex}:{flipped}") is None


def test_wrong_key_returns_none(encryption_key, monkeypatch):
    encrypted = encrypt_token("secret")

    monkeypatch.setattr(settings, "ENCRYPTION_KEY", "1e" * 32)

    assert decrypt_token(encrypted) is None


def test_missing_key_outside_development_raises(monkeypatch):
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", None)
    monkeypatch.setattr(settings, "environment", "production")

    with pytest.raises(EncryptionError):
        encrypt_token("secret")
    assert validate_encryption_config() is False


def test_missing_key_in_development_uses_fallback(monkeypatch):
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", None)
    monkeypatch.setattr(settings, "environment", "development")

    assert decrypt_token(encrypt_token("secret")) == "secret"


def test_non_hex_key_raises(monkeypatch):
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", "x" * 64)

    with pytest.raises(EncryptionError):
        encrypt_token("secret")


def test_generate_new_key_is_usable(monkeypatch):
    key = generate_new_key()
    assert len(key) == 64

    monkeypatch.setattr(settings, "ENCRYPTION_KEY", key)
    assert validate_encryption_config() is True


def test_credential_pair_round_trip(encryption_key):
    access_env, refresh_env = encrypt_credentials(
        CredentialPair(access_token="access", refresh_token="refresh")
    )

    pair = decrypt_credentials(access_env, refresh_env)

    assert pair.access_token == "access"
    assert pair.refresh_token == "refresh"


def test_credential_pair_without_refresh_token(encryption_key):
    access_env, refresh_env = encrypt_credentials(CredentialPair(access_token="access"))

    assert refresh_env is None
    assert decrypt_credentials(access_env, refresh_env).refresh_token is None


def test_unusable_refresh_envelope_degrades(encryption_key):
    access_env, _ = encrypt_credentials(CredentialPair(access_token="access"))

    pair = decrypt_credentials(access_env, "not:an:envelope")

    assert pair.access_token == "access"
    assert pair.refresh_token is None


def test_unusable_access_envelope_yields_none(encryption_key):
    _, refresh_env = encrypt_credentials(
        CredentialPair(access_token="access", refresh_token="refresh")
    )

    assert decrypt_credentials("bad", refresh_env) is None


def test_credential_pair_repr_is_redacted():
    pair = CredentialPair(access_token="very-secret-access", refresh_token="very-secret-refresh")

    assert "very-secret" not in repr(pair)
