"""
Encryption service for provider OAuth tokens.
Uses AES-256-GCM so stored credentials are authenticated as well as encrypted.

Envelope format (text column friendly):
    ivHex:authTagHex:cipherTextHex
"""

import os
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from relgraph.config import settings
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.credentials_domain import CredentialPair

logger = get_logger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_HEX_LENGTH = 64

# Development only; tokens encrypted with it do not survive a key change
DEV_FALLBACK_ENCRYPTION_KEY = "a" * KEY_HEX_LENGTH

_fallback_warned = False


class EncryptionError(Exception):
    """Custom exception for encryption configuration and encryption failures."""

    pass


def _get_key() -> bytes:
    """
    Resolve the AES key from configuration.

    Returns:
        bytes: 32-byte key

    Raises:
        EncryptionError: If the key is missing outside development or malformed
    """
    global _fallback_warned

    key_hex = settings.ENCRYPTION_KEY
    if not key_hex:
        if settings.environment != "development":
            raise EncryptionError("ENCRYPTION_KEY not configured in environment")
        if not _fallback_warned:
            logger.warning(
                "ENCRYPTION_KEY not set, using insecure development key",
                environment=settings.environment,
            )
            _fallback_warned = True
        key_hex = DEV_FALLBACK_ENCRYPTION_KEY

    try:
        key = bytes.fromhex(key_hex[:KEY_HEX_LENGTH])
    except ValueError as e:
        logger.error("Failed to parse encryption key", error=str(e))
        raise EncryptionError(f"Invalid encryption key: {e}") from e

    if len(key) != KEY_HEX_LENGTH // 2:
        raise EncryptionError(
            f"Invalid encryption key: expected {KEY_HEX_LENGTH} hex characters"
        )

    return key


def encrypt_token(token: str) -> str:
    """
    Encrypt a token string for database storage.

    Args:
        token: Plain text token to encrypt

    Returns:
        str: Envelope ``ivHex:authTagHex:cipherTextHex``

    Raises:
        EncryptionError: If the key is unusable or encryption fails
    """
    if not token or not isinstance(token, str):
        raise EncryptionError("Token must be a non-empty string")

    key = _get_key()

    try:
        iv = os.urandom(IV_LENGTH)
        sealed = AESGCM(key).encrypt(iv, token.encode("utf-8"), None)
    except Exception as e:
        logger.error("Failed to encrypt token", error=str(e), error_type=type(e).__name__)
        raise EncryptionError(f"Encryption failed: {e}") from e

    # AESGCM appends the tag to the ciphertext
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    envelope = f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    logger.debug(
        "Token encrypted successfully",
        token_length=len(token),
        envelope_length=len(envelope),
    )

    return envelope


def decrypt_token(envelope: str | None) -> str | None:
    """
    Decrypt a token envelope from database storage.

    Malformed envelopes (missing segment, bad hex, wrong tag, wrong key)
    return None instead of raising; callers treat None as "no usable credential".

    Args:
        envelope: Envelope produced by encrypt_token

    Returns:
        str | None: Decrypted token, or None when the envelope is unusable

    Raises:
        EncryptionError: Only when the key itself is misconfigured
    """
    if not envelope or not isinstance(envelope, str):
        return None

    parts = envelope.split(":")
    if len(parts) != 3 or not all(parts):
        logger.warning("Token envelope malformed", segments=len(parts))
        return None

    key = _get_key()
    iv_hex, tag_hex, cipher_hex = parts

    try:
        iv = bytes.fromhex(iv_hex)
        tag = bytes.fromhex(tag_hex)
        ciphertext = bytes.fromhex(cipher_hex)
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            logger.warning("Token envelope has wrong segment sizes", iv_length=len(iv))
            return None

        token = AESGCM(key).decrypt(iv, ciphertext + tag, None).decode("utf-8")

    except InvalidTag:
        logger.warning("Token decryption failed - authentication tag mismatch")
        return None
    except ValueError as e:
        logger.warning("Token decryption failed - invalid envelope", error=str(e))
        return None

    logger.debug("Token decrypted successfully", decrypted_length=len(token))
    return token


def validate_encryption_config() -> bool:
    """
    Validate that encryption is properly configured.

    Returns:
        bool: True if encryption is configured and working
    """
    try:
        test_data = "test_encryption_12345"
        is_valid = decrypt_token(encrypt_token(test_data)) == test_data

        if is_valid:
            logger.info("Encryption configuration validated successfully")
        else:
            logger.error("Encryption validation failed - data mismatch")

        return is_valid

    except EncryptionError as e:
        logger.error("Encryption configuration validation failed", error=str(e))
        return False


def generate_new_key() -> str:
    """
    Generate a new AES-256 key.

    Returns:
        str: 64 hex characters, suitable for ENCRYPTION_KEY

    Note:
        Rotating the key makes every stored envelope undecryptable;
        affected users are asked to reconnect their calendar.
    """
    key = secrets.token_hex(KEY_HEX_LENGTH // 2)

    logger.info("New encryption key generated")

    return key


# Convenience functions for credential pairs
def encrypt_credentials(credentials: CredentialPair) -> tuple[str, str | None]:
    """
    Encrypt OAuth access and refresh tokens.

    Returns:
        tuple: (access_envelope, refresh_envelope)
    """
    encrypted_access = encrypt_token(credentials.access_token)
    encrypted_refresh = (
        encrypt_token(credentials.refresh_token) if credentials.refresh_token else None
    )

    logger.info("OAuth tokens encrypted", has_refresh_token=credentials.has_refresh_token())

    return encrypted_access, encrypted_refresh


def decrypt_credentials(
    encrypted_access: str | None, encrypted_refresh: str | None = None
) -> CredentialPair | None:
    """
    Decrypt a stored envelope pair.

    Returns:
        CredentialPair | None: None when the access envelope is unusable.
        An unusable refresh envelope degrades to "no refresh token".
    """
    access_token = decrypt_token(encrypted_access)
    if access_token is None:
        return None

    refresh_token = decrypt_token(encrypted_refresh) if encrypted_refresh else None
    if encrypted_refresh and refresh_token is None:
        logger.warning("Refresh token envelope unusable, continuing without refresh token")

    return CredentialPair(access_token=access_token, refresh_token=refresh_token)
