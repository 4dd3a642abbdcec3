"""
verify.py
---------
Purpose:
    JWT verification against the identity provider's JWKS.

Notes:
    - Fetches JWKS and caches signing keys (PyJWKClient).
    - `auth_dependency` returns verified claims.
    - `current_user_dependency` resolves the user row through the
      in-process identity cache.
"""

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from relgraph.config import settings
from relgraph.db.helpers import DatabaseError
from relgraph.infrastructure.observability.logging import get_logger
from relgraph.models.domain.user_domain import UserProfile
from relgraph.services.user_cache import user_identity_cache
from relgraph.services.user_service import get_user_profile

logger = get_logger(__name__)

_jwk_client = PyJWKClient(settings.AUTH_JWKS_URL)
_security = HTTPBearer()


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _jwk_client.get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256", "RS256"],
            audience=settings.AUTH_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


async def current_user_dependency(claims: dict = Depends(auth_dependency)) -> UserProfile:
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user ID")

    cached = user_identity_cache.get(user_id)
    if cached is not None:
        return cached

    try:
        profile = await get_user_profile(user_id)
    except DatabaseError as e:
        logger.error("Failed to resolve authenticated user", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="User lookup unavailable"
        ) from e

    if profile is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    user_identity_cache.set(user_id, profile)
    return profile
