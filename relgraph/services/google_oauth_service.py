"""
Google OAuth Service for Calendar API access.
Handles refreshing access tokens against the Google token endpoint.
Consent and code exchange happen outside this service; it only keeps
already-granted credentials alive.
"""

import asyncio

import httpx

from relgraph.config import settings
from relgraph.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Request timeouts and retry configuration
REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2  # 2, 4 seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# Error codes meaning the grant itself is gone; the user must reconnect
REAUTH_ERROR_CODES = {"invalid_grant", "unauthorized_client"}


class GoogleOAuthError(Exception):
    """Custom exception for Google OAuth-related errors."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}

    @property
    def requires_reauth(self) -> bool:
        return self.error_code in REAUTH_ERROR_CODES


class TokenResponse:
    """Structured representation of OAuth token response."""

    def __init__(self, data: dict):
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.token_type = data.get("token_type", "Bearer")
        self.expires_in = data.get("expires_in")
        self.scope = data.get("scope", "")

    def is_valid(self) -> bool:
        """Check if token response contains required fields."""
        return bool(self.access_token and self.token_type)

    def has_calendar_access(self) -> bool:
        return "calendar" in self.scope if self.scope else True


class GoogleOAuthService:
    """
    Service for Google OAuth 2.0 token refresh.

    Retries transient failures (429/5xx, network errors) with exponential
    backoff and maps Google error codes to user-facing messages.
    """

    def __init__(self):
        self.client_id = settings.GOOGLE_CLIENT_ID
        self.client_secret = settings.GOOGLE_CLIENT_SECRET

    def _validate_config(self) -> None:
        """Validate Google OAuth configuration."""
        if not self.client_id:
            raise GoogleOAuthError("GOOGLE_CLIENT_ID not configured", error_code="config_error")
        if not self.client_secret:
            raise GoogleOAuthError(
                "GOOGLE_CLIENT_SECRET not configured", error_code="config_error"
            )

    async def _post_with_retry(self, url: str, data: dict, operation: str) -> httpx.Response:
        """
        Perform POST request with retry/backoff handling.

        Args:
            url: Target URL
            data: Form data payload
            operation: Operation name for logging context
        """
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)

                    if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                        wait_time = BACKOFF_FACTOR**attempt
                        logger.warning(
                            "Google OAuth transient status",
                            operation=operation,
                            status_code=response.status_code,
                            attempt=attempt,
                            wait_time=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue

                    return response

                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise

                    wait_time = BACKOFF_FACTOR**attempt
                    logger.warning(
                        "Google OAuth request error, retrying",
                        operation=operation,
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    await asyncio.sleep(wait_time)

        raise GoogleOAuthError(f"{operation} failed: Unknown error")

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Refresh access token using refresh token.

        Args:
            refresh_token: Valid refresh token

        Returns:
            TokenResponse: New access token (refresh token preserved if Google omits it)

        Raises:
            GoogleOAuthError: If token refresh fails
        """
        self._validate_config()

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing calendar access token", refresh_token_length=len(refresh_token))

        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, operation="token_refresh")
        except httpx.RequestError as e:
            logger.error(
                "Network error during token refresh",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GoogleOAuthError(f"Network error during token refresh: {e}") from e

        token_response = self._handle_token_response(response, "token_refresh")

        # Google may not return a new refresh token on refresh
        if not token_response.refresh_token:
            token_response.refresh_token = refresh_token
            logger.debug("Preserved existing refresh token")

        return token_response

    def _handle_token_response(self, response: httpx.Response, operation: str) -> TokenResponse:
        """
        Handle and validate token response from Google.

        Raises:
            GoogleOAuthError: If response is invalid or contains errors
        """
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                logger.error(
                    "Google token endpoint returned non-JSON error",
                    operation=operation,
                    status_code=response.status_code,
                    response_text=response.text[:200],
                )
                raise GoogleOAuthError(
                    f"Google OAuth service error (HTTP {response.status_code})"
                ) from None

            error_code = error_data.get("error", "unknown_error")
            logger.error(
                "Google token request failed",
                operation=operation,
                status_code=response.status_code,
                error_code=error_code,
                error_description=error_data.get("error_description", "No description provided"),
            )
            raise GoogleOAuthError(
                self._map_google_error(error_code),
                error_code=error_code,
                response_data=error_data,
            )

        try:
            token_response = TokenResponse(response.json())
        except ValueError as e:
            raise GoogleOAuthError("Invalid token response from Google") from e

        if not token_response.is_valid():
            logger.error(
                "Invalid token response from Google",
                operation=operation,
                has_access_token=bool(token_response.access_token),
            )
            raise GoogleOAuthError("Invalid token response from Google")

        logger.info(
            "Google token request successful",
            operation=operation,
            expires_in=token_response.expires_in,
            has_calendar_access=token_response.has_calendar_access(),
        )
        return token_response

    def _map_google_error(self, error_code: str) -> str:
        error_messages = {
            "invalid_grant": "Calendar authorization expired or was revoked. Please reconnect.",
            "unauthorized_client": "Calendar authorization is no longer valid. Please reconnect.",
            "invalid_client": "OAuth client configuration error",
            "invalid_request": "Invalid token refresh request",
            "temporarily_unavailable": "Google OAuth is temporarily unavailable",
        }
        return error_messages.get(error_code, f"Google OAuth error: {error_code}")


# Singleton instance for application use
google_oauth_service = GoogleOAuthService()
