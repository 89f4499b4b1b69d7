"""
Access token acquisition for the Store submission API.

Tokens come from an Azure AD client-credentials grant and are cached until
shortly before they expire. Expiry is computed from our own clock at request
time (``expires_in``), never from the server's absolute ``expires_on``, since
the two clocks are not guaranteed to agree.
"""

import logging
import time
from typing import Optional

import jwt
import requests

from .config import StoreBrokerSettings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


class Authenticator:
    """
    Client-credentials token provider.

    Args:
        settings: Settings carrying tenant/client credentials and the token endpoint
        clock: Callable returning the current time in seconds (injectable for tests)
    """

    def __init__(self, settings: StoreBrokerSettings, clock=time.monotonic):
        self.settings = settings
        self._clock = clock
        self._token: Optional[str] = None
        self._valid_thru: float = 0.0
        self.authenticated_at: Optional[float] = None

        if not all([settings.tenant_id, settings.client_id, settings.client_secret]):
            raise AuthenticationError(
                "Missing required authentication parameters "
                "(tenant_id, client_id and client_secret)"
            )

    def get_access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token, refreshing it when expired or when forced."""
        if force_refresh or not self._token or self._clock() >= self._valid_thru:
            self._refresh()
        return self._token

    def seconds_since_authentication(self) -> float:
        """Age of the current token; infinite when no token was ever acquired."""
        if self.authenticated_at is None:
            return float("inf")
        return self._clock() - self.authenticated_at

    def _refresh(self) -> None:
        # Mark the request time before sending so expiry errs on the early side.
        requested_at = self._clock()
        logger.info(f"_refresh: Requesting access token for client {self.settings.client_id}")

        body = {
            "grant_type": "client_credentials",
            "client_id": self.settings.client_id,
            "client_secret": self.settings.client_secret,
            "resource": self.settings.base_uri,
        }
        try:
            response = requests.post(
                self.settings.token_url,
                data=body,
                timeout=self.settings.request_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"_refresh: Token request failed: {e}")
            raise AuthenticationError(
                f"Token request failed: {e}", operation="Authenticate"
            )

        if response.status_code != 200:
            try:
                error_data = response.json()
                error_msg = error_data.get("error_description") or error_data.get(
                    "error", response.text
                )
            except Exception:
                error_msg = response.text
            raise AuthenticationError(
                f"Failed to acquire access token: {error_msg}",
                status_code=response.status_code,
                operation="Authenticate",
            )

        try:
            payload = response.json()
            token = payload["access_token"]
        except (ValueError, KeyError) as e:
            raise AuthenticationError(
                f"Token response missing access_token: {e}", operation="Authenticate"
            )

        expires_in = payload.get("expires_in")
        if expires_in is None:
            expires_in = self._expires_in_from_claims(token)

        self._token = token
        self.authenticated_at = requested_at
        self._valid_thru = requested_at + int(expires_in) - (
            self.settings.token_expiration_buffer_seconds
        )
        logger.info(f"_refresh: Token acquired, valid for {int(expires_in)}s")

    def _expires_in_from_claims(self, token: str) -> int:
        """Fall back to the token's own ``exp`` claim when ``expires_in`` is absent."""
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
            return max(0, int(claims["exp"] - time.time()))
        except Exception:
            logger.warning(
                "_expires_in_from_claims: Token carries no readable exp claim, "
                f"assuming {self.settings.token_validity_seconds}s"
            )
            return self.settings.token_validity_seconds


class StaticTokenAuthenticator:
    """Supplies a caller-provided access token (pre-authenticated proxies, tests)."""

    def __init__(self, token: str, clock=time.monotonic):
        if not token:
            raise AuthenticationError("Access token cannot be empty")
        self._token = token
        self._clock = clock
        self.authenticated_at = clock()

    def get_access_token(self, force_refresh: bool = False) -> str:
        if force_refresh:
            self.authenticated_at = self._clock()
        return self._token

    def seconds_since_authentication(self) -> float:
        return self._clock() - self.authenticated_at
