"""Google OAuth 2.0 client (authorization code flow + token refresh)."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from channel_dashboard.config import settings
from channel_dashboard.integrations.resilience import (
    CircuitOpenError,
    get_circuit_breaker,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/youtube.readonly",
    "https://www.googleapis.com/auth/yt-analytics.readonly",
    "https://www.googleapis.com/auth/yt-analytics-monetary.readonly",
]


class TokenRefreshError(Exception):
    """Raised when a stored refresh token can no longer be exchanged."""


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_token_response(cls, data: dict[str, Any], now: datetime | None = None) -> "OAuthTokens":
        now = now or datetime.now(timezone.utc)
        expires_in = data.get("expires_in")
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=now + timedelta(seconds=int(expires_in)) if expires_in else None,
        )


class GoogleOAuthClient:
    """Async client for Google's OAuth endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._client = httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls) -> "GoogleOAuthClient":
        return cls(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.oauth_redirect_uri,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    def build_auth_url(self, state: str = "") -> str:
        """Consent URL requesting offline access so a refresh token is issued."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return str(httpx.URL(AUTH_URL, params=params))

    async def _token_request(self, data: dict[str, str]) -> OAuthTokens:
        resp = await self._client.post(
            TOKEN_URL,
            data={**data, "client_id": self.client_id, "client_secret": self.client_secret},
        )
        resp.raise_for_status()
        return OAuthTokens.from_token_response(resp.json())

    async def exchange_code(self, code: str) -> OAuthTokens:
        return await self._token_request({
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
        })

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """New access token for a stored refresh token.

        Any failure, including a revoked grant or an open circuit, surfaces as
        TokenRefreshError.
        """
        if not refresh_token:
            raise TokenRefreshError("No refresh token stored")
        try:
            return await get_circuit_breaker("google_oauth").call(
                retry_with_backoff,
                self._token_request,
                {"grant_type": "refresh_token", "refresh_token": refresh_token},
            )
        except (httpx.HTTPError, CircuitOpenError) as exc:
            raise TokenRefreshError(f"Token endpoint error: {exc}") from exc
        except (KeyError, ValueError, TypeError) as exc:
            # Undecodable body or a 200 without an access token
            raise TokenRefreshError(f"Malformed token response: {type(exc).__name__}: {exc}") from exc

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        """Email, name and picture of the consenting Google account."""
        resp = await self._client.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        resp.raise_for_status()
        return resp.json()
