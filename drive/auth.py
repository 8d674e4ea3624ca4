"""OAuth bearer token sources for the Drive REST client."""
from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import requests

from core.logging_utils import redact_secret

from .errors import DriveAuthError

LOGGER = logging.getLogger("attendance.drive.auth")

_EXPIRY_MARGIN_S = 60.0


class TokenSource:
    """Supply access tokens for an authenticated Drive session."""

    def fetch_token(self, session: requests.Session) -> str:
        raise NotImplementedError

    def revoke(self, session: requests.Session, token: str) -> None:
        return None

    def invalidate(self) -> None:
        """Forget any cached token after the server rejected it."""

        return None


class StaticTokenSource(TokenSource):
    """Use a pre-issued access token."""

    def __init__(self, token: str) -> None:
        self._token = token

    def fetch_token(self, session: requests.Session) -> str:
        if not self._token:
            raise DriveAuthError("no access token configured")
        return self._token


class RefreshTokenSource(TokenSource):
    """Exchange a stored refresh token for short-lived access tokens."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: Optional[str],
        refresh_token: str,
        token_url: str,
        revoke_url: Optional[str] = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._token_url = token_url
        self._revoke_url = revoke_url
        self._timeout = timeout_s
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def fetch_token(self, session: requests.Session) -> str:
        if self._access_token and time.monotonic() < self._expires_at:
            return self._access_token
        data = {
            "grant_type": "refresh_token",
            "client_id": self._client_id,
            "refresh_token": self._refresh_token,
        }
        if self._client_secret:
            data["client_secret"] = self._client_secret
        try:
            response = session.post(self._token_url, data=data, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise DriveAuthError(f"token refresh failed: {exc}") from exc
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise DriveAuthError("token endpoint returned no access_token")
        try:
            expires_in = float(payload.get("expires_in") or 3600)
        except (TypeError, ValueError):
            expires_in = 3600.0
        self._access_token = str(token)
        self._expires_at = time.monotonic() + max(expires_in - _EXPIRY_MARGIN_S, 0.0)
        LOGGER.info("drive token refreshed (%s)", redact_secret(self._access_token))
        return self._access_token

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0

    def revoke(self, session: requests.Session, token: str) -> None:
        self.invalidate()
        if not self._revoke_url:
            return
        try:
            response = session.post(self._revoke_url, params={"token": token}, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            LOGGER.warning("drive token revoke failed: %s", exc)


def token_source_from_settings(drive_settings: Mapping[str, Any]) -> Optional[TokenSource]:
    """Pick a token source from the ``drive`` settings block."""

    refresh_token = drive_settings.get("refresh_token")
    client_id = drive_settings.get("client_id")
    if refresh_token and client_id:
        return RefreshTokenSource(
            client_id=str(client_id),
            client_secret=drive_settings.get("client_secret"),
            refresh_token=str(refresh_token),
            token_url=str(drive_settings.get("token_url")),
            revoke_url=drive_settings.get("revoke_url"),
            timeout_s=float(drive_settings.get("timeout_s") or 30),
        )
    access_token = drive_settings.get("access_token")
    if access_token:
        return StaticTokenSource(str(access_token))
    return None


__all__ = ["RefreshTokenSource", "StaticTokenSource", "TokenSource", "token_source_from_settings"]
