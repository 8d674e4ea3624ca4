"""Remote drive clients used for off-site backup copies."""
from __future__ import annotations

from .auth import RefreshTokenSource, StaticTokenSource, TokenSource, token_source_from_settings
from .client import DriveClient
from .errors import DriveAuthError, DriveError
from .google import GoogleDriveClient
from .memory import InMemoryDriveClient
from .types import AccountInfo, AuthState, DriveFile, RemoteSession

__all__ = [
    "AccountInfo",
    "AuthState",
    "DriveAuthError",
    "DriveClient",
    "DriveError",
    "DriveFile",
    "GoogleDriveClient",
    "InMemoryDriveClient",
    "RefreshTokenSource",
    "RemoteSession",
    "StaticTokenSource",
    "TokenSource",
    "token_source_from_settings",
]
