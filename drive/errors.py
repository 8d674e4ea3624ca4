"""Error hierarchy for remote drive operations."""
from __future__ import annotations


class DriveError(RuntimeError):
    """Base exception for remote drive failures."""


class DriveAuthError(DriveError):
    """Raised when a session token cannot be obtained or was rejected."""


__all__ = ["DriveAuthError", "DriveError"]
