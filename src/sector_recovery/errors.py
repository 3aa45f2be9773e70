"""Error kinds raised while rebuilding recovery parameters."""

from __future__ import annotations


class SectorRecoveryError(Exception):
    """Base class for all sector recovery failures."""


class InvalidIdentity(SectorRecoveryError, ValueError):
    """Raised when a provider identifier does not parse as a chain address."""


class ChainQueryFailed(SectorRecoveryError):
    """Raised when a chain-state query fails or returns an unusable payload."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"{method}: {message}")
        self.method = method
        self.message = message


class Cancelled(SectorRecoveryError):
    """Raised when a run is cancelled before a chain-state query is issued."""
