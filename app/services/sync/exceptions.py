"""
Domain exceptions for sync, statistics and prediction.

Route handlers translate these into HTTP responses; anything else
reaching the global handler becomes a 500.
"""


class SyncError(Exception):
    """Base class for all service-level errors."""


class ConfigurationError(SyncError):
    """Missing API key or unsupported league. Not retried."""


class SportsApiError(SyncError):
    """TheSportsDB season listing failed. Fatal to the sync run."""

    def __init__(self, message: str, league_id: str | None = None, season: str | None = None):
        super().__init__(message)
        self.league_id = league_id
        self.season = season


class SyncAlreadyRunningError(SyncError):
    """Another sync run holds the lock."""


class LockLostError(SyncError):
    """The lease no longer owns the sync lock (expired or taken over)."""


class PredictionError(SyncError):
    """The language model provider failed or returned an unusable answer."""


class NoMatchDataError(PredictionError):
    """No stored matches matched the prediction filters."""
