"""
Exception taxonomy shared by the ingest, correlate and scoring packages.
"""
from typing import List, Optional


class ReportError(Exception):
    """Base class for every error the report pipeline raises on purpose."""


class ConfigError(ReportError):
    """Missing or invalid configuration (credentials, config file, arguments)."""


class RemoteFetchError(ReportError):
    """A paged or single-record fetch against the remote API failed.

    cursor is the cursor the failing page was requested with (None for the first page
    or for single-record fetches); collected is how many records had been gathered
    before the failure.
    """

    def __init__(self, message: str, cursor: Optional[str] = None, collected: int = 0, status: Optional[int] = None):
        super().__init__(message)
        self.cursor = cursor
        self.collected = collected
        self.status = status


class UnsupportedFeature(RemoteFetchError):
    """The workspace or schema does not support the requested collection (e.g. reactions)."""


class UserNotFound(ReportError):
    """No user matched an email, exactly or partially."""

    def __init__(self, email: str, candidate_count: int, sample: Optional[List[str]] = None):
        super().__init__(f"User with email {email} not found. Found {candidate_count} users total.")
        self.email = email
        self.candidate_count = candidate_count
        self.sample = sample or []


class NoTargetUsers(ReportError):
    """Team mode resolved to zero users, so there is nothing to report on."""


__all__ = ["ReportError", "ConfigError", "RemoteFetchError", "UnsupportedFeature", "UserNotFound", "NoTargetUsers"]
