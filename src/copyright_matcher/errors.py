"""
Shared Errors
=============

Exceptions that cross layer boundaries.

Layer-local errors (decode failures, action validation, repository lookups)
live in the module that raises them. The two errors here travel further:

    - SourceUnavailableError: media vanished or cannot be decoded mid-scan.
      The engine turns it into an explicit Unavailable outcome.
    - RateLimitedError: an upstream API refused the call for quota reasons.
      It escapes the scan so the job worker can schedule a retry.
"""

from typing import Optional


class SourceUnavailableError(Exception):
    """Raised when media cannot be fetched or decoded."""

    def __init__(self, ref: str, reason: str) -> None:
        super().__init__(f"{ref}: {reason}")
        self.ref = ref
        self.reason = reason


class RateLimitedError(Exception):
    """Raised when an upstream service rate-limits a request."""

    def __init__(self, service: str, retry_after_seconds: Optional[float] = None) -> None:
        message = f"{service} rate limited the request"
        if retry_after_seconds is not None:
            message += f" (retry after {retry_after_seconds:.1f}s)"
        super().__init__(message)
        self.service = service
        self.retry_after_seconds = retry_after_seconds
