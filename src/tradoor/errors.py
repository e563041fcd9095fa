"""Typed errors raised by the points engine.

Each error carries the HTTP status the global error handler answers with.
"""

from __future__ import annotations


class PointsError(Exception):
    """Base class for all points-engine failures."""

    status_code: int = 400
    code: str = "points_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(PointsError):
    """A profile, transaction or achievement was absent when required."""

    status_code = 404
    code = "not_found"


class ProfileNotFound(NotFound):
    """The wallet has no profile yet; callers must upsert first."""

    code = "profile_not_found"

    def __init__(self, address: str) -> None:
        super().__init__(f"User profile not found: {address}")
        self.address = address


class ValidationFailed(PointsError):
    """Negative counters, circulating above supply, malformed requirement type."""

    status_code = 422
    code = "validation_failed"


class AlreadyProcessed(PointsError):
    """The on-chain transaction hash was already recorded."""

    status_code = 409
    code = "already_processed"

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} already processed")
        self.tx_hash = tx_hash


class UpstreamUnavailable(PointsError):
    """Store, price oracle or chain lookup failure."""

    status_code = 503
    code = "upstream_unavailable"
