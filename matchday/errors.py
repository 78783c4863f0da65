"""Error taxonomy for the delivery pipeline.

Duplicates are not errors: a repeated request is a recognized outcome and is
reported through DeliveryResult, never raised.
"""

from typing import Any


class MatchdayError(Exception):
    """Base class for all pipeline errors."""


class BatchValidationError(MatchdayError):
    """Malformed input, e.g. a batch outside 1..5 items. Never retried."""


class TransientDeliveryFailure(MatchdayError):
    """One delivery attempt failed (non-2xx or transport error). Retryable."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class PermanentDeliveryFailure(MatchdayError):
    """All delivery attempts failed. Carries the attempt records for escalation."""

    def __init__(self, message: str, attempts: list[Any], body: str = "") -> None:
        super().__init__(message)
        self.attempts = attempts
        self.body = body

    @property
    def last_status(self) -> int | None:
        if not self.attempts:
            return None
        return self.attempts[-1].http_status


class CollaboratorUnavailable(MatchdayError):
    """An external collaborator (row store, durable store, alert transport) failed."""

    def __init__(self, collaborator: str, cause: BaseException | str) -> None:
        super().__init__(f"{collaborator} unavailable: {cause}")
        self.collaborator = collaborator
        self.cause = cause
