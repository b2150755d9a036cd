"""Error kinds raised by the grouping, merge and submission engine."""

from __future__ import annotations


class PaymentEngineError(Exception):
    """Base class; ``str(exc)`` is the message shown to the operator."""


class ValidationError(PaymentEngineError):
    """A precondition was not met. Raised before any mutation or store call."""


class ConsistencyError(PaymentEngineError):
    """An invariant of the item collection is broken, e.g. a merge group without a leader."""


class RemotePersistenceError(PaymentEngineError):
    """A backing store call failed.

    For batch submissions ``succeeded`` and ``failed`` count the upserts on each
    side; upserts that succeeded are not rolled back.
    """

    def __init__(self, message: str, succeeded: int = 0, failed: int = 0) -> None:
        super().__init__(message)
        self.succeeded = succeeded
        self.failed = failed
