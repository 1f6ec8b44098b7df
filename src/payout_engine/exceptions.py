"""Error taxonomy for the settlement engine.

Every error carries a machine-readable ``code`` and a specific, human
readable reason so callers (and the admin API) can explain exactly why an
operation was rejected.
"""

from __future__ import annotations


class PayoutEngineError(Exception):
    """Base class for all engine errors."""

    code = "PAYOUT_ENGINE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PayoutEngineError):
    """Bad input: non-positive amount, amount over maximum, stale preview."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidStateTransition(PayoutEngineError):
    """Raised when an advance is not in the state an operation requires."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NotFound(PayoutEngineError):
    """Unknown advance or worker id."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class SourceUnavailable(PayoutEngineError):
    """A source feed could not be fetched."""

    code = "SOURCE_UNAVAILABLE"

    def __init__(self, source: str, worker_id: str | None = None, reason: str | None = None):
        self.source = source
        self.worker_id = worker_id
        self.reason = reason
        msg = f"Source '{source}' unavailable"
        if worker_id is not None:
            msg += f" for worker {worker_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InconsistentState(PayoutEngineError):
    """A logic defect was detected. Fatal, never retried."""

    code = "INCONSISTENT_STATE"


class StaleSettlement(ValidationError):
    """The breakdown being confirmed no longer matches the worker's data."""

    code = "STALE_SETTLEMENT"

    def __init__(self, worker_id: str, detail: str):
        self.worker_id = worker_id
        super().__init__(
            f"Settlement for worker {worker_id} is stale ({detail}); "
            "recompute the settlement before confirming the payout"
        )
