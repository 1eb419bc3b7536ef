from __future__ import annotations

from decimal import Decimal


class LedgerError(Exception):
    """Base class for errors surfaced by the tax ledger."""


class ValidationError(LedgerError):
    """Malformed input. Caller's fault, never retried."""

    def __init__(self, message: str, *, field_errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or []


class MissingParameter(LedgerError):
    def __init__(self, parameter: str) -> None:
        super().__init__(f"Missing required parameter: {parameter}")
        self.parameter = parameter


class MissingSubject(MissingParameter):
    def __init__(self) -> None:
        super().__init__("user")


class StoreUnavailable(LedgerError):
    """The event store could not be reached. Safe to retry with backoff."""


class ComputationInvariantViolation(LedgerError):
    def __init__(
        self,
        message: str,
        *,
        subject: str,
        asset_key: str,
        event_id: int,
        quantity_held: Decimal,
    ) -> None:
        super().__init__(message)
        self.subject = subject
        self.asset_key = asset_key
        self.event_id = event_id
        self.quantity_held = quantity_held
