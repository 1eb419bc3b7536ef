from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

from .errors import LedgerError
from .ledger import LedgerEvent, NewLedgerEvent

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", covariant=True)
OutcomeT = TypeVar("OutcomeT")


class SettlementClient(Protocol[ResultT]):
    """On-chain (or otherwise external) settlement, e.g. a marketplace buy."""

    def settle(self, event: NewLedgerEvent) -> ResultT: ...


class EventAppender(Protocol):
    def append(self, new_event: NewLedgerEvent) -> LedgerEvent: ...


@dataclass
class SettlementOutcome(Generic[OutcomeT]):
    result: OutcomeT
    event: LedgerEvent | None = None
    ledger_error: LedgerError | None = None

    @property
    def recorded(self) -> bool:
        return self.event is not None


class SettlementRecorder(Generic[OutcomeT]):
    """Settle first, then record the ledger event, then hand back the result.

    A settlement failure propagates and nothing is recorded. A ledger failure after a
    successful settlement does not undo the settlement: the result is still returned,
    with the error attached and logged.
    """

    def __init__(self, *, client: SettlementClient[OutcomeT], store: EventAppender) -> None:
        self._client = client
        self._store = store

    def settle(self, new_event: NewLedgerEvent) -> SettlementOutcome[OutcomeT]:
        result = self._client.settle(new_event)

        try:
            event = self._store.append(new_event)
        except LedgerError as err:
            logger.exception(
                "Settlement succeeded but ledger append failed for subject=%s asset=%s kind=%s",
                new_event.subject,
                new_event.asset_key,
                new_event.kind,
            )
            return SettlementOutcome(result=result, ledger_error=err)

        logger.info("Settled and recorded event %s (%s) for %s", event.id, event.kind, event.subject)
        return SettlementOutcome(result=result, event=event)
