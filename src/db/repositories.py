from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.errors import StoreUnavailable
from domain.ledger import AssetKey, EventKind, LedgerEvent, LedgerEventId, NewLedgerEvent, Subject

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


class LedgerEventRepository:
    """Append-only event store. There is no update or delete."""

    def __init__(self, session: Session, *, clock: Clock = utc_now) -> None:
        self._session = session
        self._clock = clock

    def append(self, new_event: NewLedgerEvent) -> LedgerEvent:
        (event,) = self.append_many([new_event])
        logger.info("Appended ledger event %s (%s) for %s", event.id, event.kind, event.subject)
        return event

    def append_many(self, new_events: Sequence[NewLedgerEvent]) -> list[LedgerEvent]:
        """Store all events in one transaction: either every event is written or none is."""
        orm_events = [self._to_orm(new_event) for new_event in new_events]

        def _write() -> list[LedgerEvent]:
            self._session.add_all(orm_events)
            self._session.commit()
            return [self._to_domain(orm_event) for orm_event in orm_events]

        return self._run(_write, f"Could not append {len(orm_events)} ledger event(s)")

    def get(self, event_id: LedgerEventId) -> LedgerEvent | None:
        orm_event = self._run(
            lambda: self._session.get(models.LedgerEventOrm, event_id), f"Could not read ledger event {event_id}"
        )
        if orm_event is None:
            return None
        return self._to_domain(orm_event)

    def list_by_subject(self, subject: str) -> list[LedgerEvent]:
        statement = (
            select(models.LedgerEventOrm)
            .where(models.LedgerEventOrm.subject == subject)
            .order_by(models.LedgerEventOrm.timestamp.asc(), models.LedgerEventOrm.id.asc())
        )
        orm_events = self._run(
            lambda: self._session.scalars(statement).all(), f"Could not list ledger events for {subject}"
        )
        return [self._to_domain(event) for event in orm_events]

    def list_fees(self, *, from_: datetime | None = None, to: datetime | None = None) -> list[Decimal]:
        """Fee amounts of all events within the inclusive [from_, to] window."""
        statement = select(models.LedgerEventOrm.fee_amount)
        if from_ is not None:
            statement = statement.where(models.LedgerEventOrm.timestamp >= to_utc(from_))
        if to is not None:
            statement = statement.where(models.LedgerEventOrm.timestamp <= to_utc(to))
        return list(self._run(lambda: self._session.scalars(statement).all(), "Could not read ledger fees"))

    def _run(self, operation: Callable[[], T], failure: str) -> T:
        try:
            return operation()
        except SQLAlchemyError as err:
            self._session.rollback()
            logger.error("%s: %s", failure, err)
            raise StoreUnavailable(failure) from err

    def _to_orm(self, new_event: NewLedgerEvent) -> models.LedgerEventOrm:
        timestamp = new_event.timestamp if new_event.timestamp is not None else self._clock()
        return models.LedgerEventOrm(
            kind=new_event.kind.value,
            subject=new_event.subject,
            asset_contract=new_event.asset_key.contract,
            token_id=new_event.asset_key.token_id,
            quantity=new_event.quantity,
            fee_amount=new_event.fee_amount,
            unit_price_usd=new_event.unit_price_usd,
            timestamp=to_utc(timestamp),
        )

    @staticmethod
    def _to_domain(orm_event: models.LedgerEventOrm) -> LedgerEvent:
        return LedgerEvent(
            id=LedgerEventId(orm_event.id),
            kind=EventKind(orm_event.kind),
            subject=Subject(orm_event.subject),
            asset_key=AssetKey(contract=orm_event.asset_contract, token_id=orm_event.token_id),
            quantity=orm_event.quantity,
            fee_amount=orm_event.fee_amount,
            unit_price_usd=orm_event.unit_price_usd,
            timestamp=to_utc(orm_event.timestamp),
        )
