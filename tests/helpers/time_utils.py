from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from random import Random
from typing import Callable

from domain.ledger import AssetKey, EventKind, LedgerEvent, LedgerEventId, NewLedgerEvent, Subject


@dataclass
class TimeGenerator:
    """Deterministic timestamp generator with random-ish gaps."""

    _current: datetime | None = None
    _rng: Random = Random(0)
    _seed: int = 0

    def __call__(self) -> datetime:
        return self.next()

    def next(self) -> datetime:
        if self._current is None:
            self._current = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._current += timedelta(seconds=self._rng.randint(5, 60))
        return self._current

    def reset(self) -> None:
        self._current = None
        self._rng = Random(self._seed)


DEFAULT_TIME_GEN = TimeGenerator()
_EVENT_IDS = count(1)


def make_new_event(
    *,
    kind: EventKind,
    subject: Subject,
    asset_key: AssetKey,
    quantity: Decimal | str,
    unit_price_usd: Decimal | str | None = None,
    fee_amount: Decimal | str = Decimal("0"),
    timestamp: datetime | None = None,
    ts_gen: Callable[[], datetime] | None = None,
) -> NewLedgerEvent:
    """Helper to create a NewLedgerEvent with an auto-generated timestamp."""
    if timestamp is None:
        timestamp = (ts_gen or DEFAULT_TIME_GEN)()

    return NewLedgerEvent(
        kind=kind,
        subject=subject,
        asset_key=asset_key,
        quantity=Decimal(quantity),
        fee_amount=Decimal(fee_amount),
        unit_price_usd=None if unit_price_usd is None else Decimal(unit_price_usd),
        timestamp=timestamp,
    )


def make_event(
    *,
    kind: EventKind,
    subject: Subject,
    asset_key: AssetKey,
    quantity: Decimal | str,
    unit_price_usd: Decimal | str | None = None,
    fee_amount: Decimal | str = Decimal("0"),
    timestamp: datetime | None = None,
    ts_gen: Callable[[], datetime] | None = None,
) -> LedgerEvent:
    """Helper to create a stored-looking LedgerEvent (with id) without touching the DB."""
    new_event = make_new_event(
        kind=kind,
        subject=subject,
        asset_key=asset_key,
        quantity=quantity,
        unit_price_usd=unit_price_usd,
        fee_amount=fee_amount,
        timestamp=timestamp,
        ts_gen=ts_gen,
    )
    return LedgerEvent(id=LedgerEventId(next(_EVENT_IDS)), **new_event.model_dump())
