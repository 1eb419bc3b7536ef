from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from db.repositories import LedgerEventRepository, to_utc
from domain.errors import MissingSubject, ValidationError
from domain.gain_loss import GainLossAggregator, GainLossSummary
from domain.ledger import AssetKey, EventKind, LedgerEvent, parse_new_event
from domain.revenue import FeeStats, RevenueSplit, compute_revenue_split
from utils.tax_report import render_events_csv

logger = logging.getLogger(__name__)


class TaxService:
    """Entry points used by the HTTP API and the CLI.

    Every read replays the events stored at call time; nothing is cached between calls.
    """

    def __init__(self, *, repository: LedgerEventRepository, aggregator: GainLossAggregator) -> None:
        self._repository = repository
        self._aggregator = aggregator

    def record_event(
        self,
        *,
        kind: EventKind | str,
        subject: str,
        asset_key: AssetKey,
        quantity: Decimal | str,
        fee_amount: Decimal | str = Decimal("0"),
        unit_price_usd: Decimal | str | None = None,
        timestamp: datetime | None = None,
    ) -> LedgerEvent:
        new_event = parse_new_event(
            {
                "kind": kind,
                "subject": subject,
                "asset_key": asset_key,
                "quantity": quantity,
                "fee_amount": fee_amount,
                "unit_price_usd": unit_price_usd,
                "timestamp": timestamp,
            }
        )
        return self._repository.append(new_event)

    def events_for(self, subject: str | None) -> list[LedgerEvent]:
        if not subject:
            raise MissingSubject()
        return self._repository.list_by_subject(subject)

    def get_summary(self, subject: str | None) -> GainLossSummary:
        events = self.events_for(subject)
        summary = self._aggregator.summarize(events)
        logger.debug("Replayed %d events for %s", len(events), subject)
        return summary.rounded()

    def export_csv(self, subject: str | None) -> bytes:
        return render_events_csv(self.events_for(subject)).encode("utf-8")

    def get_fee_stats(self, from_: datetime | None = None, to: datetime | None = None) -> FeeStats:
        _check_window(from_, to)
        fees = self._repository.list_fees(from_=from_, to=to)
        return FeeStats(
            total_fees_usd=sum(fees, start=Decimal("0")),
            fee_event_count=sum(1 for fee in fees if fee > 0),
            from_=from_,
            to=to,
        )

    def get_revenue_split(self, from_: datetime | None = None, to: datetime | None = None) -> RevenueSplit:
        stats = self.get_fee_stats(from_, to)
        return compute_revenue_split(stats.total_fees_usd, from_=from_, to=to).rounded()


def _check_window(from_: datetime | None, to: datetime | None) -> None:
    if from_ is not None and to is not None and to_utc(from_) > to_utc(to):
        raise ValidationError(f"'from' ({from_.isoformat()}) must not be after 'to' ({to.isoformat()})")
