from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from .cost_basis import ZERO, CostBasisTracker
from .errors import ComputationInvariantViolation
from .ledger import AssetKey, EventKind, LedgerEvent, LedgerEventId
from .money import round_cents

DEFAULT_LOSS_HAIRCUT_FACTOR = Decimal("0.7")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RealizedDisposal:
    event_id: LedgerEventId
    timestamp: datetime
    asset_key: AssetKey
    quantity: Decimal
    proceeds_usd: Decimal
    cost_basis_usd: Decimal
    realized_usd: Decimal


@dataclass(frozen=True)
class OverDisposal:
    event_id: LedgerEventId
    asset_key: AssetKey
    quantity_held: Decimal


@dataclass
class GainLossSummary:
    total_gains_usd: Decimal = ZERO
    total_losses_usd: Decimal = ZERO
    adjusted_losses_usd: Decimal = ZERO
    net_taxable_gain_usd: Decimal = ZERO
    disposals: list[RealizedDisposal] = field(default_factory=list)
    skipped_unpriced_count: int = 0
    invariant_violations: list[OverDisposal] = field(default_factory=list)

    def rounded(self) -> GainLossSummary:
        """Presentation copy with money fields at 2 decimals."""
        return replace(
            self,
            total_gains_usd=round_cents(self.total_gains_usd),
            total_losses_usd=round_cents(self.total_losses_usd),
            adjusted_losses_usd=round_cents(self.adjusted_losses_usd),
            net_taxable_gain_usd=round_cents(self.net_taxable_gain_usd),
        )


class GainLossAggregator:
    """Replay one subject's events into realized gains and losses.

    Disposals are valued against the running average cost of the lot. A disposal
    of an asset with no tracked acquisition has zero basis, so all of its proceeds
    count as gain. Acquisitions and disposals without a unit price are recorded in
    the ledger but skipped here.
    """

    def __init__(self, *, haircut_factor: Decimal = DEFAULT_LOSS_HAIRCUT_FACTOR, strict: bool = False) -> None:
        if not ZERO <= haircut_factor <= 1:
            raise ValueError(f"haircut_factor must be within [0, 1], got {haircut_factor}")
        self._haircut_factor = haircut_factor
        self._strict = strict

    def summarize(self, events: Iterable[LedgerEvent]) -> GainLossSummary:
        """Caller must provide events in replay order."""
        tracker = CostBasisTracker()
        summary = GainLossSummary()

        for event in events:
            if event.kind not in (EventKind.ACQUISITION, EventKind.DISPOSAL):
                continue
            if event.unit_price_usd is None:
                summary.skipped_unpriced_count += 1
                continue

            if event.kind == EventKind.ACQUISITION:
                tracker.apply(event)
                continue

            self._apply_disposal(event, event.unit_price_usd, tracker, summary)

        summary.adjusted_losses_usd = summary.total_losses_usd * self._haircut_factor
        summary.net_taxable_gain_usd = summary.total_gains_usd + summary.adjusted_losses_usd
        return summary

    def _apply_disposal(
        self,
        event: LedgerEvent,
        unit_price: Decimal,
        tracker: CostBasisTracker,
        summary: GainLossSummary,
    ) -> None:
        avg_cost = tracker.average_cost(event.subject, event.asset_key)
        realized = (unit_price - avg_cost) * event.quantity
        if realized >= 0:
            summary.total_gains_usd += realized
        else:
            summary.total_losses_usd += realized

        summary.disposals.append(
            RealizedDisposal(
                event_id=event.id,
                timestamp=event.timestamp,
                asset_key=event.asset_key,
                quantity=event.quantity,
                proceeds_usd=unit_price * event.quantity,
                cost_basis_usd=avg_cost * event.quantity,
                realized_usd=realized,
            )
        )

        lot = tracker.reduce(event.subject, event.asset_key, event.quantity)
        if lot.quantity_held < 0:
            self._flag_over_disposal(event, lot.quantity_held, summary)

    def _flag_over_disposal(self, event: LedgerEvent, quantity_held: Decimal, summary: GainLossSummary) -> None:
        message = (
            f"Disposal exceeds tracked acquisitions for subject={event.subject} asset={event.asset_key} "
            f"event={event.id} @{event.timestamp.isoformat()} quantity_held={quantity_held}"
        )
        if self._strict:
            raise ComputationInvariantViolation(
                message,
                subject=event.subject,
                asset_key=str(event.asset_key),
                event_id=event.id,
                quantity_held=quantity_held,
            )
        logger.warning(message)
        summary.invariant_violations.append(
            OverDisposal(event_id=event.id, asset_key=event.asset_key, quantity_held=quantity_held)
        )
