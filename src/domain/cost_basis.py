from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .ledger import AssetKey, EventKind, LedgerEvent

ZERO = Decimal("0")

LotKey = tuple[str, AssetKey]


@dataclass
class CostBasisLot:
    quantity_held: Decimal = ZERO
    total_cost_usd: Decimal = ZERO

    @property
    def average_cost(self) -> Decimal:
        if self.quantity_held > 0:
            return self.total_cost_usd / self.quantity_held
        return ZERO


class CostBasisTracker:
    """Average-cost tracking per (subject, asset key).

    Only priced acquisitions change a lot. Everything else is inert here and is
    left to the aggregator (disposals) or ignored (trades, mints, rewards, ...).
    """

    def __init__(self) -> None:
        self._lots: dict[LotKey, CostBasisLot] = {}

    def apply(self, event: LedgerEvent) -> None:
        if event.kind != EventKind.ACQUISITION or event.unit_price_usd is None:
            return
        lot = self._lots.setdefault((event.subject, event.asset_key), CostBasisLot())
        lot.total_cost_usd += event.unit_price_usd * event.quantity
        lot.quantity_held += event.quantity

    def lot(self, subject: str, asset_key: AssetKey) -> CostBasisLot:
        """Current lot, or an empty one when nothing was acquired."""
        existing = self._lots.get((subject, asset_key))
        if existing is None:
            return CostBasisLot()
        return CostBasisLot(quantity_held=existing.quantity_held, total_cost_usd=existing.total_cost_usd)

    def average_cost(self, subject: str, asset_key: AssetKey) -> Decimal:
        return self.lot(subject, asset_key).average_cost

    def reduce(self, subject: str, asset_key: AssetKey, quantity: Decimal) -> CostBasisLot:
        """Remove `quantity` units at the current average cost and return the updated lot.

        Quantity may go negative on over-disposal; the caller decides what to do with it.
        A short lot keeps its (negative) cost so a later acquisition first covers it.
        """
        lot = self._lots.setdefault((subject, asset_key), CostBasisLot())
        deducted_cost = lot.average_cost * quantity
        lot.quantity_held -= quantity
        lot.total_cost_usd -= deducted_cost
        if lot.quantity_held == 0:
            # Drop division leftovers from the average.
            lot.total_cost_usd = ZERO
        return CostBasisLot(quantity_held=lot.quantity_held, total_cost_usd=lot.total_cost_usd)

    def lots(self) -> dict[LotKey, CostBasisLot]:
        return {
            key: CostBasisLot(quantity_held=lot.quantity_held, total_cost_usd=lot.total_cost_usd)
            for key, lot in self._lots.items()
        }
