from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

from .money import round_cents

DEV_SHARE_RATIO = Decimal("0.6")
PROTOCOL_SHARE_RATIO = Decimal("0.3")
RESERVE_CUT_RATIO = Decimal("0.05")
STAKER_SHARE_RATIO = Decimal("0.1")

MARKETPLACE_FEE_RATIO = Decimal("0.05")
MARKETPLACE_FEE_CAP_USD = Decimal("100")


@dataclass
class RevenueSplit:
    total_fees_usd: Decimal
    dev_share_usd: Decimal
    protocol_gross_usd: Decimal
    protocol_net_usd: Decimal
    reserve_share_usd: Decimal
    staker_share_usd: Decimal
    from_: datetime | None = None
    to: datetime | None = None

    def rounded(self) -> RevenueSplit:
        return replace(
            self,
            total_fees_usd=round_cents(self.total_fees_usd),
            dev_share_usd=round_cents(self.dev_share_usd),
            protocol_gross_usd=round_cents(self.protocol_gross_usd),
            protocol_net_usd=round_cents(self.protocol_net_usd),
            reserve_share_usd=round_cents(self.reserve_share_usd),
            staker_share_usd=round_cents(self.staker_share_usd),
        )


@dataclass
class FeeStats:
    total_fees_usd: Decimal
    fee_event_count: int
    from_: datetime | None = None
    to: datetime | None = None


def compute_revenue_split(
    total_fees_usd: Decimal, *, from_: datetime | None = None, to: datetime | None = None
) -> RevenueSplit:
    """Split a fee total between dev, protocol (minus the reserve cut) and stakers."""
    if not total_fees_usd.is_finite() or total_fees_usd < 0:
        raise ValueError(f"total_fees_usd must be a finite number >= 0, got {total_fees_usd}")

    dev_share = total_fees_usd * DEV_SHARE_RATIO
    protocol_gross = total_fees_usd * PROTOCOL_SHARE_RATIO
    reserve_cut = protocol_gross * RESERVE_CUT_RATIO
    protocol_net = protocol_gross - reserve_cut
    staker_share = total_fees_usd * STAKER_SHARE_RATIO

    return RevenueSplit(
        total_fees_usd=total_fees_usd,
        dev_share_usd=dev_share,
        protocol_gross_usd=protocol_gross,
        protocol_net_usd=protocol_net,
        reserve_share_usd=reserve_cut,
        staker_share_usd=staker_share,
        from_=from_,
        to=to,
    )


def marketplace_fee(total_price_usd: Decimal) -> Decimal:
    """Fee charged on a marketplace trade: 5% of the price, capped at $100."""
    return min(total_price_usd * MARKETPLACE_FEE_RATIO, MARKETPLACE_FEE_CAP_USD)
