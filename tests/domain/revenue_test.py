from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.revenue import (
    PROTOCOL_SHARE_RATIO,
    RESERVE_CUT_RATIO,
    compute_revenue_split,
    marketplace_fee,
)


def test_thousand_dollar_split() -> None:
    split = compute_revenue_split(Decimal("1000")).rounded()

    assert split.dev_share_usd == Decimal("600.00")
    assert split.protocol_gross_usd == Decimal("300.00")
    assert split.reserve_share_usd == Decimal("15.00")
    assert split.protocol_net_usd == Decimal("285.00")
    assert split.staker_share_usd == Decimal("100.00")
    assert split.dev_share_usd + split.protocol_gross_usd + split.staker_share_usd == Decimal("1000.00")


@pytest.mark.parametrize("total", ["0", "0.01", "1", "33.33", "1234.5678", "999999.99"])
def test_gross_share_identity(total: str) -> None:
    split = compute_revenue_split(Decimal(total))

    assert split.dev_share_usd + split.protocol_gross_usd + split.staker_share_usd == split.total_fees_usd
    assert split.protocol_net_usd + split.reserve_share_usd == split.protocol_gross_usd
    recovered_gross = split.protocol_net_usd / (1 - RESERVE_CUT_RATIO)
    assert abs(split.dev_share_usd + recovered_gross + split.staker_share_usd - split.total_fees_usd) < Decimal("1e-6")
    assert split.protocol_gross_usd == split.total_fees_usd * PROTOCOL_SHARE_RATIO


def test_split_echoes_time_window() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2024, 2, 1, tzinfo=timezone.utc)

    split = compute_revenue_split(Decimal("10"), from_=start, to=end)

    assert split.from_ == start
    assert split.to == end


@pytest.mark.parametrize("total", [Decimal("-1"), Decimal("NaN"), Decimal("Infinity")])
def test_invalid_totals_are_rejected(total: Decimal) -> None:
    with pytest.raises(ValueError):
        compute_revenue_split(total)


@pytest.mark.parametrize(
    ("price", "fee"),
    [
        (Decimal("100"), Decimal("5.00")),
        (Decimal("2000"), Decimal("100")),
        (Decimal("5000"), Decimal("100")),
    ],
)
def test_marketplace_fee_is_capped(price: Decimal, fee: Decimal) -> None:
    assert marketplace_fee(price) == fee
