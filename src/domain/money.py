from __future__ import annotations

from decimal import Decimal, localcontext

CENT = Decimal("0.01")


def round_cents(value: Decimal) -> Decimal:
    """Quantize to cents, widening precision so large totals don't raise InvalidOperation."""
    if not value.is_finite():
        return value
    with localcontext() as ctx:
        # Integer digits plus the two decimal places.
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT)
