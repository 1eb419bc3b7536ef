from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from domain.money import round_cents


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_optional_decimal(value: Decimal | None) -> str:
    if value is None:
        return ""
    return format_decimal(value)


def format_currency(value: Decimal) -> str:
    cents = round_cents(value)
    return f"{cents:.2f}"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
