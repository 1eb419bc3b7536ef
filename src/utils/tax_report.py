from __future__ import annotations

import csv
import io
from decimal import Decimal
from typing import Iterable

from domain.gain_loss import GainLossSummary
from domain.ledger import LedgerEvent

from .formatting import format_currency, format_decimal, format_optional_decimal, format_timestamp

EVENT_COLUMNS = ("timestamp", "kind", "asset_key", "quantity", "unit_price_usd", "fee_usd")
SUMMARY_COLUMNS = ("metric", "value_usd")
REPORT_FILENAME = "tax-report.csv"
REPORT_MEDIA_TYPE = "text/csv"


def render_events_csv(events: Iterable[LedgerEvent]) -> str:
    """Render events as CSV rows in the given order, header first (even with no events)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EVENT_COLUMNS)
    for event in events:
        writer.writerow(
            (
                format_timestamp(event.timestamp),
                event.kind.value,
                str(event.asset_key),
                format_decimal(event.quantity),
                format_optional_decimal(event.unit_price_usd),
                format_decimal(event.fee_amount),
            )
        )
    return buffer.getvalue()


def render_summary_csv(summary: GainLossSummary) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(SUMMARY_COLUMNS)
    for metric, value in _summary_rows(summary):
        writer.writerow((metric, format_currency(value)))
    return buffer.getvalue()


def _summary_rows(summary: GainLossSummary) -> list[tuple[str, Decimal]]:
    return [
        ("total_gains_usd", summary.total_gains_usd),
        ("total_losses_usd", summary.total_losses_usd),
        ("adjusted_losses_usd", summary.adjusted_losses_usd),
        ("net_taxable_gain_usd", summary.net_taxable_gain_usd),
    ]


def render_gain_loss_summary(subject: str, summary: GainLossSummary) -> None:
    print(f"Realized gains and losses for {subject} (USD):")
    if not summary.disposals:
        print("  (no priced disposals)")
    else:
        rows = [
            (
                format_timestamp(disposal.timestamp),
                str(disposal.asset_key),
                format_decimal(disposal.quantity),
                format_currency(disposal.proceeds_usd),
                format_currency(disposal.cost_basis_usd),
                format_currency(disposal.realized_usd),
            )
            for disposal in summary.disposals
        ]
        labels = ("Timestamp", "Asset", "Quantity", "Proceeds", "Cost basis", "Realized")
        widths = [max(len(label), max(len(row[idx]) for row in rows)) for idx, label in enumerate(labels)]

        header = " ".join(
            f"{label:<{width}}" if idx < 2 else f"{label:>{width}}"
            for idx, (label, width) in enumerate(zip(labels, widths))
        )
        lines = [header, "-" * len(header)]
        for row in rows:
            lines.append(
                " ".join(
                    f"{cell:<{width}}" if idx < 2 else f"{cell:>{width}}"
                    for idx, (cell, width) in enumerate(zip(row, widths))
                )
            )
        print("\n".join(lines))

    totals = [(metric, format_currency(value)) for metric, value in _summary_rows(summary)]
    metric_width = max(len(metric) for metric, _ in totals)
    value_width = max(len(value) for _, value in totals)
    print()
    for metric, value in totals:
        print(f"  {metric:<{metric_width}} {value:>{value_width}}")

    if summary.skipped_unpriced_count:
        print(f"  Skipped {summary.skipped_unpriced_count} unpriced acquisition/disposal event(s)")
    for violation in summary.invariant_violations:
        print(
            f"  WARNING: event {violation.event_id} disposes more {violation.asset_key} than acquired "
            f"(quantity held {format_decimal(violation.quantity_held)})"
        )
