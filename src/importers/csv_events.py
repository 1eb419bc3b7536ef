from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path

from domain.errors import ValidationError
from domain.ledger import AssetKey, NewLedgerEvent, parse_new_event

REQUIRED_COLUMNS = {"kind", "subject", "asset_key", "quantity"}


def load_events_csv(csv_path: Path) -> list[NewLedgerEvent]:
    """Load ledger events exported by a settlement/custody collaborator.

    Each row should contain: kind,subject,asset_key,quantity[,fee_usd,unit_price_usd,timestamp]
    where asset_key is `<contract>:<token_id>`. Rows without a timestamp are stamped by
    the store when appended. The whole file is rejected if any row is invalid.
    """
    with csv_path.open(newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ValidationError(f"Events CSV {csv_path} is empty or missing headers")

        missing = REQUIRED_COLUMNS - set(reader.fieldnames)
        if missing:
            raise ValidationError(f"Events CSV {csv_path} missing required columns: {', '.join(sorted(missing))}")

        events: list[NewLedgerEvent] = []
        # Row 1 is the header.
        for row_number, row in enumerate(reader, start=2):
            try:
                asset_key = AssetKey.parse(row["asset_key"])
                timestamp = _parse_timestamp(row.get("timestamp"))
            except ValueError as err:
                raise ValidationError(f"Events CSV {csv_path} row {row_number}: {err}") from err

            try:
                events.append(
                    parse_new_event(
                        {
                            "kind": row["kind"].strip().lower(),
                            "subject": row["subject"].strip(),
                            "asset_key": asset_key,
                            "quantity": row["quantity"].strip(),
                            "fee_amount": _blank_to_none(row.get("fee_usd")) or "0",
                            "unit_price_usd": _blank_to_none(row.get("unit_price_usd")),
                            "timestamp": timestamp,
                        }
                    )
                )
            except ValidationError as err:
                raise ValidationError(
                    f"Events CSV {csv_path} row {row_number}: {err}", field_errors=err.field_errors
                ) from err

    return events


def _blank_to_none(raw: str | None) -> str | None:
    if raw is None:
        return None
    normalized = raw.strip()
    return normalized or None


def _parse_timestamp(raw: str | None) -> datetime | None:
    normalized = _blank_to_none(raw)
    if normalized is None:
        return None
    if normalized.endswith(("Z", "z")):
        normalized = f"{normalized[:-1]}+00:00"
    ts = datetime.fromisoformat(normalized)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
