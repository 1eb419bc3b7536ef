from datetime import datetime, timezone
from decimal import Decimal

import pydantic
import pytest

from domain.errors import ValidationError
from domain.ledger import AssetKey, EventKind, LedgerEvent, parse_new_event
from tests.constants import ALICE, PUNK_7


def _raw(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "kind": "acquisition",
        "subject": ALICE,
        "asset_key": PUNK_7,
        "quantity": "2",
        "fee_amount": "0.5",
        "unit_price_usd": "10",
    }
    data.update(overrides)
    return data


def test_parse_new_event_accepts_valid_input() -> None:
    event = parse_new_event(_raw())

    assert event.kind == EventKind.ACQUISITION
    assert event.quantity == Decimal("2")
    assert event.fee_amount == Decimal("0.5")
    assert event.unit_price_usd == Decimal("10")
    assert event.timestamp is None


def test_unit_price_is_optional() -> None:
    assert parse_new_event(_raw(unit_price_usd=None)).unit_price_usd is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"quantity": "0"},
        {"quantity": "-1"},
        {"quantity": "NaN"},
        {"quantity": "Infinity"},
        {"fee_amount": "-0.01"},
        {"unit_price_usd": "-5"},
        {"unit_price_usd": "Infinity"},
        {"subject": ""},
        {"kind": "airdrop"},
        {"quantity": "lots"},
    ],
)
def test_malformed_events_are_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError) as excinfo:
        parse_new_event(_raw(**overrides))

    assert excinfo.value.field_errors


def test_asset_key_text_form_round_trips() -> None:
    key = AssetKey.parse("0xpunks:7")

    assert key == PUNK_7
    assert str(key) == "0xpunks:7"


@pytest.mark.parametrize("raw", ["0xpunks", "0xpunks:seven", ":7", "0xpunks:-1"])
def test_asset_key_parse_rejects_garbage(raw: str) -> None:
    with pytest.raises(ValueError):
        AssetKey.parse(raw)


def test_stored_event_timestamps_are_utc() -> None:
    fields = parse_new_event(_raw()).model_dump(exclude={"timestamp"})
    event = LedgerEvent(id=1, timestamp=datetime(2024, 1, 1, 12), **fields)

    assert event.timestamp == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


def test_events_are_immutable() -> None:
    event = parse_new_event(_raw())

    with pytest.raises(pydantic.ValidationError):
        event.quantity = Decimal("5")  # type: ignore[misc]
