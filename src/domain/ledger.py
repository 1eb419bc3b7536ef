from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Any, Mapping, NewType

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .errors import ValidationError

LedgerEventId = NewType("LedgerEventId", int)
Subject = NewType("Subject", str)


class EventKind(StrEnum):
    TRADE = "trade"
    MINT = "mint"
    WITHDRAW = "withdraw"
    REWARD = "reward"
    ACQUISITION = "acquisition"
    DISPOSAL = "disposal"


class AssetKey(BaseModel):
    """Asset contract plus the token id inside that contract."""

    model_config = ConfigDict(frozen=True)

    contract: str
    token_id: int

    @model_validator(mode="after")
    def _validate_fields(self) -> AssetKey:
        if not self.contract:
            raise ValueError("AssetKey.contract must be non-empty")
        if self.token_id < 0:
            raise ValueError("AssetKey.token_id must be >= 0")
        return self

    def __str__(self) -> str:
        return f"{self.contract}:{self.token_id}"

    @classmethod
    def parse(cls, raw: str) -> AssetKey:
        contract, sep, token_id = raw.strip().rpartition(":")
        if not sep:
            raise ValueError(f"Asset key {raw!r} must look like <contract>:<token_id>")
        return cls(contract=contract, token_id=int(token_id))


class NewLedgerEvent(BaseModel):
    """An event as submitted by a collaborator, before the store assigns id/timestamp.

    Numeric rules:
    - quantity must be finite and > 0
    - fee_amount must be finite and >= 0
    - unit_price_usd, when present, must be finite and >= 0
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    subject: Subject
    asset_key: AssetKey
    quantity: Decimal
    fee_amount: Decimal = Decimal("0")
    unit_price_usd: Decimal | None = None
    timestamp: datetime | None = None

    @model_validator(mode="after")
    def _validate_numbers(self) -> NewLedgerEvent:
        if not self.subject:
            raise ValueError("subject must be non-empty")
        if not self.quantity.is_finite() or self.quantity <= 0:
            raise ValueError("quantity must be a finite number > 0")
        if not self.fee_amount.is_finite() or self.fee_amount < 0:
            raise ValueError("fee_amount must be a finite number >= 0")
        if self.unit_price_usd is not None and (not self.unit_price_usd.is_finite() or self.unit_price_usd < 0):
            raise ValueError("unit_price_usd must be a finite number >= 0")
        return self


class LedgerEvent(NewLedgerEvent):
    id: LedgerEventId
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        # Naive timestamps read back from SQLite are UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def parse_new_event(data: Mapping[str, Any]) -> NewLedgerEvent:
    """Validate raw collaborator input, raising the ledger's ValidationError on bad fields."""
    try:
        return NewLedgerEvent.model_validate(dict(data))
    except pydantic.ValidationError as err:
        field_errors = [
            f"{'.'.join(str(part) for part in error['loc']) or 'event'}: {error['msg']}" for error in err.errors()
        ]
        raise ValidationError("Invalid ledger event: " + "; ".join(field_errors), field_errors=field_errors) from err
