from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.gain_loss import DEFAULT_LOSS_HAIRCUT_FACTOR

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "nft_tax_ledger.db"


class AppSettings(BaseSettings):
    db_file: Path = DB_FILE
    sql_echo: bool = False
    loss_haircut_factor: Decimal = DEFAULT_LOSS_HAIRCUT_FACTOR
    strict_invariants: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("loss_haircut_factor")
    @classmethod
    def _validate_haircut(cls, value: Decimal) -> Decimal:
        if not Decimal("0") <= value <= Decimal("1"):
            raise ValueError("loss_haircut_factor must be within [0, 1]")
        return value


@cache
def config() -> AppSettings:
    return AppSettings()
