from pathlib import Path

import pytest

from main import main


def _run(db_file: Path, *args: str) -> int:
    return main(["--db", str(db_file), *args])


def _record_args(kind: str, asset: str, quantity: str, *extra: str) -> list[str]:
    return ["record", "--kind", kind, "--user", "0xa11ce", "--asset", asset, "--quantity", quantity, *extra]


def test_record_then_summary_and_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_file = tmp_path / "ledger.db"

    acquisition = _record_args("acquisition", "0xpunks:7", "10", "--price", "5", "--timestamp", "2024-01-01")
    disposal = _record_args("disposal", "0xpunks:7", "4", "--price", "8", "--timestamp", "2024-01-02")
    assert _run(db_file, *acquisition) == 0
    assert _run(db_file, *disposal) == 0
    capsys.readouterr()

    assert _run(db_file, "summary", "--user", "0xa11ce", "--csv") == 0
    assert capsys.readouterr().out.splitlines() == [
        "metric,value_usd",
        "total_gains_usd,12.00",
        "total_losses_usd,0.00",
        "adjusted_losses_usd,0.00",
        "net_taxable_gain_usd,12.00",
    ]

    report = tmp_path / "tax-report.csv"
    assert _run(db_file, "export", "--user", "0xa11ce", "--output", str(report)) == 0
    assert len(report.read_text().splitlines()) == 3


def test_import_csv_and_revenue(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_file = tmp_path / "ledger.db"
    events_csv = tmp_path / "events.csv"
    events_csv.write_text(
        "kind,subject,asset_key,quantity,fee_usd,unit_price_usd,timestamp\n"
        "trade,0xa11ce,0xpunks:7,1,600,,2024-01-01T00:00:00Z\n"
        "trade,0xb0b,0xpunks:8,1,400,,2024-01-02T00:00:00Z\n"
    )

    assert _run(db_file, "import-csv", str(events_csv)) == 0
    assert "Imported 2 events" in capsys.readouterr().out

    assert _run(db_file, "revenue") == 0
    output = capsys.readouterr().out
    assert "1000.00" in output
    assert "285.00" in output


def test_invalid_input_exits_non_zero(tmp_path: Path) -> None:
    db_file = tmp_path / "ledger.db"

    assert _run(db_file, *_record_args("mint", "0xpunks", "1")) == 1
    assert _run(db_file, *_record_args("mint", "0xpunks:1", "-1")) == 1


def test_record_trade_defaults_to_marketplace_fee(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    db_file = tmp_path / "ledger.db"

    assert _run(db_file, *_record_args("trade", "0xpunks:7", "1", "--price", "400")) == 0
    assert _run(db_file, *_record_args("trade", "0xpunks:8", "1", "--price", "5000")) == 0
    assert _run(db_file, *_record_args("trade", "0xland:1", "1", "--price", "400", "--fee", "7")) == 0
    assert _run(db_file, *_record_args("acquisition", "0xland:2", "1", "--price", "400")) == 0
    capsys.readouterr()

    assert _run(db_file, "revenue") == 0
    output = capsys.readouterr().out
    # 20 + 100 (capped) + 7
    assert "127.00" in output
    assert "76.20" in output
