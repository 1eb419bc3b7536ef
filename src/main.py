from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from time import perf_counter
from typing import Sequence

from sqlalchemy.orm import Session

from config import AppSettings, config
from db.db import init_db
from db.repositories import LedgerEventRepository
from domain.errors import LedgerError, ValidationError
from domain.gain_loss import GainLossAggregator
from domain.ledger import AssetKey, EventKind
from domain.revenue import marketplace_fee
from importers.csv_events import load_events_csv
from services.tax_service import TaxService
from utils.formatting import format_currency
from utils.tax_report import render_gain_loss_summary, render_summary_csv

logger = logging.getLogger(__name__)


def build_service(settings: AppSettings, session: Session) -> tuple[TaxService, LedgerEventRepository]:
    repository = LedgerEventRepository(session)
    aggregator = GainLossAggregator(haircut_factor=settings.loss_haircut_factor, strict=settings.strict_invariants)
    return TaxService(repository=repository, aggregator=aggregator), repository


def cmd_record(args: argparse.Namespace, service: TaxService, repository: LedgerEventRepository) -> None:
    try:
        asset_key = AssetKey.parse(args.asset)
    except ValueError as err:
        raise ValidationError(f"Invalid --asset {args.asset!r}: {err}") from err

    fee = args.fee
    if fee is None:
        # Marketplace trades pay the standard fee on the sale total unless one is given.
        if args.kind == EventKind.TRADE and args.price is not None:
            fee = marketplace_fee(args.price * args.quantity)
        else:
            fee = Decimal("0")

    event = service.record_event(
        kind=args.kind,
        subject=args.user,
        asset_key=asset_key,
        quantity=args.quantity,
        fee_amount=fee,
        unit_price_usd=args.price,
        timestamp=args.timestamp,
    )
    print(f"Recorded event {event.id} ({event.kind}) at {event.timestamp.isoformat()}")


def cmd_import_csv(args: argparse.Namespace, service: TaxService, repository: LedgerEventRepository) -> None:
    started = perf_counter()
    new_events = load_events_csv(args.csv)
    stored = repository.append_many(new_events)
    logger.info("Imported %d events from %s in %.2fs", len(stored), args.csv, perf_counter() - started)
    print(f"Imported {len(stored)} events from {args.csv}")


def cmd_summary(args: argparse.Namespace, service: TaxService, repository: LedgerEventRepository) -> None:
    summary = service.get_summary(args.user)
    if args.csv:
        sys.stdout.write(render_summary_csv(summary))
        return
    render_gain_loss_summary(args.user, summary)


def cmd_export(args: argparse.Namespace, service: TaxService, repository: LedgerEventRepository) -> None:
    content = service.export_csv(args.user)
    if args.output is None:
        sys.stdout.write(content.decode("utf-8"))
        return
    args.output.write_bytes(content)
    print(f"Wrote {args.output}")


def cmd_revenue(args: argparse.Namespace, service: TaxService, repository: LedgerEventRepository) -> None:
    split = service.get_revenue_split(args.from_, args.to)
    print("Revenue split (USD):")
    rows = [
        ("Total fees", split.total_fees_usd),
        ("Dev share", split.dev_share_usd),
        ("Protocol (net)", split.protocol_net_usd),
        ("Reserve", split.reserve_share_usd),
        ("Stakers", split.staker_share_usd),
    ]
    label_width = max(len(label) for label, _ in rows)
    value_width = max(len(format_currency(value)) for _, value in rows)
    for label, value in rows:
        print(f"  {label:<{label_width}} {format_currency(value):>{value_width}}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NFT marketplace capital-gains ledger.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite file (overrides DB_FILE setting)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    record = subparsers.add_parser("record", help="Append one ledger event")
    record.add_argument("--kind", required=True, choices=[kind.value for kind in EventKind])
    record.add_argument("--user", required=True)
    record.add_argument("--asset", required=True, help="<contract>:<token_id>")
    record.add_argument("--quantity", type=Decimal, required=True)
    record.add_argument(
        "--fee", type=Decimal, default=None, help="Fee in USD (trades default to the marketplace fee on the price)"
    )
    record.add_argument("--price", type=Decimal, default=None, help="Unit price in USD")
    record.add_argument("--timestamp", type=datetime.fromisoformat, default=None)
    record.set_defaults(handler=cmd_record)

    import_csv = subparsers.add_parser("import-csv", help="Append events from a CSV file")
    import_csv.add_argument("csv", type=Path)
    import_csv.set_defaults(handler=cmd_import_csv)

    summary = subparsers.add_parser("summary", help="Realized gain/loss summary for a user")
    summary.add_argument("--user", required=True)
    summary.add_argument("--csv", action="store_true", help="Print the totals as CSV")
    summary.set_defaults(handler=cmd_summary)

    export = subparsers.add_parser("export", help="Export a user's events as CSV")
    export.add_argument("--user", required=True)
    export.add_argument("--output", type=Path, default=None)
    export.set_defaults(handler=cmd_export)

    revenue = subparsers.add_parser("revenue", help="Fee revenue split")
    revenue.add_argument("--from", dest="from_", type=datetime.fromisoformat, default=None)
    revenue.add_argument("--to", type=datetime.fromisoformat, default=None)
    revenue.set_defaults(handler=cmd_revenue)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = config()
    if args.db is not None:
        settings = settings.model_copy(update={"db_file": args.db})

    logger.info("Opening DB at %s", settings.db_file)
    session_factory = init_db(settings.sql_echo, db_file=settings.db_file)
    with session_factory() as session:
        service, repository = build_service(settings, session)
        try:
            args.handler(args, service, repository)
        except LedgerError as err:
            logger.error("%s: %s", type(err).__name__, err)
            return 1
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=config().log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    sys.exit(main())
