"""Importers for ledger events produced outside the engine."""

from importers.csv_events import load_events_csv

__all__ = ["load_events_csv"]
