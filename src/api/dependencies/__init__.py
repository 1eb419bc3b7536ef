from typing import Annotated, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import AppSettings, config
from db.repositories import LedgerEventRepository
from domain.gain_loss import GainLossAggregator
from services.tax_service import TaxService


def get_settings() -> AppSettings:
    return config()


def get_session(request: Request) -> Generator[Session, None, None]:
    with request.app.state.sessionmaker() as session:
        yield session


def get_events_repository(session: Annotated[Session, Depends(get_session)]) -> LedgerEventRepository:
    return LedgerEventRepository(session)


def get_aggregator(settings: Annotated[AppSettings, Depends(get_settings)]) -> GainLossAggregator:
    return GainLossAggregator(haircut_factor=settings.loss_haircut_factor, strict=settings.strict_invariants)


def get_tax_service(
    repository: Annotated[LedgerEventRepository, Depends(get_events_repository)],
    aggregator: Annotated[GainLossAggregator, Depends(get_aggregator)],
) -> TaxService:
    return TaxService(repository=repository, aggregator=aggregator)
