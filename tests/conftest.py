from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from api.api import app
from api.dependencies import get_session, get_settings
from config import AppSettings
from db.models import Base
from db.repositories import LedgerEventRepository
from domain.gain_loss import GainLossAggregator
from services.tax_service import TaxService
from tests.helpers.time_utils import DEFAULT_TIME_GEN

# StaticPool shares the single in-memory DB with the threads TestClient runs routes in.
engine: Engine = create_engine(
    "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _reset_default_time_gen() -> None:
    DEFAULT_TIME_GEN.reset()


@pytest.fixture(scope="function")
def repository(test_session: Session) -> LedgerEventRepository:
    return LedgerEventRepository(test_session, clock=DEFAULT_TIME_GEN)


@pytest.fixture(scope="function")
def tax_service(repository: LedgerEventRepository) -> TaxService:
    return TaxService(repository=repository, aggregator=GainLossAggregator())


@pytest.fixture(scope="function")
def settings() -> AppSettings:
    return AppSettings(db_file=":memory:", loss_haircut_factor=Decimal("0.7"), strict_invariants=False)


@pytest.fixture(scope="function")
def client(settings: AppSettings) -> Generator[TestClient, None, None]:
    def _session() -> Generator[Session, None, None]:
        with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_settings] = lambda: settings
    # Not entered as a context manager, so the file-backed lifespan engine is never created.
    yield TestClient(app)
    app.dependency_overrides.clear()
