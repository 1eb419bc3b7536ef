import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from time import perf_counter
from typing import Annotated, AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import sessionmaker

from api.dependencies import get_settings, get_tax_service
from db.db import create_db_engine
from domain.errors import (
    ComputationInvariantViolation,
    LedgerError,
    MissingParameter,
    StoreUnavailable,
    ValidationError,
)
from domain.gain_loss import GainLossSummary
from domain.ledger import AssetKey, EventKind, LedgerEvent
from services.tax_service import TaxService
from utils.tax_report import REPORT_FILENAME, REPORT_MEDIA_TYPE

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    engine = create_db_engine(settings.db_file, echo=settings.sql_echo)
    fastapi_app.state.sessionmaker = sessionmaker(engine)
    yield
    engine.dispose()


app = FastAPI(lifespan=lifespan)


class RecordEventRequest(BaseModel):
    kind: EventKind
    user: str
    contract: str
    token_id: int
    quantity: Decimal
    fee_usd: Decimal = Decimal("0")
    unit_price_usd: Decimal | None = None
    timestamp: datetime | None = None


class OverDisposalResponse(BaseModel):
    event_id: int
    asset_key: str
    quantity_held: Decimal


class SummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_gains_usd: Decimal = Field(alias="totalGainsUSD")
    total_losses_usd: Decimal = Field(alias="totalLossesUSD")
    adjusted_losses_usd: Decimal = Field(alias="adjustedLossesUSD")
    net_taxable_gain_usd: Decimal = Field(alias="netTaxableGainUSD")
    disposals: int
    skipped_unpriced_events: int = Field(alias="skippedUnpricedEvents")
    warnings: list[OverDisposalResponse]

    @classmethod
    def from_summary(cls, summary: GainLossSummary) -> "SummaryResponse":
        return cls(
            total_gains_usd=summary.total_gains_usd,
            total_losses_usd=summary.total_losses_usd,
            adjusted_losses_usd=summary.adjusted_losses_usd,
            net_taxable_gain_usd=summary.net_taxable_gain_usd,
            disposals=len(summary.disposals),
            skipped_unpriced_events=summary.skipped_unpriced_count,
            warnings=[
                OverDisposalResponse(
                    event_id=violation.event_id,
                    asset_key=str(violation.asset_key),
                    quantity_held=violation.quantity_held,
                )
                for violation in summary.invariant_violations
            ],
        )


class RevenueSplitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_fees_usd: Decimal = Field(alias="totalFeesUSD")
    dev_share_usd: Decimal = Field(alias="devShareUSD")
    protocol_net_usd: Decimal = Field(alias="protocolNetUSD")
    reserve_share_usd: Decimal = Field(alias="reserveShareUSD")
    staker_share_usd: Decimal = Field(alias="stakerShareUSD")
    from_: datetime | None = Field(alias="from")
    to: datetime | None


class FeeStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_fees_usd: Decimal = Field(alias="totalFeesUSD")
    fee_events: int = Field(alias="feeEvents")
    from_: datetime | None = Field(alias="from")
    to: datetime | None


def error_status(err: LedgerError) -> int:
    # Store outages map to 503 on every route, the CSV export included.
    if isinstance(err, MissingParameter):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(err, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(err, StoreUnavailable):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(err, ComputationInvariantViolation):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, err: LedgerError) -> JSONResponse:
    status_code = error_status(err)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, err)
    body: dict[str, object] = {"error": type(err).__name__, "detail": str(err)}
    if isinstance(err, ValidationError) and err.field_errors:
        body["fields"] = err.field_errors
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, err: RequestValidationError) -> JSONResponse:
    fields = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in err.errors()]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": ValidationError.__name__, "detail": "Invalid request", "fields": fields},
    )


@app.middleware("http")
async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start_time = perf_counter()
    response = await call_next(request)
    process_time = perf_counter() - start_time
    logger.info("Request time: %s %s: %.4fs", request.method, request.url, process_time)
    return response


@app.post("/tax/events", status_code=status.HTTP_201_CREATED)
def record_event(
    body: RecordEventRequest, service: Annotated[TaxService, Depends(get_tax_service)]
) -> LedgerEvent:
    try:
        asset_key = AssetKey(contract=body.contract, token_id=body.token_id)
    except ValueError as err:
        raise ValidationError(f"Invalid asset key: {err}") from err
    return service.record_event(
        kind=body.kind,
        subject=body.user,
        asset_key=asset_key,
        quantity=body.quantity,
        fee_amount=body.fee_usd,
        unit_price_usd=body.unit_price_usd,
        timestamp=body.timestamp,
    )


@app.get("/tax/summary")
def get_summary(
    service: Annotated[TaxService, Depends(get_tax_service)], user: str | None = None
) -> SummaryResponse:
    return SummaryResponse.from_summary(service.get_summary(user))


@app.get("/tax/export")
def export_csv(service: Annotated[TaxService, Depends(get_tax_service)], user: str | None = None) -> Response:
    try:
        content = service.export_csv(user)
    except LedgerError as err:
        return PlainTextResponse(str(err), status_code=error_status(err))
    return Response(
        content=content,
        media_type=REPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{REPORT_FILENAME}"'},
    )


@app.get("/admin/revenue")
def get_revenue(
    service: Annotated[TaxService, Depends(get_tax_service)],
    from_: Annotated[datetime | None, Query(alias="from")] = None,
    to: datetime | None = None,
) -> RevenueSplitResponse:
    split = service.get_revenue_split(from_, to)
    return RevenueSplitResponse(
        total_fees_usd=split.total_fees_usd,
        dev_share_usd=split.dev_share_usd,
        protocol_net_usd=split.protocol_net_usd,
        reserve_share_usd=split.reserve_share_usd,
        staker_share_usd=split.staker_share_usd,
        from_=split.from_,
        to=split.to,
    )


@app.get("/admin/fees")
def get_fee_stats(
    service: Annotated[TaxService, Depends(get_tax_service)],
    from_: Annotated[datetime | None, Query(alias="from")] = None,
    to: datetime | None = None,
) -> FeeStatsResponse:
    stats = service.get_fee_stats(from_, to)
    return FeeStatsResponse(
        total_fees_usd=stats.total_fees_usd,
        fee_events=stats.fee_event_count,
        from_=stats.from_,
        to=stats.to,
    )
