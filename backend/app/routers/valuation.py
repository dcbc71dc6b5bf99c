# backend/app/routers/valuation.py
"""
Portfolio valuation endpoints.

Endpoints:
    GET  /users/{user_id}/snapshot  - Open positions at a date (default: today)
    POST /users/{user_id}/history   - Day-by-day exposure / value / P&L / dividends

Both are read-only. Missing prices or FX rates never fail the request;
affected figures are flagged with is_live_price = false.
"""

import datetime as dt
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import AfterValidator

from app.dependencies import get_series_builder, get_snapshot_valuator, get_user_id
from app.schemas.validators import validate_person_list
from app.schemas.valuation import (
    DailyPointResponse,
    HistoryRequest,
    HistoryResponse,
    PositionResponse,
    SnapshotResponse,
)
from app.services.valuation import HistoricalSeriesBuilder, SnapshotValuator

logger = logging.getLogger(__name__)

PersonListQuery = Annotated[list[str] | None, AfterValidator(validate_person_list)]

router = APIRouter(
    prefix="/users/{user_id}",
    tags=["Valuation"],
)


@router.get(
    "/snapshot",
    response_model=SnapshotResponse,
    summary="Point-in-time positions",
)
def get_snapshot(
        user_id: Annotated[str, Depends(get_user_id)],
        valuator: Annotated[SnapshotValuator, Depends(get_snapshot_valuator)],
        target_date: dt.date | None = None,
        person: Annotated[PersonListQuery, Query(description="Repeat to select several holders")] = None,
):
    """
    Open positions of the selected holders, sorted by exposure.

    Prices are the latest stored close on or before target_date, converted
    to the user's display currency.
    """
    snapshot = valuator.compute_snapshot(user_id, target_date=target_date, people=person)

    return SnapshotResponse(
        user_id=snapshot.user_id,
        target_date=snapshot.target_date,
        display_currency=snapshot.display_currency,
        positions=[
            PositionResponse(
                ticker=p.ticker,
                quantity=p.quantity,
                avg_price=p.avg_price,
                total_exposure=p.total_exposure,
                current_price=p.current_price,
                market_value=p.market_value,
                profit_loss=p.profit_loss,
                performance_perc=p.performance_perc,
                avg_date=p.avg_date,
                price_date=p.price_date,
                is_live_price=p.is_live_price,
                currency=p.currency,
                asset_currency=p.asset_currency,
            )
            for p in snapshot.positions
        ],
        total_exposure=snapshot.total_exposure,
        total_market_value=snapshot.total_market_value,
        total_profit_loss=snapshot.total_profit_loss,
        is_live=snapshot.is_live,
        warnings=snapshot.warnings,
    )


@router.post(
    "/history",
    response_model=HistoryResponse,
    summary="Daily valuation series",
)
def get_history(
        body: HistoryRequest,
        user_id: Annotated[str, Depends(get_user_id)],
        builder: Annotated[HistoricalSeriesBuilder, Depends(get_series_builder)],
):
    """One point per calendar day between start_date and end_date (inclusive)."""
    series = builder.build_series(
        user_id,
        start_date=body.start_date,
        end_date=body.end_date,
        tickers=body.tickers,
        people=body.people,
    )

    return HistoryResponse(
        user_id=series.user_id,
        display_currency=series.display_currency,
        start_date=series.start_date,
        end_date=series.end_date,
        tickers=series.tickers,
        points=[
            DailyPointResponse(
                date=p.date,
                exposure=p.exposure,
                market_value=p.market_value,
                profit_loss=p.profit_loss,
                dividends=p.dividends,
                gross_value=p.gross_value,
                is_live_price=p.is_live_price,
            )
            for p in series.points
        ],
        warnings=series.warnings,
    )
