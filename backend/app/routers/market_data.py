# backend/app/routers/market_data.py
"""
Market data endpoints.

Endpoints:
    POST /market-data/refresh - Append missing daily bars from the provider

The refresh is incremental: each symbol is fetched from the day after its
latest stored bar. Calling it twice in a row stores nothing the second time.
Per-symbol provider failures are reported in the response, not raised.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from app.dependencies import get_refresh_service
from app.middleware import limiter, RATE_LIMIT_REFRESH
from app.schemas.market_data import (
    MarketDataRefreshRequest,
    MarketDataRefreshResponse,
    SymbolRefreshResponse,
)
from app.services.market_data import MarketDataRefreshService
from app.utils.context import set_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/market-data",
    tags=["Market Data"],
)


@router.post(
    "/refresh",
    response_model=MarketDataRefreshResponse,
    summary="Refresh stored prices and FX rates",
)
@limiter.limit(RATE_LIMIT_REFRESH)
def refresh_market_data(
        request: Request,
        service: Annotated[MarketDataRefreshService, Depends(get_refresh_service)],
        body: MarketDataRefreshRequest | None = None,
):
    """Fetch new bars for every ledger ticker and the FX pairs they need."""
    user_id = body.user_id if body else None
    if user_id:
        set_current_user_id(user_id)

    result = service.refresh(user_id)

    return MarketDataRefreshResponse(
        status=result.status,
        bars_stored=result.bars_stored,
        symbols=[
            SymbolRefreshResponse(
                symbol=s.symbol,
                from_date=s.from_date,
                to_date=s.to_date,
                bars_stored=s.bars_stored,
                up_to_date=s.up_to_date,
                success=s.success,
                error=s.error,
            )
            for s in result.symbols
        ],
        warnings=result.warnings,
    )
