# backend/app/routers/transactions.py
"""
Ledger transaction endpoints.

One submission is one logical Buy or Sell shared by one or more holders.
It is written as one ledger row per holder (plus a Profit/Loss row per
holder for a sell), after which the full history of every affected
(ticker, person) pair is recomputed.

Endpoints:
    POST   /users/{user_id}/transactions                   - Submit a transaction
    DELETE /users/{user_id}/transactions/{transaction_id}  - Delete + recompute
    GET    /users/{user_id}/transactions                   - Filtered listing with totals
    POST   /users/{user_id}/ledger/recompute               - Explicit full rebuild

Domain errors (ValidationError, TransactionNotFoundError, RecomputeError,
...) are turned into HTTP responses by the handlers in main.py.
"""

import datetime as dt
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import AfterValidator

from app.dependencies import get_ledger_service, get_user_id
from app.middleware import limiter, RATE_LIMIT_WRITE
from app.schemas.transactions import (
    LedgerEntryResponse,
    LedgerPair,
    LedgerTotalsResponse,
    RecomputeRequest,
    RecomputeResponse,
    TransactionCreate,
    TransactionDeleteResponse,
    TransactionListResponse,
    TransactionSubmitResponse,
)
from app.schemas.validators import validate_person_list, validate_ticker_list
from app.services.ledger import AllocationRequest, LedgerService, TradeSide

logger = logging.getLogger(__name__)

# Validated query parameter types
TickerListQuery = Annotated[list[str] | None, AfterValidator(validate_ticker_list)]
PersonListQuery = Annotated[list[str] | None, AfterValidator(validate_person_list)]

# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/users/{user_id}",
    tags=["Transactions"],
)


def _pairs(pairs: list[tuple[str, str]]) -> list[LedgerPair]:
    return [LedgerPair(ticker=ticker, person=person) for ticker, person in pairs]


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post(
    "/transactions",
    response_model=TransactionSubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a transaction",
)
@limiter.limit(RATE_LIMIT_WRITE)
def submit_transaction(
        request: Request,
        body: TransactionCreate,
        user_id: Annotated[str, Depends(get_user_id)],
        service: Annotated[LedgerService, Depends(get_ledger_service)],
):
    """
    Record a Buy or Sell split across holders.

    Fees and taxes are totals in display currency and are split in
    proportion to each holder's shares. When exchange_rate is omitted the
    stored FX close for the trade date is used.
    """
    allocation = AllocationRequest(
        side=TradeSide(body.side),
        ticker=body.ticker,
        operation_date=body.operation_date,
        price=body.price_per_share,
        currency=body.currency or "",
        exchange_rate=body.exchange_rate,
        total_fees=body.expenses,
        total_taxes=body.taxes,
        holders=body.holders,
        platform=body.platform,
        account_owner=body.account_owner,
        regulated=body.regulated,
        sector=body.sector,
    )
    result = service.submit_transaction(user_id, allocation)

    return TransactionSubmitResponse(
        transaction_id=result.transaction_id,
        rows_created=result.rows_created,
        pairs_recomputed=_pairs(result.pairs_recomputed),
    )


@router.delete(
    "/transactions/{transaction_id}",
    response_model=TransactionDeleteResponse,
    summary="Delete a transaction",
)
@limiter.limit(RATE_LIMIT_WRITE)
def delete_transaction(
        request: Request,
        transaction_id: int,
        user_id: Annotated[str, Depends(get_user_id)],
        service: Annotated[LedgerService, Depends(get_ledger_service)],
):
    """Remove every row of a transaction and recompute the affected positions."""
    result = service.delete_transaction(user_id, transaction_id)
    return TransactionDeleteResponse(
        transaction_id=result.transaction_id,
        rows_deleted=result.rows_deleted,
        pairs_recomputed=_pairs(result.pairs_recomputed),
    )


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    summary="List ledger rows",
)
def list_transactions(
        user_id: Annotated[str, Depends(get_user_id)],
        service: Annotated[LedgerService, Depends(get_ledger_service)],
        ticker: Annotated[TickerListQuery, Query(description="Repeat to filter several tickers")] = None,
        person: Annotated[PersonListQuery, Query(description="Repeat to filter several holders")] = None,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
):
    """Ledger rows newest first, with totals over the real trades."""
    entries, totals = service.list_transactions(
        user_id,
        tickers=ticker,
        people=person,
        start_date=start_date,
        end_date=end_date,
    )
    return TransactionListResponse(
        items=[LedgerEntryResponse.model_validate(e) for e in entries],
        count=len(entries),
        totals=LedgerTotalsResponse(
            total_outlay=totals.total_outlay,
            shares_count=totals.shares_count,
            fees=totals.fees,
            taxes=totals.taxes,
            realized_pnl=service.realized_total(entries),
        ),
    )


@router.post(
    "/ledger/recompute",
    response_model=RecomputeResponse,
    summary="Rebuild computed ledger columns",
)
@limiter.limit(RATE_LIMIT_WRITE)
def recompute_ledger(
        request: Request,
        body: RecomputeRequest,
        user_id: Annotated[str, Depends(get_user_id)],
        service: Annotated[LedgerService, Depends(get_ledger_service)],
):
    """Replay the full history of a ticker (one holder or all) and rewrite it."""
    pairs = service.recompute(user_id, body.ticker, body.person)
    return RecomputeResponse(pairs_recomputed=_pairs(pairs))
