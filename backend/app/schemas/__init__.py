# backend/app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

This package contains all Pydantic schemas organized by domain:
- errors: Error response formats
- market_data: Market data refresh requests/responses
- transactions: Ledger submissions, listings and recompute
- users: User preferences (alias, display currency)
- validators: Reusable validation functions (ticker, person, currency)
- valuation: Snapshot and daily history

Usage:
    from app.schemas import TransactionCreate, TransactionSubmitResponse
    from app.schemas import SnapshotResponse, HistoryRequest, HistoryResponse
    from app.schemas import MarketDataRefreshResponse
"""

from app.schemas.errors import ErrorDetail, FieldError, ValidationErrorDetail
from app.schemas.market_data import (
    MarketDataRefreshRequest,
    MarketDataRefreshResponse,
    SymbolRefreshResponse,
)
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
from app.schemas.users import (
    UserPreferenceResponse,
    UserPreferenceUpdate,
    UserPreferenceUpdateResponse,
)
from app.schemas.valuation import (
    DailyPointResponse,
    HistoryRequest,
    HistoryResponse,
    PositionResponse,
    SnapshotResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "FieldError",
    "ValidationErrorDetail",
    # Market data
    "MarketDataRefreshRequest",
    "MarketDataRefreshResponse",
    "SymbolRefreshResponse",
    # Transactions
    "LedgerEntryResponse",
    "LedgerPair",
    "LedgerTotalsResponse",
    "RecomputeRequest",
    "RecomputeResponse",
    "TransactionCreate",
    "TransactionDeleteResponse",
    "TransactionListResponse",
    "TransactionSubmitResponse",
    # Users
    "UserPreferenceResponse",
    "UserPreferenceUpdate",
    "UserPreferenceUpdateResponse",
    # Valuation
    "DailyPointResponse",
    "HistoryRequest",
    "HistoryResponse",
    "PositionResponse",
    "SnapshotResponse",
]
