# backend/app/routers/__init__.py
"""
API routers for the Family Portfolio Ledger.

Each router handles a specific domain:
- transactions: Ledger submissions, deletions, listing and recompute
- valuation: Point-in-time snapshot and daily history
- market_data: Incremental price / FX refresh
- users: User preferences (alias, display currency)
"""

from app.routers.market_data import router as market_data_router
from app.routers.transactions import router as transactions_router
from app.routers.users import router as users_router
from app.routers.valuation import router as valuation_router

__all__ = [
    "market_data_router",
    "transactions_router",
    "users_router",
    "valuation_router",
]
