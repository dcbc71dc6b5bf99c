# backend/app/services/valuation/__init__.py
"""
Valuation Package.

Read-only views over the recomputed ledger and stored market data:
- Point-in-time positions (SnapshotValuator)
- Day-by-day series for charts (HistoricalSeriesBuilder)

Usage:
    from app.services.valuation import SnapshotValuator, HistoricalSeriesBuilder

    snapshot = SnapshotValuator(ledger, prices, resolver).compute_snapshot("user-1")
    series = HistoricalSeriesBuilder(ledger, prices, resolver).build_series(
        "user-1", date(2024, 1, 1), date(2024, 12, 31)
    )
"""

from app.services.valuation.history import HistoricalSeriesBuilder
from app.services.valuation.snapshot import SnapshotValuator
from app.services.valuation.types import (
    DailyPoint,
    PortfolioSnapshot,
    PositionView,
    SeriesResult,
)

__all__ = [
    "HistoricalSeriesBuilder",
    "SnapshotValuator",
    "DailyPoint",
    "PortfolioSnapshot",
    "PositionView",
    "SeriesResult",
]
