# backend/app/services/valuation/snapshot.py
"""
Snapshot Valuator: open positions at one point in time.

Quantities and effective WAC (buy costs included) are rebuilt here from the real trades on or before the
target date (PositionAccumulator); the stored average_price columns are not
read. Each open ticker is then priced with the latest stored close on or
before the target date, converted with the FX rate in force on that date.

Fallbacks (never an error):
    no stored close  → current_price = avg_price, is_live_price = False
    no stored FX     → rate 1.0, is_live_price = False
"""

import logging
from collections.abc import Sequence
from datetime import date

from app.services.currency import CurrencyResolver
from app.services.ledger.cost_basis import PositionAccumulator
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.protocols import LedgerClient, PriceSource
from app.services.valuation.types import PortfolioSnapshot, PositionView

logger = logging.getLogger(__name__)


class SnapshotValuator:
    """
    Point-in-time portfolio valuation.

    Example:
        valuator = SnapshotValuator(ledger, prices, resolver)
        snapshot = valuator.compute_snapshot("user-1", people=["Ana"])
        for position in snapshot.positions:
            print(position.ticker, position.profit_loss)
    """

    def __init__(
            self,
            ledger: LedgerClient,
            prices: PriceSource,
            currency_resolver: CurrencyResolver,
            normalizer: LedgerNormalizer | None = None,
    ) -> None:
        self._ledger = ledger
        self._prices = prices
        self._currency = currency_resolver
        self._normalizer = normalizer or LedgerNormalizer()

    def compute_snapshot(
            self,
            user_id: str,
            target_date: date | None = None,
            people: Sequence[str] | None = None,
    ) -> PortfolioSnapshot:
        """
        Value every open position of the selected holders.

        Args:
            user_id: Ledger owner
            target_date: Valuation date (today when None)
            people: Holders to include (all when None or empty)

        Raises:
            LedgerQueryError: If the ledger cannot be read
        """
        target_date = target_date or date.today()
        display_currency = self._currency.resolve_display_currency(user_id)
        snapshot = PortfolioSnapshot(
            user_id=user_id,
            target_date=target_date,
            display_currency=display_currency,
        )

        entries = self._ledger.query_entries(user_id, people=people, end_date=target_date)
        accumulator = PositionAccumulator()
        accumulator.apply_all(self._normalizer.order(self._normalizer.from_entries(entries)))

        open_positions = accumulator.open_positions()
        if not open_positions:
            return snapshot

        asset_currencies = self._currency.resolve_asset_currencies(
            list(open_positions), display_currency
        )

        for ticker, position in open_positions.items():
            asset_currency = asset_currencies[ticker]
            latest = self._prices.get_latest_close(ticker, target_date)

            if latest is None:
                logger.warning(f"No stored close for {ticker} on or before {target_date}; valuing at cost")
                snapshot.warnings.append(f"{ticker}: no market price, valued at cost")
                current_price = position.avg_price
                price_date = None
                is_live = False
            else:
                price_date, close = latest
                fx = self._currency.get_fx_rate(asset_currency, display_currency, target_date)
                current_price = fx.convert(close)
                is_live = fx.is_live
                if not fx.is_live:
                    snapshot.warnings.append(
                        f"{ticker}: no {asset_currency}/{display_currency} rate, converted at 1.0"
                    )

            snapshot.positions.append(PositionView(
                ticker=ticker,
                quantity=position.quantity,
                avg_price=position.avg_price,
                total_exposure=position.cost,
                current_price=current_price,
                avg_date=position.last_trade_date,
                is_live_price=is_live,
                currency=display_currency,
                asset_currency=asset_currency,
                price_date=price_date,
            ))

        snapshot.positions.sort(key=lambda p: p.total_exposure, reverse=True)
        return snapshot
