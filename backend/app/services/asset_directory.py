# backend/app/services/asset_directory.py
"""
Ticker -> trading currency directory.

Implements the AssetDirectory protocol. Tickers are registered from
submissions, in the currency the trade was entered in.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import Asset
from app.services.exceptions import ValidationError

logger = logging.getLogger(__name__)


class SqlAssetDirectory:
    """Asset directory backed by the assets table."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_asset(self, ticker: str) -> Asset | None:
        return self._db.scalar(select(Asset).where(Asset.ticker == ticker.upper()))

    def get_currency(self, ticker: str) -> str | None:
        asset = self.get_asset(ticker)
        return asset.currency if asset else None

    def get_currencies(self, tickers: Iterable[str]) -> dict[str, str]:
        wanted = {t.upper() for t in tickers}
        if not wanted:
            return {}
        rows = self._db.scalars(select(Asset).where(Asset.ticker.in_(wanted))).all()
        return {a.ticker: a.currency for a in rows}

    def list_assets(self) -> list[Asset]:
        return list(self._db.scalars(select(Asset).order_by(Asset.ticker)).all())

    def register(
            self,
            ticker: str,
            currency: str,
            name: str | None = None,
            sector: str | None = None,
            overwrite: bool = False,
    ) -> Asset:
        """
        Add a ticker, or update it when overwrite is set.

        Flushes but does not commit; callers own the transaction.

        Raises:
            ValidationError: If currency is not a 3-letter code
        """
        ticker = ticker.strip().upper()
        currency = currency.strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError(f"Invalid currency code: '{currency}'", field="currency")

        asset = self.get_asset(ticker)
        if asset is None:
            asset = Asset(ticker=ticker, currency=currency, name=name, sector=sector)
            self._db.add(asset)
            logger.info(f"Registered {ticker} trading in {currency}")
        elif overwrite:
            asset.currency = currency
            asset.name = name if name is not None else asset.name
            asset.sector = sector if sector is not None else asset.sector

        self._db.flush()
        return asset
