# backend/app/services/currency.py
"""
Currency Resolver.

Answers three questions for the valuators:
- Which currency does this user want to see? (preference, else the default)
- Which currency does this ticker trade in? (asset directory, else display)
- What is the rate between two currencies? (stored FX closes)

FX rates are read from market data stored under the synthetic symbol
"{BASE}{QUOTE}=X", meaning 1 BASE = close QUOTE. When only the reverse
pair is stored its inverse is used.

Degradation policy:
    A missing rate is NOT an error for valuation. get_fx_rate() returns
    rate = 1 with is_live = False and logs a WARNING; figures converted with
    such a quote are approximate and are flagged downstream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.config import settings
from app.services.constants import FX_SYMBOL_SUFFIX, ONE
from app.services.exceptions import FXRateNotFoundError
from app.services.protocols import AssetDirectory, PreferenceStore, PriceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FxQuote:
    """
    A rate between two currencies.

    Attributes:
        rate: 1 base = rate quote
        is_live: False when the rate is the 1.0 fallback
        as_of: Date of the stored close used (None for identity/fallback)
    """

    base_currency: str
    quote_currency: str
    rate: Decimal
    is_live: bool = True
    as_of: date | None = None

    def convert(self, amount: Decimal) -> Decimal:
        """Convert an amount from base to quote currency."""
        return amount * self.rate


class CurrencyResolver:
    """
    Resolves display/asset currencies and FX rates.

    Example:
        resolver = CurrencyResolver(preferences, assets, prices)
        display = resolver.resolve_display_currency("user-1")     # "EUR"
        fx = resolver.get_fx_rate("USD", display)                 # FxQuote
        value_eur = fx.convert(Decimal("100"))
    """

    def __init__(
            self,
            preferences: PreferenceStore,
            assets: AssetDirectory,
            prices: PriceSource,
            default_currency: str | None = None,
    ) -> None:
        self._preferences = preferences
        self._assets = assets
        self._prices = prices
        self._default_currency = (default_currency or settings.default_display_currency).upper()

    @property
    def default_currency(self) -> str:
        return self._default_currency

    # =========================================================================
    # CURRENCY LOOKUPS
    # =========================================================================

    def resolve_display_currency(self, user_id: str) -> str:
        """User's display currency; the default when unset or on lookup failure."""
        try:
            currency = self._preferences.get_display_currency(user_id)
        except Exception as e:
            logger.warning(
                f"Display currency lookup failed for {user_id}, "
                f"using {self._default_currency}: {e}"
            )
            return self._default_currency
        return currency.upper() if currency else self._default_currency

    def resolve_asset_currency(self, ticker: str, display_currency: str) -> str:
        """Trading currency of a ticker; display_currency when unmapped."""
        currency = self._assets.get_currency(ticker.upper())
        return currency.upper() if currency else display_currency

    def resolve_asset_currencies(self, tickers: list[str], display_currency: str) -> dict[str, str]:
        """Batch form of resolve_asset_currency."""
        mapped = self._assets.get_currencies([t.upper() for t in tickers])
        return {
            t: (mapped.get(t.upper()) or display_currency).upper()
            for t in tickers
        }

    @staticmethod
    def fx_pair_symbol(base_currency: str, quote_currency: str) -> str:
        """Synthetic FX symbol, e.g. ("usd", "eur") -> "USDEUR=X"."""
        return f"{base_currency.upper()}{quote_currency.upper()}{FX_SYMBOL_SUFFIX}"

    @staticmethod
    def is_fx_symbol(symbol: str) -> bool:
        return symbol.endswith(FX_SYMBOL_SUFFIX)

    # =========================================================================
    # FX RATES
    # =========================================================================

    def get_fx_rate(
            self,
            base_currency: str,
            quote_currency: str,
            on_date: date | None = None,
    ) -> FxQuote:
        """
        Latest stored rate on or before on_date (latest overall if None).

        Same currency always yields exactly 1 without a lookup. A missing
        rate yields the 1.0 fallback with is_live=False.
        """
        base = base_currency.upper()
        quote = quote_currency.upper()

        if base == quote:
            return FxQuote(base, quote, ONE)

        try:
            return self.get_fx_rate_strict(base, quote, on_date)
        except FXRateNotFoundError as e:
            logger.warning(f"{e}; using rate 1.0, converted values are approximate")
            return FxQuote(base, quote, ONE, is_live=False)

    def get_fx_rate_strict(
            self,
            base_currency: str,
            quote_currency: str,
            on_date: date | None = None,
    ) -> FxQuote:
        """
        Like get_fx_rate() but without the fallback.

        Raises:
            FXRateNotFoundError: If neither the pair nor its inverse is stored
        """
        base = base_currency.upper()
        quote = quote_currency.upper()

        if base == quote:
            return FxQuote(base, quote, ONE)

        direct = self._prices.get_latest_close(self.fx_pair_symbol(base, quote), on_date)
        if direct is not None:
            as_of, rate = direct
            return FxQuote(base, quote, rate, as_of=as_of)

        inverse = self._prices.get_latest_close(self.fx_pair_symbol(quote, base), on_date)
        if inverse is not None and inverse[1] != 0:
            as_of, rate = inverse
            return FxQuote(base, quote, ONE / rate, as_of=as_of)

        raise FXRateNotFoundError(base, quote, on_date)

    def required_fx_symbols(self, asset_currencies: set[str], display_currency: str) -> list[str]:
        """FX symbols needed to convert every asset currency to display_currency."""
        display = display_currency.upper()
        return sorted(
            self.fx_pair_symbol(c, display)
            for c in asset_currencies
            if c.upper() != display
        )
