# backend/app/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Numeric, UniqueConstraint, Boolean, Integer, Index, ForeignKey
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TransactionCategory(str, enum.Enum):
    """
    Ledger row category.

    BUY and SELL are real trades. PROFIT and LOSS are synthetic realized-gain
    rows written next to every SELL for reporting.
    """
    BUY = "Buy"
    SELL = "Sell"
    PROFIT = "Profit"
    LOSS = "Loss"

    @property
    def is_real_trade(self) -> bool:
        return self in (TransactionCategory.BUY, TransactionCategory.SELL)

    @property
    def sign(self) -> int:
        return 1 if self in (TransactionCategory.BUY, TransactionCategory.PROFIT) else -1


class LedgerTransaction(Base):
    """
    Header row of one logical submission.

    Its identity column is the only source of transaction ids, so two
    submissions running at the same time can never share one.
    sqlite_autoincrement stops SQLite from handing out the id of a deleted
    latest transaction again.
    """
    __tablename__ = "ledger_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    ticker: Mapped[str] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class LedgerEntry(Base):
    """
    One ledger row for one holder.

    A single submission produces one row per holder (and, for a sell, one
    synthetic Profit/Loss row per holder), all sharing the same
    transaction_id. The average_* / cumulative_shares / historical_fifo_avg_date
    columns are derived and are rewritten for the whole (ticker, person)
    history on every insert or delete.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        # Replay query: "all rows for user U, ticker T, person P"
        Index('ix_ledger_user_ticker_person', 'user_id', 'ticker', 'person'),
        # Snapshot/series query: "all rows for user U up to date D"
        Index('ix_ledger_user_date', 'user_id', 'operation_date'),
        Index('ix_ledger_user_transaction', 'user_id', 'transaction_id'),
        # One real row and at most one Profit/Loss row per holder and submission
        UniqueConstraint('transaction_id', 'person', 'buy_or_sell', name='uq_ledger_transaction_person_kind'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("ledger_transactions.id"))
    user_id: Mapped[str] = mapped_column(String(64))

    ticker: Mapped[str] = mapped_column(String(32))
    operation_date: Mapped[date] = mapped_column(Date)
    person: Mapped[str] = mapped_column(String(64))
    category: Mapped[TransactionCategory] = mapped_column(Enum(TransactionCategory))
    buy_or_sell: Mapped[int] = mapped_column(Integer)
    operation_sign: Mapped[int] = mapped_column(Integer)

    # Numeric(18, 8) keeps fractional shares and per-share prices exact
    shares_count: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    price_per_share_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    effective_price_per_share_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    total_outlay_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    transaction_fees_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    transaction_taxes_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))

    # =========================================================================
    # COMPUTED BY THE RECOMPUTE PASS
    # =========================================================================
    average_price_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    effective_average_price_user_curr: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    cumulative_shares: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))
    historical_fifo_avg_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # =========================================================================
    # SUBMISSION METADATA
    # =========================================================================
    asset_currency: Mapped[str] = mapped_column(String(3), default="EUR")
    exchange_rate_at_purchase: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(1))
    platform: Mapped[str | None] = mapped_column(String, nullable=True)
    account_owner: Mapped[str | None] = mapped_column(String, nullable=True)
    regulated: Mapped[bool] = mapped_column(Boolean, default=True)
    sector: Mapped[str | None] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class Asset(Base):
    """
    Ticker directory: maps a ticker to its trading currency.

    Tickers without an entry are valued in the holder's display currency.
    """
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    ticker: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    currency: Mapped[str] = mapped_column(String(3))
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    sector: Mapped[str | None] = mapped_column(String, nullable=True)


class MarketData(Base):
    """
    Daily close and dividend per symbol.

    Symbols are either security tickers ("AAPL", "SAP.DE") or synthetic FX
    pairs ("USDEUR=X", meaning 1 USD = close EUR). The refresh job only ever
    appends dates after the latest stored one per symbol.
    """
    __tablename__ = "market_data"
    __table_args__ = (
        UniqueConstraint('symbol', 'date', name='uq_market_data_symbol_date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    symbol: Mapped[str] = mapped_column(String(32), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    close_price: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    dividend: Mapped[Decimal] = mapped_column(Numeric(18, 8), default=Decimal(0))

    provider: Mapped[str] = mapped_column(String(50), default="yahoo")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )


class UserPreference(Base):
    """Per-user profile: alias shown as the default person filter and display currency."""
    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    alias: Mapped[str | None] = mapped_column(String, nullable=True)
    display_currency: Mapped[str] = mapped_column(String(3), default="EUR")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )
