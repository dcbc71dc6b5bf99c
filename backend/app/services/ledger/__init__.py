# backend/app/services/ledger/__init__.py
"""
Ledger package: typed rows, replay engines and the write service.

Components:
- types.py: RealTrade / RealizedGain variants and result dataclasses
- normalizer.py: coercion, conversion to/from LedgerEntry, replay order
- cost_basis.py: WAC replay (CostBasisEngine) and valuation replay
- fifo.py: FIFO lot aging
- allocator.py: split of one submission across holders
- locks.py: per-(user, ticker, person) locks
- repository.py: SQLAlchemy LedgerClient
- service.py: LedgerService (submit / delete / recompute / list)
"""

from app.services.ledger.allocator import SplitAllocator
from app.services.ledger.cost_basis import CostBasisEngine, PositionAccumulator
from app.services.ledger.fifo import FifoLotTracker
from app.services.ledger.locks import PairLockRegistry
from app.services.ledger.normalizer import LedgerNormalizer
from app.services.ledger.repository import SqlLedgerClient
from app.services.ledger.service import LedgerService
from app.services.ledger.types import (
    AllocationRequest,
    DeleteResult,
    GainKind,
    LedgerRow,
    LedgerTotals,
    RealTrade,
    RealizedGain,
    SubmitResult,
    TradeSide,
)

__all__ = [
    "AllocationRequest",
    "CostBasisEngine",
    "DeleteResult",
    "FifoLotTracker",
    "GainKind",
    "LedgerNormalizer",
    "LedgerRow",
    "LedgerService",
    "LedgerTotals",
    "PairLockRegistry",
    "PositionAccumulator",
    "RealTrade",
    "RealizedGain",
    "SplitAllocator",
    "SqlLedgerClient",
    "SubmitResult",
    "TradeSide",
]
