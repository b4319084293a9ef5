
from .bookings import BookingCoordinator
from .catalog import Catalog
from .challans import ChallanConverter
from .history import HistoryRecorder
from .sequence import SequenceAllocator
from .stock_ledger import StockLedger
from .totals import build_policy, compute_totals, line_amount, plain_policy

__all__ = [
    "BookingCoordinator",
    "Catalog",
    "ChallanConverter",
    "HistoryRecorder",
    "SequenceAllocator",
    "StockLedger",
    "build_policy",
    "compute_totals",
    "line_amount",
    "plain_policy",
]
