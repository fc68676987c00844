"""
Accounting state for the margin engine
"""

from .keys import MAX_LEVERAGE, MIN_COLLATERAL_USD, canonical_address, derive_position_key, ledger_key
from .store import DataStore, ReadableStore, ReadOnlyStore, StoreTransaction, WritableStore

__all__ = [
    "MAX_LEVERAGE",
    "MIN_COLLATERAL_USD",
    "canonical_address",
    "derive_position_key",
    "ledger_key",
    "DataStore",
    "ReadableStore",
    "ReadOnlyStore",
    "StoreTransaction",
    "WritableStore",
]
