"""`position`: valuation, liquidation and update bookkeeping for leveraged positions.

- deterministic, integer-only fixed-point arithmetic (``PRECISION`` = 1e30),
- immutable records (frozen dataclasses),
- every read and write goes through an explicitly passed store capability,
- fail-closed gates: a failed check aborts the whole operation.

Public API:
- `compute_pnl(position, size_delta_usd, index_token_price) -> (pnl_usd, size_delta_in_tokens)`
- `derive_position_key(account, market, collateral_token, is_long) -> str`
- `validate_non_empty_position(position)` / `validate_position(...)` (raise)
- `check_non_empty_position(position)` / `check_position(...)` (return `ValidationResult`)
- `is_liquidatable(...)` / `get_liquidation_info(...)`
- `advance_funding_and_borrowing(...)` / `apply_borrowing_delta(...)`
- `apply_open_interest_delta(...)`
- `handle_referral(...)` / `increment_claimable_funding(...)`
- `update_position(ctx, request, prices, now) -> UpdateResult`
- `update_position_or_raise(...)` (raises on rejection)
"""

from ...errors import (
    EmptyPoolError,
    EmptyPositionError,
    InsufficientCollateralError,
    LedgerUnderflowError,
    LiquidatablePositionError,
    PositionError,
    PositionErrorKind,
    StepOrderError,
    ZeroSizeError,
)
from ...state.keys import derive_position_key
from .engine import (
    OperationContext,
    UpdateSequence,
    UpdateStep,
    update_position,
    update_position_or_raise,
)
from .events import EventLog, EventName, EventRecord, EventSink
from .fees import FeeCalculator, NoReferrals, PositionFeeCalculator, StaticReferrals
from .funding import advance_funding_and_borrowing, apply_borrowing_delta
from .liquidation import get_liquidation_info, is_liquidatable
from .math import PRECISION, cap_price_impact_for_liquidation, compute_pnl
from .open_interest import apply_open_interest_delta
from .referral import handle_referral, increment_claimable_funding
from .types import (
    LiquidationInfo,
    Market,
    MarketPrices,
    Position,
    PositionFees,
    PositionUpdateRequest,
    Price,
    ReferralInfo,
    UpdateResult,
    ValidationResult,
)
from .validation import (
    check_non_empty_position,
    check_position,
    validate_non_empty_position,
    validate_position,
)

__all__ = [
    "compute_pnl",
    "derive_position_key",
    "validate_non_empty_position",
    "validate_position",
    "check_non_empty_position",
    "check_position",
    "is_liquidatable",
    "get_liquidation_info",
    "cap_price_impact_for_liquidation",
    "advance_funding_and_borrowing",
    "apply_borrowing_delta",
    "apply_open_interest_delta",
    "handle_referral",
    "increment_claimable_funding",
    "update_position",
    "update_position_or_raise",
    "OperationContext",
    "UpdateSequence",
    "UpdateStep",
    "EventLog",
    "EventName",
    "EventRecord",
    "EventSink",
    "FeeCalculator",
    "NoReferrals",
    "PositionFeeCalculator",
    "StaticReferrals",
    "PRECISION",
    "LiquidationInfo",
    "Market",
    "MarketPrices",
    "Position",
    "PositionFees",
    "PositionUpdateRequest",
    "Price",
    "ReferralInfo",
    "UpdateResult",
    "ValidationResult",
    "PositionError",
    "PositionErrorKind",
    "EmptyPositionError",
    "EmptyPoolError",
    "ZeroSizeError",
    "LiquidatablePositionError",
    "LedgerUnderflowError",
    "InsufficientCollateralError",
    "StepOrderError",
]
