"""Validation gates for position records.

Each gate comes in two forms, mirroring the rest of the core:
- ``check_*`` returns a `ValidationResult` (no exceptions for failed checks),
- ``validate_*`` raises the specific `PositionError` subclass.

Neither form has side effects.
"""

from __future__ import annotations

from ...errors import EmptyPositionError, LiquidatablePositionError, PositionError, ZeroSizeError
from ...state.store import ReadableStore
from .fees import FeeCalculator
from .liquidation import is_liquidatable
from .types import Market, MarketPrices, Position, ValidationResult


def _as_result(exc: PositionError) -> ValidationResult:
    return ValidationResult(ok=False, error=exc.kind, message=str(exc))


def validate_non_empty_position(position: Position) -> None:
    """Raise `EmptyPositionError` unless size, tokens and collateral are all positive."""
    if position.size_in_usd == 0 or position.size_in_tokens == 0 or position.collateral_amount == 0:
        raise EmptyPositionError(
            f"empty position: size_in_usd={position.size_in_usd} "
            f"size_in_tokens={position.size_in_tokens} collateral_amount={position.collateral_amount}"
        )


def validate_position(
    store: ReadableStore,
    fee_calculator: FeeCalculator,
    position: Position,
    market: Market,
    prices: MarketPrices,
) -> None:
    """Raise `ZeroSizeError` or `LiquidatablePositionError` if *position* must not be persisted."""
    if position.size_in_usd == 0 or position.size_in_tokens == 0:
        raise ZeroSizeError(
            f"zero size: size_in_usd={position.size_in_usd} size_in_tokens={position.size_in_tokens}"
        )
    if is_liquidatable(store, fee_calculator, position, market, prices):
        raise LiquidatablePositionError(
            f"position would be liquidatable: market={position.market} is_long={position.is_long}"
        )


def check_non_empty_position(position: Position) -> ValidationResult:
    try:
        validate_non_empty_position(position)
    except PositionError as exc:
        return _as_result(exc)
    return ValidationResult(ok=True)


def check_position(
    store: ReadableStore,
    fee_calculator: FeeCalculator,
    position: Position,
    market: Market,
    prices: MarketPrices,
) -> ValidationResult:
    try:
        validate_position(store, fee_calculator, position, market, prices)
    except PositionError as exc:
        return _as_result(exc)
    return ValidationResult(ok=True)
