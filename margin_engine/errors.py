"""Exception types for the margin engine.

``PositionError`` subclasses are terminal for the enclosing operation: the
orchestrator discards every buffered mutation when one is raised and reports
the ``PositionErrorKind`` to the caller. ``StepOrderError`` is a programming
error (a bookkeeping step ran out of sequence) and is never converted into a
rejection.
"""

from __future__ import annotations

from enum import Enum, unique


@unique
class PositionErrorKind(Enum):
    EMPTY_POSITION = "empty_position"
    ZERO_SIZE = "zero_size"
    LIQUIDATABLE_POSITION = "liquidatable_position"
    LEDGER_UNDERFLOW = "ledger_underflow"
    INSUFFICIENT_COLLATERAL = "insufficient_collateral"
    EMPTY_POOL = "empty_pool"


class PositionError(Exception):
    """Base class for errors that abort a whole position operation."""

    kind: PositionErrorKind


class EmptyPositionError(PositionError):
    """Raised when a position fails the non-empty invariant."""

    kind = PositionErrorKind.EMPTY_POSITION


class ZeroSizeError(PositionError):
    """Raised when ``size_in_usd`` or ``size_in_tokens`` is zero at validation time."""

    kind = PositionErrorKind.ZERO_SIZE


class LiquidatablePositionError(PositionError):
    """Raised when a position would be liquidatable immediately after the update."""

    kind = PositionErrorKind.LIQUIDATABLE_POSITION


class InsufficientCollateralError(PositionError):
    """Raised when fees, losses or a withdrawal exceed the position's collateral."""

    kind = PositionErrorKind.INSUFFICIENT_COLLATERAL

    def __init__(self, collateral_amount: int, required_amount: int) -> None:
        self.collateral_amount = collateral_amount
        self.required_amount = required_amount
        super().__init__(
            f"insufficient collateral: have {collateral_amount}, need {required_amount}"
        )


class EmptyPoolError(PositionError):
    """Raised when borrowing is priced against a pool that holds nothing."""

    kind = PositionErrorKind.EMPTY_POOL

    def __init__(self, market: str) -> None:
        self.market = market
        super().__init__(f"cannot compute borrowing factor: empty pool for market {market}")


class LedgerUnderflowError(PositionError):
    """Raised when an unsigned ledger entry would go below zero."""

    kind = PositionErrorKind.LEDGER_UNDERFLOW

    def __init__(self, key: str, current: int, delta: int) -> None:
        self.key = key
        self.current = current
        self.delta = delta
        super().__init__(f"ledger {key} cannot go negative: {current} + {delta} < 0")


class StepOrderError(RuntimeError):
    """Raised when a position-update step runs out of its required order."""
