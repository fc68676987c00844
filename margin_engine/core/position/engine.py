"""Position-update orchestrator.

``update_position(ctx, request, prices, now)`` is the single entry point for
mutating a position. It runs the bookkeeping steps below, in order, inside one
`StoreTransaction`:

1. ``ADVANCE_ACCUMULATORS``: funding and borrowing accumulators move to ``now``.
   Post: fee snapshots read below are current.
2. ``VALUATE``: PnL, ``size_delta_in_tokens`` and fees for this update.
   Pre: step 1. Post: ``size_delta_in_tokens`` is fixed for the operation.
3. ``APPLY_BORROWING``: total-borrowing ledger swaps the pre-mutation
   contribution for the next one. Pre: position record not yet mutated.
4. ``MUTATE_POSITION``: the next position record is computed and buffered.
5. ``VALIDATE``: the next record must be sized and not liquidatable.
6. ``APPLY_OPEN_INTEREST``: open interest moves by the step-2 deltas.
7. ``DISTRIBUTE_REFERRAL``: affiliate rewards and claimable funding.

`UpdateSequence` enforces the order: running a step early or twice raises
`StepOrderError`. Any `PositionError` discards the transaction and returns a
rejected `UpdateResult`; events are delivered only after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import List, Optional

from ...errors import InsufficientCollateralError, PositionError, StepOrderError
from ...state.keys import canonical_address, derive_position_key
from ...state.store import ReadOnlyStore, StoreTransaction, WritableStore
from .events import EventName, EventSink, deliver, emit_event
from .fees import FeeCalculator
from .funding import advance_funding_and_borrowing, apply_borrowing_delta, get_cached_token_price
from .math import compute_pnl, pick_price, pick_price_for_pnl, round_up_division
from .open_interest import apply_open_interest_delta
from .referral import handle_referral, increment_claimable_funding
from .types import MarketPrices, Position, PositionUpdateRequest, UpdateResult
from .validation import validate_non_empty_position, validate_position

logger = logging.getLogger(__name__)


@unique
class UpdateStep(Enum):
    ADVANCE_ACCUMULATORS = 1
    VALUATE = 2
    APPLY_BORROWING = 3
    MUTATE_POSITION = 4
    VALIDATE = 5
    APPLY_OPEN_INTEREST = 6
    DISTRIBUTE_REFERRAL = 7


UPDATE_STEPS: tuple[UpdateStep, ...] = tuple(UpdateStep)


class UpdateSequence:
    """Tracks which update steps have run and rejects out-of-order execution."""

    def __init__(self) -> None:
        self._completed: List[UpdateStep] = []

    @property
    def completed(self) -> tuple[UpdateStep, ...]:
        return tuple(self._completed)

    @property
    def finished(self) -> bool:
        return len(self._completed) == len(UPDATE_STEPS)

    def advance(self, step: UpdateStep) -> None:
        """Mark *step* as running; it must be the next step in `UPDATE_STEPS`."""
        if self.finished:
            raise StepOrderError(f"{step.name} after the sequence finished")
        expected = UPDATE_STEPS[len(self._completed)]
        if step is not expected:
            raise StepOrderError(f"{step.name} cannot run before {expected.name}")
        self._completed.append(step)

    def require(self, step: UpdateStep) -> None:
        if step not in self._completed:
            raise StepOrderError(f"{step.name} has not run yet")


@dataclass(frozen=True)
class OperationContext:
    """Capabilities for one operation: the store, the fee calculator and the event sink."""

    store: WritableStore
    fee_calculator: FeeCalculator
    events: Optional[EventSink] = None


def _open_position(request: PositionUpdateRequest) -> Position:
    return Position(
        account=canonical_address(request.account, name="account"),
        market=canonical_address(request.market.market_token, name="market"),
        collateral_token=canonical_address(request.collateral_token, name="collateral_token"),
        is_long=request.is_long,
    )


def _run_update(
    tx: StoreTransaction,
    fee_calculator: FeeCalculator,
    key: str,
    request: PositionUpdateRequest,
    prices: MarketPrices,
    now: int,
    sequence: UpdateSequence,
) -> UpdateResult:
    market = request.market
    existing = tx.get_position(key)
    position = existing if existing is not None else _open_position(request)
    # Collateral deposits go through the increase path, withdrawals through the decrease path.
    is_increase = request.size_delta_usd > 0 or (
        request.size_delta_usd == 0 and request.collateral_delta_amount >= 0
    )

    sequence.advance(UpdateStep.ADVANCE_ACCUMULATORS)
    advance_funding_and_borrowing(tx, market, prices, now, tx)

    sequence.advance(UpdateStep.VALUATE)
    collateral_token_price = get_cached_token_price(position.collateral_token, market, prices)
    if is_increase:
        size_delta_usd = request.size_delta_usd
        index_price = pick_price(prices.index_token_price, position.is_long)
        if position.is_long:
            size_delta_in_tokens = size_delta_usd // index_price
        else:
            size_delta_in_tokens = round_up_division(size_delta_usd, index_price)
        pnl_usd = 0
    else:
        validate_non_empty_position(position)
        size_delta_usd = min(-request.size_delta_usd, position.size_in_usd)
        pnl_usd, size_delta_in_tokens = compute_pnl(
            position,
            size_delta_usd,
            pick_price_for_pnl(prices.index_token_price, position.is_long, False),
        )
    signed_size_delta_usd = size_delta_usd if is_increase else -size_delta_usd
    signed_size_delta_in_tokens = size_delta_in_tokens if is_increase else -size_delta_in_tokens
    fees = fee_calculator.compute_position_fees(
        tx, position, collateral_token_price, market, size_delta_usd,
    )

    sequence.advance(UpdateStep.APPLY_BORROWING)
    next_size_in_usd = position.size_in_usd + signed_size_delta_usd
    next_borrowing_factor = fees.borrowing.latest_borrowing_factor
    apply_borrowing_delta(tx, market, position, next_size_in_usd, next_borrowing_factor, tx)

    sequence.advance(UpdateStep.MUTATE_POSITION)
    required_amount = fees.total_net_cost_amount - request.collateral_delta_amount
    if pnl_usd < 0:
        required_amount += round_up_division(-pnl_usd, collateral_token_price.min)
    if required_amount > position.collateral_amount:
        raise InsufficientCollateralError(position.collateral_amount, required_amount)
    next_collateral_amount = position.collateral_amount - required_amount

    is_full_close = not is_increase and next_size_in_usd == 0
    next_position = replace(
        position,
        size_in_usd=next_size_in_usd,
        size_in_tokens=position.size_in_tokens + signed_size_delta_in_tokens,
        collateral_amount=next_collateral_amount,
        borrowing_factor=next_borrowing_factor,
        funding_fee_amount_per_size=fees.funding.latest_funding_fee_amount_per_size,
        long_token_claimable_funding_amount_per_size=(
            fees.funding.latest_long_token_claimable_funding_amount_per_size
        ),
        short_token_claimable_funding_amount_per_size=(
            fees.funding.latest_short_token_claimable_funding_amount_per_size
        ),
        increased_at_time=now if is_increase else position.increased_at_time,
        decreased_at_time=now if size_delta_usd and not is_increase else position.decreased_at_time,
    )
    if is_full_close:
        tx.remove_position(key)
    else:
        tx.set_position(key, next_position)

    sequence.advance(UpdateStep.VALIDATE)
    if not is_full_close:
        # Price impact for the liquidation check must see this update's open interest.
        projected = StoreTransaction(tx)
        apply_open_interest_delta(
            projected, market, next_position, signed_size_delta_usd, signed_size_delta_in_tokens,
        )
        try:
            validate_position(ReadOnlyStore(projected), fee_calculator, next_position, market, prices)
        finally:
            projected.discard()
        validate_non_empty_position(next_position)

    sequence.advance(UpdateStep.APPLY_OPEN_INTEREST)
    apply_open_interest_delta(
        tx, market, position, signed_size_delta_usd, signed_size_delta_in_tokens, tx,
    )

    sequence.advance(UpdateStep.DISTRIBUTE_REFERRAL)
    handle_referral(tx, market, position, fees, tx)
    increment_claimable_funding(tx, market, position, fees, request.receiver, tx)

    emit_event(
        tx, EventName.POSITION_INCREASE if is_increase else EventName.POSITION_DECREASE,
        position_key=key, account=position.account, market=position.market,
        collateral_token=position.collateral_token, is_long=position.is_long,
        size_delta_usd=size_delta_usd, size_delta_in_tokens=size_delta_in_tokens,
        collateral_delta_amount=request.collateral_delta_amount,
        pnl_usd=pnl_usd, next_size_in_usd=next_size_in_usd,
        next_collateral_amount=next_collateral_amount,
    )

    return UpdateResult(
        accepted=True,
        position_key=key,
        position=None if is_full_close else next_position,
        fees=fees,
        size_delta_in_tokens=size_delta_in_tokens,
        realized_pnl_usd=pnl_usd,
        output_collateral_amount=next_collateral_amount if is_full_close else 0,
    )


def update_position_or_raise(
    ctx: OperationContext,
    request: PositionUpdateRequest,
    prices: MarketPrices,
    now: int,
) -> UpdateResult:
    """Apply *request* atomically, raising the specific `PositionError` on rejection.

    Nothing is written to ``ctx.store`` and no event is delivered unless every
    step completes.
    """
    key = derive_position_key(
        request.account, request.market.market_token, request.collateral_token, request.is_long,
    )
    tx = StoreTransaction(ctx.store)
    sequence = UpdateSequence()
    try:
        result = _run_update(tx, ctx.fee_calculator, key, request, prices, now, sequence)
        if not sequence.finished:
            raise StepOrderError(f"update finished after {len(sequence.completed)} steps")
    except Exception:
        tx.discard()
        raise

    events = tx.commit()
    deliver(ctx.events, events)
    logger.info(
        "position updated: key=%s size_delta_usd=%d size_delta_in_tokens=%d pnl_usd=%d",
        key, request.size_delta_usd, result.size_delta_in_tokens, result.realized_pnl_usd,
    )
    return result


def update_position(
    ctx: OperationContext,
    request: PositionUpdateRequest,
    prices: MarketPrices,
    now: int,
) -> UpdateResult:
    """Like ``update_position_or_raise()`` but returns a rejected result instead of raising.

    Returns ``UpdateResult`` with ``accepted=True`` on success, or
    ``accepted=False`` with the `PositionErrorKind` that aborted the update.
    """
    try:
        return update_position_or_raise(ctx, request, prices, now)
    except PositionError as exc:
        key = derive_position_key(
            request.account, request.market.market_token, request.collateral_token, request.is_long,
        )
        logger.warning("position update rejected: key=%s kind=%s: %s", key, exc.kind.value, exc)
        return UpdateResult(accepted=False, position_key=key, error=exc.kind, message=str(exc))
