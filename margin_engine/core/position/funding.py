"""Funding and borrowing accumulators.

``advance_funding_and_borrowing`` moves the market-wide accumulators forward to
``now``; ``apply_borrowing_delta`` swaps a position's contribution in the
market's total-borrowing ledger. The second must run after the first and
before the position record changes (see `engine.py`), otherwise the position
is charged at a stale rate.

Rounding: a payer's funding-per-size rounds up, a receiver's claimable
funding-per-size rounds down.
"""

from __future__ import annotations

import logging
from typing import Optional

from ...errors import EmptyPoolError
from ...state.keys import (
    borrowing_factor_key,
    borrowing_updated_at_key,
    claimable_funding_amount_per_size_key,
    cumulative_borrowing_factor_key,
    funding_amount_per_size_key,
    funding_factor_key,
    funding_updated_at_key,
    open_interest_in_tokens_key,
    open_interest_key,
    pool_amount_key,
    total_borrowing_key,
)
from ...state.store import ReadableStore, WritableStore
from .events import EventName, EventSink, emit_event
from .math import apply_factor, get_funding_amount_per_size_delta, mul_div, to_factor
from .types import Market, MarketPrices, Position, Price

logger = logging.getLogger(__name__)


# -- Reads -------------------------------------------------------------------

def get_cached_token_price(token: str, market: Market, prices: MarketPrices) -> Price:
    """Price of one of the market's tokens from the operation's snapshot."""
    token = token.lower()
    if token == market.long_token.lower():
        return prices.long_token_price
    if token == market.short_token.lower():
        return prices.short_token_price
    if token == market.index_token.lower():
        return prices.index_token_price
    raise ValueError(f"token {token} is not part of market {market.market_token}")


def get_open_interest(store: ReadableStore, market: Market, is_long: bool) -> int:
    """Open interest in USD for one side, summed over collateral tokens."""
    return sum(
        store.get(open_interest_key(market.market_token, token, is_long))
        for token in market.collateral_tokens()
    )


def get_open_interest_in_tokens(store: ReadableStore, market: Market, is_long: bool) -> int:
    return sum(
        store.get(open_interest_in_tokens_key(market.market_token, token, is_long))
        for token in market.collateral_tokens()
    )


def get_reserved_usd(store: ReadableStore, market: Market, prices: MarketPrices, is_long: bool) -> int:
    """Liquidity reserved for one side: longs at the index ``max`` price, shorts at their USD size."""
    if is_long:
        return get_open_interest_in_tokens(store, market, True) * prices.index_token_price.max
    return get_open_interest(store, market, False)


def get_pool_usd(store: ReadableStore, market: Market, prices: MarketPrices, is_long: bool) -> int:
    """Value of the pool's backing token for one side, at its ``min`` price."""
    token = market.long_token if is_long else market.short_token
    price = prices.long_token_price if is_long else prices.short_token_price
    return store.get(pool_amount_key(market.market_token, token)) * price.min


def get_cumulative_borrowing_factor(store: ReadableStore, market: Market, is_long: bool) -> int:
    return store.get(cumulative_borrowing_factor_key(market.market_token, is_long))


def get_borrowing_factor_per_second(
    store: ReadableStore, market: Market, prices: MarketPrices, is_long: bool,
) -> int:
    """``borrowingFactor * reservedUsd / poolUsd``."""
    reserved_usd = get_reserved_usd(store, market, prices, is_long)
    if reserved_usd == 0:
        return 0
    pool_usd = get_pool_usd(store, market, prices, is_long)
    if pool_usd == 0:
        raise EmptyPoolError(market.market_token)
    return apply_factor(
        to_factor(reserved_usd, pool_usd),
        store.get(borrowing_factor_key(market.market_token, is_long)),
    )


def _elapsed(store: ReadableStore, key: str, now: int) -> int:
    if not isinstance(now, int) or isinstance(now, bool) or now < 0:
        raise ValueError(f"now must be a non-negative int, got {now!r}")
    last = store.get(key)
    if now < last:
        raise ValueError(f"now {now} is earlier than last update {last}")
    # First update only stamps the clock.
    if last == 0:
        return 0
    return now - last


# -- Funding -----------------------------------------------------------------

def update_funding_amount_per_size(
    store: WritableStore,
    market: Market,
    prices: MarketPrices,
    now: int,
    events: Optional[EventSink] = None,
) -> int:
    """Accrue funding from the larger side to the smaller side. Returns the funding USD charged."""
    updated_at_key = funding_updated_at_key(market.market_token)
    elapsed = _elapsed(store, updated_at_key, now)

    long_oi = get_open_interest(store, market, True)
    short_oi = get_open_interest(store, market, False)
    diff_usd = abs(long_oi - short_oi)
    total_oi = long_oi + short_oi

    funding_usd = 0
    if elapsed > 0 and diff_usd > 0:
        funding_factor = store.get(funding_factor_key(market.market_token))
        factor_per_second = mul_div(diff_usd, funding_factor, total_oi)
        longs_pay = long_oi > short_oi
        larger_side_usd = long_oi if longs_pay else short_oi
        receiver_oi = short_oi if longs_pay else long_oi
        funding_usd = apply_factor(larger_side_usd, elapsed * factor_per_second)

        for token in market.collateral_tokens():
            payer_oi = store.get(open_interest_key(market.market_token, token, longs_pay))
            if payer_oi == 0:
                continue
            price = get_cached_token_price(token, market, prices)
            funding_amount = mul_div(funding_usd, payer_oi, larger_side_usd) // price.max
            if funding_amount == 0:
                continue

            payer_delta = get_funding_amount_per_size_delta(funding_amount, payer_oi, round_up=True)
            store.apply_delta(
                funding_amount_per_size_key(market.market_token, token, longs_pay), payer_delta,
            )
            receiver_delta = 0
            if receiver_oi > 0:
                receiver_delta = get_funding_amount_per_size_delta(funding_amount, receiver_oi, round_up=False)
                store.apply_delta(
                    claimable_funding_amount_per_size_key(market.market_token, token, not longs_pay),
                    receiver_delta,
                )
            emit_event(
                events, EventName.FUNDING_UPDATED,
                market=market.market_token, token=token, longs_pay=longs_pay,
                funding_amount=funding_amount,
                funding_amount_per_size_delta=payer_delta,
                claimable_funding_amount_per_size_delta=receiver_delta,
            )
        logger.debug(
            "funding accrued: market=%s elapsed=%d funding_usd=%d longs_pay=%s",
            market.market_token, elapsed, funding_usd, longs_pay,
        )

    store.set(updated_at_key, now)
    return funding_usd


# -- Borrowing ---------------------------------------------------------------

def update_cumulative_borrowing_factor(
    store: WritableStore,
    market: Market,
    prices: MarketPrices,
    is_long: bool,
    now: int,
    events: Optional[EventSink] = None,
) -> int:
    """Advance one side's cumulative borrowing factor. Returns the new cumulative factor."""
    updated_at_key = borrowing_updated_at_key(market.market_token, is_long)
    elapsed = _elapsed(store, updated_at_key, now)
    cumulative_key = cumulative_borrowing_factor_key(market.market_token, is_long)

    delta = 0
    if elapsed > 0:
        delta = elapsed * get_borrowing_factor_per_second(store, market, prices, is_long)
    cumulative = store.apply_delta(cumulative_key, delta)
    if delta:
        emit_event(
            events, EventName.CUMULATIVE_BORROWING_FACTOR_UPDATED,
            market=market.market_token, is_long=is_long, delta=delta, next_value=cumulative,
        )
        logger.debug(
            "borrowing accrued: market=%s is_long=%s delta=%d cumulative=%d",
            market.market_token, is_long, delta, cumulative,
        )

    store.set(updated_at_key, now)
    return cumulative


def advance_funding_and_borrowing(
    store: WritableStore,
    market: Market,
    prices: MarketPrices,
    now: int,
    events: Optional[EventSink] = None,
) -> None:
    """Bring funding and both borrowing accumulators up to *now*."""
    update_funding_amount_per_size(store, market, prices, now, events)
    update_cumulative_borrowing_factor(store, market, prices, True, now, events)
    update_cumulative_borrowing_factor(store, market, prices, False, now, events)


def apply_borrowing_delta(
    store: WritableStore,
    market: Market,
    position: Position,
    next_size_in_usd: int,
    next_borrowing_factor: int,
    events: Optional[EventSink] = None,
) -> int:
    """Replace *position*'s prior contribution to total borrowing with the next one.

    *position* must be the pre-mutation record. Returns the new total.
    """
    if next_size_in_usd < 0 or next_borrowing_factor < 0:
        raise ValueError("next size and borrowing factor must be non-negative")
    prev_contribution = apply_factor(position.size_in_usd, position.borrowing_factor)
    next_contribution = apply_factor(next_size_in_usd, next_borrowing_factor)
    total = store.apply_delta(
        total_borrowing_key(market.market_token, position.is_long),
        next_contribution - prev_contribution,
    )
    emit_event(
        events, EventName.TOTAL_BORROWING_UPDATED,
        market=market.market_token, is_long=position.is_long,
        prev_contribution=prev_contribution, next_contribution=next_contribution, next_value=total,
    )
    return total
