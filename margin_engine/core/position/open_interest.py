"""Open-interest ledgers.

Open interest is tracked per ``(market, collateral_token, is_long)`` in USD and
in index tokens. The token delta must be the ``size_delta_in_tokens`` produced
by valuation for the same operation; recomputing it after the position has
changed desynchronizes the two ledgers.
"""

from __future__ import annotations

from typing import Optional

from ...state.keys import open_interest_in_tokens_key, open_interest_key
from ...state.store import WritableStore
from .events import EventName, EventSink, emit_event
from .types import Market, Position


def apply_open_interest_delta(
    store: WritableStore,
    market: Market,
    position: Position,
    size_delta_usd: int,
    size_delta_in_tokens: int,
    events: Optional[EventSink] = None,
) -> None:
    """Apply signed deltas to the position's side; no-op when *size_delta_usd* is 0."""
    if size_delta_usd == 0:
        return

    usd_value = store.apply_delta(
        open_interest_key(market.market_token, position.collateral_token, position.is_long),
        size_delta_usd,
    )
    tokens_value = store.apply_delta(
        open_interest_in_tokens_key(market.market_token, position.collateral_token, position.is_long),
        size_delta_in_tokens,
    )
    emit_event(
        events, EventName.OPEN_INTEREST_UPDATED,
        market=market.market_token, collateral_token=position.collateral_token,
        is_long=position.is_long, delta=size_delta_usd, next_value=usd_value,
    )
    emit_event(
        events, EventName.OPEN_INTEREST_IN_TOKENS_UPDATED,
        market=market.market_token, collateral_token=position.collateral_token,
        is_long=position.is_long, delta=size_delta_in_tokens, next_value=tokens_value,
    )
