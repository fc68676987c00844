"""Referral rewards and claimable funding produced by a position update."""

from __future__ import annotations

from typing import Optional

from ...state.keys import affiliate_reward_key, claimable_funding_amount_key
from ...state.store import WritableStore
from .events import EventName, EventSink, emit_event
from .types import Market, Position, PositionFees


def handle_referral(
    store: WritableStore,
    market: Market,
    position: Position,
    fees: PositionFees,
    events: Optional[EventSink] = None,
) -> None:
    """Credit the affiliate's reward and announce any trader discount."""
    referral = fees.referral
    if referral.affiliate is not None and referral.affiliate_reward_amount > 0:
        next_value = store.apply_delta(
            affiliate_reward_key(market.market_token, position.collateral_token, referral.affiliate),
            referral.affiliate_reward_amount,
        )
        pool_value = store.apply_delta(
            affiliate_reward_key(market.market_token, position.collateral_token),
            referral.affiliate_reward_amount,
        )
        emit_event(
            events, EventName.AFFILIATE_REWARD_UPDATED,
            market=market.market_token, token=position.collateral_token,
            affiliate=referral.affiliate, trader=position.account,
            delta=referral.affiliate_reward_amount, next_value=next_value, next_pool_value=pool_value,
        )

    # Informational only: the discount was already netted out of the fees.
    if referral.trader_discount_amount > 0:
        emit_event(
            events, EventName.TRADER_REFERRAL_DISCOUNT_APPLIED,
            market=market.market_token, token=position.collateral_token,
            trader=position.account, discount_amount=referral.trader_discount_amount,
        )


def increment_claimable_funding(
    store: WritableStore,
    market: Market,
    position: Position,
    fees: PositionFees,
    receiver: Optional[str] = None,
    events: Optional[EventSink] = None,
) -> None:
    """Accrue funding owed to the position as a claimable balance for *receiver*."""
    receiver = receiver or position.account
    legs = [(market.long_token, fees.funding.claimable_long_token_amount)]
    if len(market.collateral_tokens()) == 2:
        legs.append((market.short_token, fees.funding.claimable_short_token_amount))
    for token, amount in legs:
        if amount <= 0:
            continue
        next_value = store.apply_delta(
            claimable_funding_amount_key(market.market_token, token, receiver), amount,
        )
        store.apply_delta(claimable_funding_amount_key(market.market_token, token), amount)
        emit_event(
            events, EventName.CLAIMABLE_FUNDING_UPDATED,
            market=market.market_token, token=token, account=receiver,
            delta=amount, next_value=next_value,
        )
