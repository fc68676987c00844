"""Liquidation evaluation.

A position is liquidatable when its remaining collateral, after full-close PnL,
capped price impact and fees, is non-positive or below the configured minimum,
or when its leverage against that remaining collateral exceeds the maximum.

All prices come from the single `MarketPrices` snapshot passed in; nothing is
re-read mid-calculation.
"""

from __future__ import annotations

from ...state.keys import MAX_LEVERAGE, MIN_COLLATERAL_USD, max_position_impact_factor_for_liquidations_key
from ...state.store import ReadableStore
from .fees import FeeCalculator
from .funding import get_cached_token_price
from .math import cap_price_impact_for_liquidation, compute_pnl, pick_price_for_pnl, to_factor
from .pricing import get_price_impact_usd
from .types import LiquidationInfo, Market, MarketPrices, Position


def check_remaining_collateral(
    size_in_usd: int,
    remaining_collateral_usd: int,
    min_collateral_usd: int,
    max_leverage: int,
) -> tuple[bool, int | None, str | None]:
    """Return ``(liquidatable, leverage, reason)`` for a remaining-collateral value.

    Leverage is only computed once the non-positive case has been excluded.
    """
    if remaining_collateral_usd < min_collateral_usd or remaining_collateral_usd <= 0:
        return True, None, "min_collateral"
    leverage = to_factor(size_in_usd, remaining_collateral_usd)
    if leverage > max_leverage:
        return True, leverage, "max_leverage"
    return False, leverage, None


def get_liquidation_info(
    store: ReadableStore,
    fee_calculator: FeeCalculator,
    position: Position,
    market: Market,
    prices: MarketPrices,
) -> LiquidationInfo:
    """Evaluate *position* for liquidation and return every intermediate value."""
    pnl_usd, _ = compute_pnl(
        position,
        position.size_in_usd,
        pick_price_for_pnl(prices.index_token_price, position.is_long, False),
    )

    collateral_token_price = get_cached_token_price(position.collateral_token, market, prices)
    collateral_usd = position.collateral_amount * collateral_token_price.min

    price_impact_usd = cap_price_impact_for_liquidation(
        get_price_impact_usd(store, market, -position.size_in_usd, position.is_long),
        position.size_in_usd,
        store.get(max_position_impact_factor_for_liquidations_key(market.market_token)),
    )

    fees = fee_calculator.compute_position_fees(
        store, position, collateral_token_price, market, position.size_in_usd,
    )

    remaining_collateral_usd = collateral_usd + pnl_usd + price_impact_usd - fees.total_net_cost_usd
    min_collateral_usd = store.get(MIN_COLLATERAL_USD)
    max_leverage = store.get(MAX_LEVERAGE)

    common = dict(
        pnl_usd=pnl_usd,
        collateral_usd=collateral_usd,
        price_impact_usd=price_impact_usd,
        total_net_cost_usd=fees.total_net_cost_usd,
        remaining_collateral_usd=remaining_collateral_usd,
        min_collateral_usd=min_collateral_usd,
        max_leverage=max_leverage,
    )

    liquidatable, leverage, reason = check_remaining_collateral(
        position.size_in_usd, remaining_collateral_usd, min_collateral_usd, max_leverage,
    )
    return LiquidationInfo(leverage=leverage, is_liquidatable=liquidatable, reason=reason, **common)


def is_liquidatable(
    store: ReadableStore,
    fee_calculator: FeeCalculator,
    position: Position,
    market: Market,
    prices: MarketPrices,
) -> bool:
    return get_liquidation_info(store, fee_calculator, position, market, prices).is_liquidatable
