"""Position price impact from the change in long/short open-interest imbalance.

Impact for a given imbalance ``d`` is ``apply_factor(d ** exponent, factor)``.
A trade that shrinks the imbalance earns positive impact, one that grows it
pays negative impact; a trade that flips the heavier side is split into the
positive part (removing the old imbalance) and the negative part (creating the
new one).
"""

from __future__ import annotations

from ...state.keys import position_impact_exponent_factor_key, position_impact_factor_key
from ...state.store import ReadableStore
from .funding import get_open_interest
from .math import PRECISION, apply_exponent_factor, apply_factor
from .types import Market


def _impact_usd(diff_usd: int, impact_factor: int, exponent_factor: int) -> int:
    return apply_factor(apply_exponent_factor(diff_usd, exponent_factor), impact_factor)


def get_price_impact_usd(
    store: ReadableStore,
    market: Market,
    size_delta_usd: int,
    is_long: bool,
) -> int:
    """Signed price impact of changing one side's open interest by *size_delta_usd*."""
    long_oi = get_open_interest(store, market, True)
    short_oi = get_open_interest(store, market, False)

    next_long_oi = long_oi + size_delta_usd if is_long else long_oi
    next_short_oi = short_oi if is_long else short_oi + size_delta_usd
    if next_long_oi < 0 or next_short_oi < 0:
        raise ValueError(
            f"size delta {size_delta_usd} exceeds {'long' if is_long else 'short'} open interest"
        )

    # An unset exponent means linear impact.
    exponent_factor = store.get(position_impact_exponent_factor_key(market.market_token)) or PRECISION
    initial_diff_usd = abs(long_oi - short_oi)
    next_diff_usd = abs(next_long_oi - next_short_oi)

    is_same_side_rebalance = (long_oi <= short_oi) == (next_long_oi <= next_short_oi)
    if is_same_side_rebalance:
        has_positive_impact = next_diff_usd < initial_diff_usd
        impact_factor = store.get(position_impact_factor_key(market.market_token, has_positive_impact))
        delta_usd = abs(
            _impact_usd(initial_diff_usd, impact_factor, exponent_factor)
            - _impact_usd(next_diff_usd, impact_factor, exponent_factor)
        )
        return delta_usd if has_positive_impact else -delta_usd

    positive_factor = store.get(position_impact_factor_key(market.market_token, True))
    negative_factor = store.get(position_impact_factor_key(market.market_token, False))
    return (
        _impact_usd(initial_diff_usd, positive_factor, exponent_factor)
        - _impact_usd(next_diff_usd, negative_factor, exponent_factor)
    )
