"""Tests for margin_engine/core/position/pricing.py: open-interest imbalance impact."""

from __future__ import annotations

import pytest

from margin_engine.core.position import PRECISION, Market
from margin_engine.core.position.pricing import get_price_impact_usd
from margin_engine.state import keys
from margin_engine.state.store import DataStore

P = PRECISION
MARKET = "0x" + "11" * 20
WETH = "0x" + "22" * 20
USDC = "0x" + "33" * 20

ETH_MARKET = Market(market_token=MARKET, index_token=WETH, long_token=WETH, short_token=USDC)


def _store(long_oi: int, short_oi: int, exponent: int = 0) -> DataStore:
    store = DataStore()
    store.set(keys.position_impact_factor_key(MARKET, True), P // 200)
    store.set(keys.position_impact_factor_key(MARKET, False), P // 100)
    store.set(keys.position_impact_exponent_factor_key(MARKET), exponent)
    store.set(keys.open_interest_key(MARKET, USDC, True), long_oi)
    store.set(keys.open_interest_key(MARKET, USDC, False), short_oi)
    return store


class TestSameSide:
    def test_growing_imbalance_is_negative(self):
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, -1000 * P, True) == -10 * P

    def test_shrinking_imbalance_is_positive(self):
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, 1000 * P, True) == 5 * P

    def test_short_side(self):
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, 1000 * P, False) == -10 * P

    def test_quadratic_exponent(self):
        store = _store(1000 * P, 5000 * P, exponent=2 * P)
        # 0.01 * (5000^2 - 4000^2)
        assert get_price_impact_usd(store, ETH_MARKET, -1000 * P, True) == -90_000 * P

    def test_balanced_market_opening(self):
        assert get_price_impact_usd(_store(0, 0), ETH_MARKET, 1000 * P, True) == -10 * P

    def test_zero_delta(self):
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, 0, True) == 0


class TestCrossover:
    def test_flip_splits_positive_and_negative(self):
        # 4000 short-heavy imbalance removed at 0.5%, 4000 long-heavy created at 1%
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, 8000 * P, True) == -20 * P

    def test_flip_can_net_to_zero(self):
        assert get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, 6000 * P, True) == 0


def test_delta_beyond_open_interest_rejected():
    with pytest.raises(ValueError):
        get_price_impact_usd(_store(1000 * P, 5000 * P), ETH_MARKET, -2000 * P, True)
