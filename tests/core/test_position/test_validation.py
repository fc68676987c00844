"""Tests for margin_engine/core/position/validation.py: raising and result-returning gates."""

from __future__ import annotations

import pytest

from margin_engine.core.position import (
    PRECISION,
    EmptyPositionError,
    LiquidatablePositionError,
    Market,
    MarketPrices,
    Position,
    PositionErrorKind,
    PositionFeeCalculator,
    Price,
    ZeroSizeError,
    check_non_empty_position,
    check_position,
    validate_non_empty_position,
    validate_position,
)
from margin_engine.state import keys
from margin_engine.state.store import DataStore

P = PRECISION
ACCOUNT = "0x" + "44" * 20
MARKET = "0x" + "11" * 20
WETH = "0x" + "22" * 20
USDC = "0x" + "33" * 20

ETH_MARKET = Market(market_token=MARKET, index_token=WETH, long_token=WETH, short_token=USDC)
PRICES = MarketPrices(
    index_token_price=Price(min=100 * P, max=100 * P),
    long_token_price=Price(min=100 * P, max=100 * P),
    short_token_price=Price(min=P, max=P),
)


def _position(size_in_usd: int = 1000 * P, size_in_tokens: int = 10, collateral_amount: int = 100) -> Position:
    return Position(
        account=ACCOUNT,
        market=MARKET,
        collateral_token=USDC,
        is_long=True,
        size_in_usd=size_in_usd,
        size_in_tokens=size_in_tokens,
        collateral_amount=collateral_amount,
    )


def _store() -> DataStore:
    store = DataStore()
    store.set(keys.MAX_LEVERAGE, 50 * P)
    store.set(keys.MIN_COLLATERAL_USD, 5 * P)
    store.set(keys.open_interest_key(MARKET, USDC, True), 1000 * P)
    return store


# ---------------------------------------------------------------------------
# Non-empty gate
# ---------------------------------------------------------------------------

class TestNonEmpty:
    def test_zero_collateral_is_empty(self):
        with pytest.raises(EmptyPositionError):
            validate_non_empty_position(_position(collateral_amount=0))

    def test_zero_size_is_empty(self):
        with pytest.raises(EmptyPositionError):
            validate_non_empty_position(_position(size_in_usd=0))

    def test_zero_tokens_is_empty(self):
        with pytest.raises(EmptyPositionError):
            validate_non_empty_position(_position(size_in_tokens=0))

    def test_complete_position_passes(self):
        validate_non_empty_position(_position())

    def test_check_returns_result(self):
        result = check_non_empty_position(_position(collateral_amount=0))
        assert not result.ok
        assert result.error is PositionErrorKind.EMPTY_POSITION
        assert "collateral_amount=0" in result.message

    def test_check_ok(self):
        assert check_non_empty_position(_position()).ok


# ---------------------------------------------------------------------------
# Full gate
# ---------------------------------------------------------------------------

class TestValidatePosition:
    def test_zero_size_checked_first(self):
        with pytest.raises(ZeroSizeError):
            validate_position(_store(), PositionFeeCalculator(), _position(size_in_usd=0), ETH_MARKET, PRICES)

    def test_zero_tokens(self):
        with pytest.raises(ZeroSizeError):
            validate_position(_store(), PositionFeeCalculator(), _position(size_in_tokens=0), ETH_MARKET, PRICES)

    def test_over_leveraged(self):
        # 1000 USD against 10 USD of collateral is 100x
        with pytest.raises(LiquidatablePositionError):
            validate_position(_store(), PositionFeeCalculator(), _position(collateral_amount=10), ETH_MARKET, PRICES)

    def test_below_min_collateral(self):
        with pytest.raises(LiquidatablePositionError):
            validate_position(
                _store(), PositionFeeCalculator(),
                _position(size_in_usd=100 * P, size_in_tokens=1, collateral_amount=4),
                ETH_MARKET, PRICES,
            )

    def test_healthy(self):
        validate_position(_store(), PositionFeeCalculator(), _position(), ETH_MARKET, PRICES)

    def test_check_position_results(self):
        store = _store()
        bad = check_position(store, PositionFeeCalculator(), _position(collateral_amount=10), ETH_MARKET, PRICES)
        assert not bad.ok
        assert bad.error is PositionErrorKind.LIQUIDATABLE_POSITION
        zero = check_position(store, PositionFeeCalculator(), _position(size_in_tokens=0), ETH_MARKET, PRICES)
        assert zero.error is PositionErrorKind.ZERO_SIZE
        assert check_position(store, PositionFeeCalculator(), _position(), ETH_MARKET, PRICES).ok
