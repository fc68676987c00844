"""Tests for margin_engine/config: YAML risk parameters."""

from __future__ import annotations

import pytest

from margin_engine.config import (
    MarketRiskParams,
    apply_risk_params,
    load_risk_params,
    parse_fixed,
    risk_params_from_dict,
)
from margin_engine.core.position import PRECISION, Market
from margin_engine.state import keys
from margin_engine.state.store import DataStore

P = PRECISION
MARKET = "0x" + "11" * 20
OTHER_MARKET = "0x" + "aa" * 20
WETH = "0x" + "22" * 20
USDC = "0x" + "33" * 20


class TestParseFixed:
    def test_decimal_string(self):
        assert parse_fixed("0.0005", name="x") == 5 * 10**26

    def test_whole_number_string(self):
        assert parse_fixed("100", name="x") == 100 * P

    def test_int_passes_through(self):
        assert parse_fixed(12345, name="x") == 12345

    def test_smallest_unit(self):
        assert parse_fixed("1e-30", name="x") == 1

    def test_too_precise_rejected(self):
        with pytest.raises(ValueError):
            parse_fixed("1e-31", name="x")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            parse_fixed(0.5, name="x")

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            parse_fixed(True, name="x")

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            parse_fixed("-1", name="x")
        with pytest.raises(ValueError):
            parse_fixed(-1, name="x")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_fixed("abc", name="x")


class TestLoad:
    def test_bundled_defaults(self):
        params = load_risk_params()
        assert params.max_leverage == 100 * P
        assert params.min_collateral_usd == P
        assert params.market_defaults.position_fee_factor == 5 * 10**26
        assert params.market_defaults.position_impact_exponent_factor == 2 * P
        assert params.markets == {}

    def test_market_override_inherits_defaults(self, tmp_path):
        path = tmp_path / "risk.yaml"
        path.write_text(
            "max_leverage: '50'\n"
            "min_collateral_usd: '5'\n"
            "market_defaults:\n"
            "  position_fee_factor: '0.001'\n"
            "  funding_factor: '0.00000001'\n"
            "markets:\n"
            f"  '{OTHER_MARKET.upper().replace('0X', '0x')}':\n"
            "    position_fee_factor: '0.002'\n",
            encoding="utf-8",
        )
        params = load_risk_params(path)
        assert params.max_leverage == 50 * P
        other = params.for_market(OTHER_MARKET)
        assert other.position_fee_factor == 2 * 10**27
        assert other.funding_factor == 10**22
        assert params.for_market(MARKET).position_fee_factor == 10**27

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            risk_params_from_dict({
                "max_leverage": "50",
                "min_collateral_usd": "5",
                "market_defaults": {"position_fee": "0.001"},
            })

    def test_missing_required_rejected(self):
        with pytest.raises(KeyError):
            risk_params_from_dict({"max_leverage": "50"})

    def test_non_mapping_yaml_rejected(self, tmp_path):
        path = tmp_path / "risk.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(TypeError):
            load_risk_params(path)


def test_apply_risk_params_writes_store():
    store = DataStore()
    params = risk_params_from_dict({
        "max_leverage": "50",
        "min_collateral_usd": "5",
        "market_defaults": {
            "position_fee_factor": "0.001",
            "borrowing_factor_long": "0.0000001",
        },
    })
    market = Market(market_token=MARKET, index_token=WETH, long_token=WETH, short_token=USDC)
    apply_risk_params(store, params, [market])
    assert store.get(keys.MAX_LEVERAGE) == 50 * P
    assert store.get(keys.MIN_COLLATERAL_USD) == 5 * P
    assert store.get(keys.position_fee_factor_key(MARKET)) == 10**27
    assert store.get(keys.borrowing_factor_key(MARKET, True)) == 10**23
    assert store.get(keys.borrowing_factor_key(MARKET, False)) == 0
    assert store.get(keys.position_impact_exponent_factor_key(MARKET)) == MarketRiskParams().position_impact_exponent_factor
