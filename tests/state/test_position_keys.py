"""Tests for margin_engine/state/keys.py: deterministic ledger and position keys."""

from __future__ import annotations

import re

import hypothesis.strategies as st
import pytest
from hypothesis import given

from margin_engine.state import keys
from margin_engine.state.canonical import canonical_json_bytes, domain_sep_bytes
from margin_engine.state.keys import canonical_address, derive_position_key, ledger_key

ACCOUNT = "0x" + "ab" * 20
MARKET = "0x" + "11" * 20
USDC = "0x" + "33" * 20

_KEY_RE = re.compile(r"^0x[0-9a-f]{64}$")


class TestCanonicalAddress:
    def test_lowercases(self):
        assert canonical_address("0x" + "AB" * 20) == ACCOUNT

    def test_accepts_missing_prefix(self):
        assert canonical_address("ab" * 20) == ACCOUNT

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            canonical_address("0x" + "ab" * 19)

    def test_non_hex_rejected(self):
        with pytest.raises(ValueError):
            canonical_address("0x" + "zz" * 20)


class TestDerivePositionKey:
    def test_format(self):
        assert _KEY_RE.match(derive_position_key(ACCOUNT, MARKET, USDC, True))

    def test_deterministic(self):
        assert derive_position_key(ACCOUNT, MARKET, USDC, True) == derive_position_key(ACCOUNT, MARKET, USDC, True)

    def test_case_insensitive(self):
        assert derive_position_key("0x" + "AB" * 20, MARKET, USDC, True) == derive_position_key(
            ACCOUNT, MARKET, USDC, True
        )

    def test_direction_distinguishes(self):
        assert derive_position_key(ACCOUNT, MARKET, USDC, True) != derive_position_key(ACCOUNT, MARKET, USDC, False)

    def test_order_sensitive(self):
        assert derive_position_key(ACCOUNT, MARKET, USDC, True) != derive_position_key(MARKET, ACCOUNT, USDC, True)

    def test_collateral_distinguishes(self):
        other = "0x" + "22" * 20
        assert derive_position_key(ACCOUNT, MARKET, USDC, True) != derive_position_key(ACCOUNT, MARKET, other, True)

    def test_non_bool_direction_rejected(self):
        with pytest.raises(TypeError):
            derive_position_key(ACCOUNT, MARKET, USDC, 1)


class TestLedgerKey:
    def test_labels_are_domain_separated(self):
        assert ledger_key("POOL_AMOUNT", MARKET) != ledger_key("FUNDING_FACTOR", MARKET)

    def test_int_parts_rejected(self):
        with pytest.raises(TypeError):
            ledger_key("POOL_AMOUNT", 1)

    def test_scoped_keys_differ_from_totals(self):
        assert keys.affiliate_reward_key(MARKET, USDC) != keys.affiliate_reward_key(MARKET, USDC, ACCOUNT)
        assert keys.claimable_funding_amount_key(MARKET, USDC) != keys.claimable_funding_amount_key(
            MARKET, USDC, ACCOUNT
        )

    def test_per_side_keys(self):
        assert keys.open_interest_key(MARKET, USDC, True) != keys.open_interest_key(MARKET, USDC, False)
        assert keys.open_interest_key(MARKET, USDC, True) != keys.open_interest_in_tokens_key(MARKET, USDC, True)

    def test_global_keys_distinct(self):
        assert keys.MAX_LEVERAGE != keys.MIN_COLLATERAL_USD



class TestCanonicalEncoding:
    def test_compact_array(self):
        assert canonical_json_bytes(["0xab", True]) == b'["0xab",true]'

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            canonical_json_bytes([0.5])

    def test_nested_rejected(self):
        with pytest.raises(TypeError):
            canonical_json_bytes([["0xab"]])

    def test_surrogate_rejected(self):
        with pytest.raises(TypeError):
            canonical_json_bytes(["\ud800"])

    def test_domain_separator(self):
        assert domain_sep_bytes("POSITION") == b"margin-engine:POSITION:v1\x00"

    def test_non_ascii_label_rejected(self):
        with pytest.raises(ValueError):
            domain_sep_bytes("POSITI\u00d6N")

# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

_address = st.binary(min_size=20, max_size=20).map(lambda b: "0x" + b.hex())


@given(account=_address, market=_address, collateral=_address, is_long=st.booleans())
def test_key_ignores_address_case(account, market, collateral, is_long):
    upper = derive_position_key("0x" + account[2:].upper(), market, collateral.upper().replace("0X", "0x"), is_long)
    assert upper == derive_position_key(account, market, collateral, is_long)


@given(account=_address, other=_address, market=_address, collateral=_address, is_long=st.booleans())
def test_single_field_change_changes_key(account, other, market, collateral, is_long):
    base = derive_position_key(account, market, collateral, is_long)
    assert derive_position_key(account, market, collateral, not is_long) != base
    if other != account:
        assert derive_position_key(other, market, collateral, is_long) != base
    if other != market:
        assert derive_position_key(account, other, collateral, is_long) != base
    if other != collateral:
        assert derive_position_key(account, market, other, is_long) != base
