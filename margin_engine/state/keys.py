"""
Ledger and position key derivation.

Every key is ``sha256(domain_sep(label) || canonical_json(parts))`` rendered as
0x-prefixed lowercase hex. Identities are canonicalized before hashing, so
``0xABC...`` and ``0xabc...`` derive the same key. The tuple is encoded as a
JSON array, which makes the derivation order-sensitive.
"""

from __future__ import annotations

from .canonical import canonical_hex_fixed_allow_0x, canonical_json_bytes, domain_sep_bytes, sha256_hex

ADDRESS_BYTES = 20

KeyPart = str | bool


def canonical_address(value: str, *, name: str = "address") -> str:
    """Lowercase 0x-prefixed 20-byte identity."""
    return canonical_hex_fixed_allow_0x(value, nbytes=ADDRESS_BYTES, name=name)


def ledger_key(label: str, *parts: KeyPart) -> str:
    """Derive the store key for *label* scoped by *parts*."""
    for part in parts:
        if not isinstance(part, (str, bool)):
            raise TypeError(f"key parts must be str or bool, got {type(part).__name__}")
    return sha256_hex(domain_sep_bytes(label) + canonical_json_bytes(list(parts)))


def derive_position_key(account: str, market: str, collateral_token: str, is_long: bool) -> str:
    """Primary key of the position for ``(account, market, collateral_token, is_long)``."""
    if not isinstance(is_long, bool):
        raise TypeError("is_long must be a bool")
    return ledger_key(
        "POSITION",
        canonical_address(account, name="account"),
        canonical_address(market, name="market"),
        canonical_address(collateral_token, name="collateral_token"),
        is_long,
    )


# -- Global risk parameters --------------------------------------------------

MAX_LEVERAGE = ledger_key("MAX_LEVERAGE")
MIN_COLLATERAL_USD = ledger_key("MIN_COLLATERAL_USD")


# -- Per-market risk parameters ----------------------------------------------

def position_fee_factor_key(market: str) -> str:
    return ledger_key("POSITION_FEE_FACTOR", canonical_address(market))


def position_impact_factor_key(market: str, is_positive: bool) -> str:
    return ledger_key("POSITION_IMPACT_FACTOR", canonical_address(market), is_positive)


def position_impact_exponent_factor_key(market: str) -> str:
    return ledger_key("POSITION_IMPACT_EXPONENT_FACTOR", canonical_address(market))


def max_position_impact_factor_for_liquidations_key(market: str) -> str:
    return ledger_key("MAX_POSITION_IMPACT_FACTOR_FOR_LIQUIDATIONS", canonical_address(market))


def funding_factor_key(market: str) -> str:
    return ledger_key("FUNDING_FACTOR", canonical_address(market))


def borrowing_factor_key(market: str, is_long: bool) -> str:
    return ledger_key("BORROWING_FACTOR", canonical_address(market), is_long)


# -- Per-market accumulators -------------------------------------------------

def pool_amount_key(market: str, token: str) -> str:
    return ledger_key("POOL_AMOUNT", canonical_address(market), canonical_address(token))


def open_interest_key(market: str, collateral_token: str, is_long: bool) -> str:
    return ledger_key(
        "OPEN_INTEREST", canonical_address(market), canonical_address(collateral_token), is_long,
    )


def open_interest_in_tokens_key(market: str, collateral_token: str, is_long: bool) -> str:
    return ledger_key(
        "OPEN_INTEREST_IN_TOKENS", canonical_address(market), canonical_address(collateral_token), is_long,
    )


def funding_amount_per_size_key(market: str, collateral_token: str, is_long: bool) -> str:
    return ledger_key(
        "FUNDING_AMOUNT_PER_SIZE", canonical_address(market), canonical_address(collateral_token), is_long,
    )


def claimable_funding_amount_per_size_key(market: str, collateral_token: str, is_long: bool) -> str:
    return ledger_key(
        "CLAIMABLE_FUNDING_AMOUNT_PER_SIZE",
        canonical_address(market), canonical_address(collateral_token), is_long,
    )


def funding_updated_at_key(market: str) -> str:
    return ledger_key("FUNDING_UPDATED_AT", canonical_address(market))


def cumulative_borrowing_factor_key(market: str, is_long: bool) -> str:
    return ledger_key("CUMULATIVE_BORROWING_FACTOR", canonical_address(market), is_long)


def borrowing_updated_at_key(market: str, is_long: bool) -> str:
    return ledger_key("CUMULATIVE_BORROWING_FACTOR_UPDATED_AT", canonical_address(market), is_long)


def total_borrowing_key(market: str, is_long: bool) -> str:
    return ledger_key("TOTAL_BORROWING", canonical_address(market), is_long)


# -- Claimable balances ------------------------------------------------------

def claimable_funding_amount_key(market: str, token: str, account: str | None = None) -> str:
    """Claimable funding for *account*, or the market-wide total when *account* is None."""
    if account is None:
        return ledger_key("CLAIMABLE_FUNDING_AMOUNT", canonical_address(market), canonical_address(token))
    return ledger_key(
        "CLAIMABLE_FUNDING_AMOUNT",
        canonical_address(market), canonical_address(token), canonical_address(account, name="account"),
    )


def affiliate_reward_key(market: str, token: str, affiliate: str | None = None) -> str:
    """Affiliate reward for *affiliate*, or the market-wide total when *affiliate* is None."""
    if affiliate is None:
        return ledger_key("AFFILIATE_REWARD", canonical_address(market), canonical_address(token))
    return ledger_key(
        "AFFILIATE_REWARD",
        canonical_address(market), canonical_address(token), canonical_address(affiliate, name="affiliate"),
    )
