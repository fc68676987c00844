"""Pure fixed-point arithmetic for the position risk core.

Every function is stateless and operates on plain Python ints.

Rounding is explicit. ``mul_div`` truncates toward zero (the magnitude is
floored and the sign re-applied), and ``round_up=True`` rounds the magnitude
away from zero. Rounding direction always favors the protocol: traders are
attributed fewer tokens on a long close, pay more on fees, and receive less on
rebates.
"""

from __future__ import annotations

from .types import Position, Price

PRECISION: int = 10**30


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


# -- Basic helpers -----------------------------------------------------------

def mul_div(value: int, numerator: int, denominator: int, round_up: bool = False) -> int:
    """``value * numerator / denominator`` with the sign of *value*.

    *numerator* must be non-negative and *denominator* positive.
    """
    _require_int("value", value)
    _require_int("numerator", numerator)
    _require_int("denominator", denominator)
    if numerator < 0:
        raise ValueError(f"numerator must be non-negative, got {numerator}")
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")

    product = abs(value) * numerator
    q, r = divmod(product, denominator)
    if round_up and r:
        q += 1
    return -q if value < 0 else q


def round_up_division(a: int, b: int) -> int:
    """Ceiling of ``a / b`` for non-negative *a* and positive *b*."""
    _require_int("a", a)
    if a < 0:
        raise ValueError(f"a must be non-negative, got {a}")
    return mul_div(a, 1, b, round_up=True)


def apply_factor(value: int, factor: int, round_up: bool = False) -> int:
    """``value * factor / PRECISION``."""
    return mul_div(value, factor, PRECISION, round_up)


def to_factor(value: int, divisor: int, round_up: bool = False) -> int:
    """``value * PRECISION / divisor``."""
    return mul_div(value, PRECISION, divisor, round_up)


def apply_exponent_factor(value: int, exponent_factor: int) -> int:
    """``(value / PRECISION) ** (exponent_factor / PRECISION)``, rescaled.

    Only integral exponents are supported. Values below one USD unit produce
    zero so that dust imbalances never generate impact.
    """
    _require_int("value", value)
    _require_int("exponent_factor", exponent_factor)
    if value < 0:
        raise ValueError(f"value must be non-negative, got {value}")
    exponent, rem = divmod(exponent_factor, PRECISION)
    if rem or exponent < 1:
        raise ValueError(
            f"exponent_factor must be a positive multiple of PRECISION, got {exponent_factor}"
        )
    if value < PRECISION:
        return 0
    if exponent == 1:
        return value
    return value**exponent // PRECISION ** (exponent - 1)


# -- Price helpers -----------------------------------------------------------

def pick_price(price: Price, maximize: bool) -> int:
    return price.max if maximize else price.min


def pick_price_for_pnl(price: Price, is_long: bool, maximize: bool) -> int:
    """Price side for PnL: longs value at ``max`` only when maximizing, shorts the opposite."""
    if is_long:
        return price.max if maximize else price.min
    return price.min if maximize else price.max


# -- Position valuation ------------------------------------------------------

def compute_pnl(position: Position, size_delta_usd: int, index_token_price: int) -> tuple[int, int]:
    """Signed PnL for closing *size_delta_usd* of *position*, and the tokens closed.

    A full close attributes exactly ``size_in_tokens``. A partial close rounds
    the token share up for longs and down for shorts.
    """
    _require_int("size_delta_usd", size_delta_usd)
    _require_int("index_token_price", index_token_price)
    if position.size_in_tokens == 0:
        raise ValueError("cannot value a position with zero size_in_tokens")
    if size_delta_usd < 0 or size_delta_usd > position.size_in_usd:
        raise ValueError(
            f"size_delta_usd must be within [0, {position.size_in_usd}], got {size_delta_usd}"
        )

    position_value = position.size_in_tokens * index_token_price
    if position.is_long:
        total_pnl = position_value - position.size_in_usd
    else:
        total_pnl = position.size_in_usd - position_value

    if size_delta_usd == position.size_in_usd:
        size_delta_in_tokens = position.size_in_tokens
    else:
        size_delta_in_tokens = mul_div(
            position.size_in_tokens, size_delta_usd, position.size_in_usd,
            round_up=position.is_long,
        )

    pnl_usd = mul_div(total_pnl, size_delta_in_tokens, position.size_in_tokens)
    return pnl_usd, size_delta_in_tokens


# -- Price impact ------------------------------------------------------------

def cap_price_impact_for_liquidation(
    price_impact_usd: int,
    size_in_usd: int,
    max_position_impact_factor_for_liquidations: int,
) -> int:
    """Clamp a full-close price impact into ``[-size * maxFactor, 0]``.

    Favorable impact is dropped entirely; unfavorable impact is bounded so a
    transient imbalance cannot cascade liquidations.
    """
    _require_int("price_impact_usd", price_impact_usd)
    if price_impact_usd >= 0:
        return 0
    max_negative_impact_usd = -apply_factor(size_in_usd, max_position_impact_factor_for_liquidations)
    return max(price_impact_usd, max_negative_impact_usd)


# -- Funding helpers ---------------------------------------------------------

def get_funding_amount_per_size_delta(funding_amount: int, open_interest: int, round_up: bool) -> int:
    """Token amount per whole USD of open interest, scaled by PRECISION."""
    if funding_amount == 0 or open_interest == 0:
        return 0
    return to_factor(funding_amount, round_up_division(open_interest, PRECISION), round_up)


def get_funding_amount(size_in_usd: int, funding_amount_per_size_delta: int, round_up: bool) -> int:
    """Token amount owed (or claimable) by *size_in_usd* for a per-size delta."""
    return mul_div(size_in_usd, funding_amount_per_size_delta, PRECISION * PRECISION, round_up)
