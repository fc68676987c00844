"""Data types for the position risk core.

All types are frozen dataclasses (immutable). Values are plain Python ints in
the fixed-point convention of `math.py`:

- `*_usd` values and `*_factor` values are scaled by ``PRECISION`` (1e30).
- `*_amount` values are raw token units.
- prices are USD-per-token-unit scaled so that ``amount * price`` is a
  ``PRECISION``-scaled USD value.
- `*_per_size` values are token amounts per USD of size, scaled by ``PRECISION``.

Identities (accounts, markets, tokens) are 0x-prefixed 20-byte hex strings.
"""

from __future__ import annotations

from dataclasses import dataclass

from ...errors import PositionErrorKind


@dataclass(frozen=True)
class Price:
    """Bid/ask pair for one asset at one point in time."""

    min: int
    max: int

    def __post_init__(self) -> None:
        for name in ("min", "max"):
            val = getattr(self, name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"price {name} must be an int")
            if val <= 0:
                raise ValueError(f"price {name} must be positive, got {val}")
        if self.min > self.max:
            raise ValueError(f"price min {self.min} exceeds max {self.max}")


@dataclass(frozen=True)
class Market:
    """Static description of a trading venue."""

    market_token: str
    index_token: str
    long_token: str
    short_token: str

    def collateral_tokens(self) -> tuple[str, ...]:
        """Collateral-eligible tokens, deduplicated for single-token pools."""
        if self.long_token == self.short_token:
            return (self.long_token,)
        return (self.long_token, self.short_token)


@dataclass(frozen=True)
class MarketPrices:
    """Price snapshot captured once per operation."""

    index_token_price: Price
    long_token_price: Price
    short_token_price: Price


@dataclass(frozen=True)
class Position:
    """A leveraged exposure record, keyed by (account, market, collateral token, direction)."""

    account: str
    market: str
    collateral_token: str
    is_long: bool
    size_in_usd: int = 0
    size_in_tokens: int = 0
    collateral_amount: int = 0
    borrowing_factor: int = 0
    funding_fee_amount_per_size: int = 0
    long_token_claimable_funding_amount_per_size: int = 0
    short_token_claimable_funding_amount_per_size: int = 0
    increased_at_time: int = 0
    decreased_at_time: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.is_long, bool):
            raise TypeError("is_long must be a bool")
        for name in (
            "size_in_usd",
            "size_in_tokens",
            "collateral_amount",
            "borrowing_factor",
            "funding_fee_amount_per_size",
            "long_token_claimable_funding_amount_per_size",
            "short_token_claimable_funding_amount_per_size",
            "increased_at_time",
            "decreased_at_time",
        ):
            val = getattr(self, name)
            if not isinstance(val, int) or isinstance(val, bool):
                raise TypeError(f"{name} must be an int")
            if val < 0:
                raise ValueError(f"{name} must be non-negative, got {val}")


@dataclass(frozen=True)
class ReferralInfo:
    """Referral terms for a trader (resolved by an external referral registry)."""

    affiliate: str | None = None
    total_rebate_factor: int = 0
    trader_discount_factor: int = 0


@dataclass(frozen=True)
class PositionFundingFees:
    funding_fee_amount: int = 0
    claimable_long_token_amount: int = 0
    claimable_short_token_amount: int = 0
    latest_funding_fee_amount_per_size: int = 0
    latest_long_token_claimable_funding_amount_per_size: int = 0
    latest_short_token_claimable_funding_amount_per_size: int = 0


@dataclass(frozen=True)
class PositionReferralFees:
    affiliate: str | None = None
    total_rebate_amount: int = 0
    trader_discount_amount: int = 0
    affiliate_reward_amount: int = 0


@dataclass(frozen=True)
class PositionBorrowingFees:
    borrowing_fee_usd: int = 0
    borrowing_fee_amount: int = 0
    latest_borrowing_factor: int = 0


@dataclass(frozen=True)
class PositionFees:
    """Fees for one position update; computed, never stored."""

    collateral_token_price: Price
    position_fee_amount: int = 0
    protocol_fee_amount: int = 0
    funding: PositionFundingFees = PositionFundingFees()
    referral: PositionReferralFees = PositionReferralFees()
    borrowing: PositionBorrowingFees = PositionBorrowingFees()
    total_net_cost_amount: int = 0
    total_net_cost_usd: int = 0


@dataclass(frozen=True)
class LiquidationInfo:
    """Intermediate values of a liquidation check (all USD values signed)."""

    pnl_usd: int
    collateral_usd: int
    price_impact_usd: int
    total_net_cost_usd: int
    remaining_collateral_usd: int
    min_collateral_usd: int
    max_leverage: int
    leverage: int | None
    is_liquidatable: bool
    reason: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation gate: ``ok`` or the error kind that failed."""

    ok: bool
    error: PositionErrorKind | None = None
    message: str | None = None


@dataclass(frozen=True)
class PositionUpdateRequest:
    """A single size/collateral change for the position identified by its tuple.

    ``size_delta_usd`` > 0 increases the position, < 0 decreases it (capped at
    the current size), and 0 adjusts collateral only.
    """

    account: str
    market: Market
    collateral_token: str
    is_long: bool
    size_delta_usd: int = 0
    collateral_delta_amount: int = 0
    receiver: str | None = None


@dataclass(frozen=True)
class UpdateResult:
    """Result of a single position update."""

    accepted: bool
    position_key: str | None = None
    position: Position | None = None
    fees: PositionFees | None = None
    size_delta_in_tokens: int = 0
    realized_pnl_usd: int = 0
    output_collateral_amount: int = 0
    error: PositionErrorKind | None = None
    message: str | None = None
