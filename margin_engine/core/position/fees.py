"""Position fee calculation.

The fee calculator is a collaborator of the risk core: liquidation checks and
the update orchestrator only consume the resulting `PositionFees`. The default
`PositionFeeCalculator` charges:

- a position fee on the size delta, part of which is rebated through the
  trader's referral (affiliate reward + trader discount),
- pending borrowing fees since the position's last borrowing-factor snapshot,
- pending funding fees since the position's last funding snapshot, and
  reports the funding the position can claim.

Fee token amounts are rounded up from USD at the collateral token's ``min``
price and the total cost is re-valued at ``max``, so both conversions favor
the protocol.
"""

from __future__ import annotations

from typing import Optional, Protocol

from ...state.keys import (
    claimable_funding_amount_per_size_key,
    cumulative_borrowing_factor_key,
    funding_amount_per_size_key,
    position_fee_factor_key,
)
from ...state.store import ReadableStore
from .math import apply_factor, get_funding_amount, round_up_division
from .types import (
    Market,
    Position,
    PositionBorrowingFees,
    PositionFees,
    PositionFundingFees,
    PositionReferralFees,
    Price,
    ReferralInfo,
)


class ReferralResolver(Protocol):
    def get_referral_info(self, account: str) -> ReferralInfo: ...


class NoReferrals:
    """Resolver for deployments without a referral program."""

    def get_referral_info(self, account: str) -> ReferralInfo:
        return ReferralInfo()


class StaticReferrals:
    """Resolver backed by a fixed ``account -> ReferralInfo`` mapping."""

    def __init__(self, referrals: dict[str, ReferralInfo]) -> None:
        self._referrals = {account.lower(): info for account, info in referrals.items()}

    def get_referral_info(self, account: str) -> ReferralInfo:
        return self._referrals.get(account.lower(), ReferralInfo())


class FeeCalculator(Protocol):
    def compute_position_fees(
        self,
        store: ReadableStore,
        position: Position,
        collateral_token_price: Price,
        market: Market,
        size_delta_usd: int,
    ) -> PositionFees: ...


def _delta_since(latest: int, snapshot: int, name: str) -> int:
    if latest < snapshot:
        raise ValueError(f"{name} snapshot {snapshot} is ahead of the market accumulator {latest}")
    return latest - snapshot


def get_funding_fees(store: ReadableStore, position: Position, market: Market) -> PositionFundingFees:
    """Funding owed and claimable since the position's last snapshots."""
    latest_funding = store.get(
        funding_amount_per_size_key(market.market_token, position.collateral_token, position.is_long)
    )
    latest_long_claimable = store.get(
        claimable_funding_amount_per_size_key(market.market_token, market.long_token, position.is_long)
    )
    latest_short_claimable = store.get(
        claimable_funding_amount_per_size_key(market.market_token, market.short_token, position.is_long)
    )
    # Single-token pools accrue claimable funding under one key; report it once, on the long leg.
    single_token = len(market.collateral_tokens()) == 1
    return PositionFundingFees(
        funding_fee_amount=get_funding_amount(
            position.size_in_usd,
            _delta_since(latest_funding, position.funding_fee_amount_per_size, "funding"),
            round_up=True,
        ),
        claimable_long_token_amount=get_funding_amount(
            position.size_in_usd,
            _delta_since(
                latest_long_claimable,
                position.long_token_claimable_funding_amount_per_size,
                "long claimable funding",
            ),
            round_up=False,
        ),
        claimable_short_token_amount=0 if single_token else get_funding_amount(
            position.size_in_usd,
            _delta_since(
                latest_short_claimable,
                position.short_token_claimable_funding_amount_per_size,
                "short claimable funding",
            ),
            round_up=False,
        ),
        latest_funding_fee_amount_per_size=latest_funding,
        latest_long_token_claimable_funding_amount_per_size=latest_long_claimable,
        latest_short_token_claimable_funding_amount_per_size=latest_short_claimable,
    )


def get_borrowing_fees(
    store: ReadableStore, position: Position, market: Market, collateral_token_price: Price,
) -> PositionBorrowingFees:
    latest = store.get(cumulative_borrowing_factor_key(market.market_token, position.is_long))
    fee_usd = apply_factor(position.size_in_usd, _delta_since(latest, position.borrowing_factor, "borrowing"))
    return PositionBorrowingFees(
        borrowing_fee_usd=fee_usd,
        borrowing_fee_amount=round_up_division(fee_usd, collateral_token_price.min),
        latest_borrowing_factor=latest,
    )


class PositionFeeCalculator:
    """Default fee calculator."""

    def __init__(self, referrals: Optional[ReferralResolver] = None) -> None:
        self._referrals: ReferralResolver = referrals or NoReferrals()

    def compute_position_fees(
        self,
        store: ReadableStore,
        position: Position,
        collateral_token_price: Price,
        market: Market,
        size_delta_usd: int,
    ) -> PositionFees:
        if size_delta_usd < 0:
            raise ValueError(f"size_delta_usd must be non-negative, got {size_delta_usd}")

        position_fee_factor = store.get(position_fee_factor_key(market.market_token))
        position_fee_amount = round_up_division(
            apply_factor(size_delta_usd, position_fee_factor), collateral_token_price.min,
        )

        info = self._referrals.get_referral_info(position.account)
        total_rebate_amount = apply_factor(position_fee_amount, info.total_rebate_factor)
        trader_discount_amount = apply_factor(total_rebate_amount, info.trader_discount_factor)
        referral = PositionReferralFees(
            affiliate=info.affiliate,
            total_rebate_amount=total_rebate_amount,
            trader_discount_amount=trader_discount_amount,
            affiliate_reward_amount=total_rebate_amount - trader_discount_amount,
        )
        protocol_fee_amount = position_fee_amount - total_rebate_amount

        funding = get_funding_fees(store, position, market)
        borrowing = get_borrowing_fees(store, position, market, collateral_token_price)

        total_net_cost_amount = (
            protocol_fee_amount
            + referral.affiliate_reward_amount
            + borrowing.borrowing_fee_amount
            + funding.funding_fee_amount
        )
        return PositionFees(
            collateral_token_price=collateral_token_price,
            position_fee_amount=position_fee_amount,
            protocol_fee_amount=protocol_fee_amount,
            funding=funding,
            referral=referral,
            borrowing=borrowing,
            total_net_cost_amount=total_net_cost_amount,
            total_net_cost_usd=total_net_cost_amount * collateral_token_price.max,
        )
