"""Outbound notifications for the position risk core.

Events are fire-and-forget: core logic never branches on delivery. During an
update they are emitted into the operation's `StoreTransaction` and delivered
to the caller's sink only after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Iterable, List, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


@unique
class EventName(Enum):
    FUNDING_UPDATED = "FundingUpdated"
    CUMULATIVE_BORROWING_FACTOR_UPDATED = "CumulativeBorrowingFactorUpdated"
    TOTAL_BORROWING_UPDATED = "TotalBorrowingUpdated"
    OPEN_INTEREST_UPDATED = "OpenInterestUpdated"
    OPEN_INTEREST_IN_TOKENS_UPDATED = "OpenInterestInTokensUpdated"
    AFFILIATE_REWARD_UPDATED = "AffiliateRewardUpdated"
    TRADER_REFERRAL_DISCOUNT_APPLIED = "TraderReferralDiscountApplied"
    CLAIMABLE_FUNDING_UPDATED = "ClaimableFundingUpdated"
    POSITION_INCREASE = "PositionIncrease"
    POSITION_DECREASE = "PositionDecrease"


@dataclass(frozen=True)
class EventRecord:
    name: EventName
    data: Mapping[str, Any] = field(default_factory=dict)


class EventSink(Protocol):
    def emit(self, event: EventRecord) -> None: ...


class EventLog:
    """Collecting sink; also logs every event at DEBUG."""

    def __init__(self) -> None:
        self.events: List[EventRecord] = []

    def emit(self, event: EventRecord) -> None:
        logger.debug("event %s %s", event.name.value, dict(event.data))
        self.events.append(event)

    def names(self) -> List[EventName]:
        return [e.name for e in self.events]

    def of(self, name: EventName) -> List[EventRecord]:
        return [e for e in self.events if e.name is name]


def emit_event(sink: Optional[EventSink], name: EventName, **data: Any) -> None:
    if sink is None:
        return
    sink.emit(EventRecord(name=name, data=data))


def deliver(sink: Optional[EventSink], events: Iterable[EventRecord]) -> None:
    """Deliver committed events; a failing sink is logged and never propagates."""
    if sink is None:
        return
    for event in events:
        try:
            sink.emit(event)
        except Exception:
            logger.exception("event sink failed to accept %s", event.name.value)
