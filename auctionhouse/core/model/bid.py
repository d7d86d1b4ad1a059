"""
Bid - an offer by one member on one auction.

A bid is created PENDING and resolved exactly once by the auctioneer,
to ACCEPTED or DECLINED. It is never reassigned or deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Dict, Optional

from auctionhouse.core.errors import BidStateError, ValidationError
from auctionhouse.core.model.member import Member
from auctionhouse.utils.timeutil import ensure_utc
from auctionhouse.utils.validation import to_amount, validate_amount, validate_timestamp

if TYPE_CHECKING:
    from auctionhouse.core.model.auction import Auction


# =============================================================================
# Enums
# =============================================================================


class BidState(IntEnum):
    """Resolution state of a bid."""
    PENDING = 0       # Not yet seen by the auctioneer
    ACCEPTED = 1      # Became the active bid when resolved
    DECLINED = 2      # Did not beat the current price


# =============================================================================
# Bid
# =============================================================================


@dataclass(eq=False)
class Bid:
    """
    A member's offer on an auction.

    Attributes:
        bidder: Member who placed the bid
        amount: Offered price in the auction's currency unit
        received_on_utc: Submission time (UTC)
        auction: Auction the bid belongs to
        state: Resolution state
        bid_id: Identifier assigned by the repository
        sequence: Arrival order within the auction, tiebreak for equal timestamps
    """
    bidder: Member
    amount: Decimal
    received_on_utc: datetime
    auction: Optional["Auction"] = field(default=None, repr=False)
    state: BidState = BidState.PENDING
    bid_id: Optional[int] = None
    sequence: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.bidder, Member):
            raise ValidationError(f"bidder must be Member, got {type(self.bidder).__name__}")

        valid, error = validate_amount(self.amount)
        if not valid:
            raise ValidationError(error)
        self.amount = to_amount(self.amount)

        valid, error = validate_timestamp(self.received_on_utc, "received_on_utc")
        if not valid:
            raise ValidationError(error)
        self.received_on_utc = ensure_utc(self.received_on_utc)

        self.state = BidState(self.state)

    @property
    def is_pending(self) -> bool:
        return self.state == BidState.PENDING

    def accept(self) -> None:
        self._resolve(BidState.ACCEPTED)

    def decline(self) -> None:
        self._resolve(BidState.DECLINED)

    def _resolve(self, state: BidState) -> None:
        if self.state != BidState.PENDING:
            raise BidStateError(
                f"Bid {self.bid_id} is already {self.state.name}, cannot mark {state.name}"
            )
        self.state = state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bid_id": self.bid_id,
            "bidder": self.bidder.unique_id,
            "amount": str(self.amount),
            "received_on_utc": self.received_on_utc.isoformat(),
            "state": self.state.name,
        }
