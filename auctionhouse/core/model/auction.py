"""
Auction - a timed listing that collects bids.

The auction holds the authoritative price pointer (current_price and
active_bid) moved by the auctioneer while resolving bids, and the closing
state (is_closed, close_utc, winner) set once its end time has passed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from auctionhouse.core.errors import AuctionStateError, ValidationError
from auctionhouse.core.model.bid import Bid, BidState
from auctionhouse.core.model.member import Member
from auctionhouse.utils.timeutil import ensure_utc
from auctionhouse.utils.validation import (
    MAX_TITLE_LENGTH,
    to_amount,
    validate_amount,
    validate_name,
    validate_period,
)


@dataclass(eq=False)
class Auction:
    """
    A timed auction.

    Attributes:
        title: Listing title
        seller: Member who listed the item
        start_price: Price before any bid is accepted
        start_utc: Start of the bidding period
        end_utc: End of the bidding period
        current_price: Amount of the active bid, or start_price
        active_bid: Highest accepted bid
        is_closed: Set once by the auctioneer, never reset
        close_utc: When the auction was closed
        winner: Bidder of the active bid at close time
        bids: All bids in arrival order
        auction_id: Identifier assigned by the repository
    """
    title: str
    seller: Member
    start_price: Decimal
    start_utc: datetime
    end_utc: datetime
    current_price: Optional[Decimal] = None
    active_bid: Optional[Bid] = field(default=None, repr=False)
    is_closed: bool = False
    close_utc: Optional[datetime] = None
    winner: Optional[Member] = None
    bids: List[Bid] = field(default_factory=list, repr=False)
    auction_id: Optional[int] = None

    def __post_init__(self):
        valid, error = validate_name(self.title, "title", max_length=MAX_TITLE_LENGTH)
        if not valid:
            raise ValidationError(error)

        if not isinstance(self.seller, Member):
            raise ValidationError(f"seller must be Member, got {type(self.seller).__name__}")

        valid, error = validate_amount(self.start_price, "start_price", allow_zero=True)
        if not valid:
            raise ValidationError(error)
        self.start_price = to_amount(self.start_price)

        valid, error = validate_period(self.start_utc, self.end_utc)
        if not valid:
            raise ValidationError(error)
        self.start_utc = ensure_utc(self.start_utc)
        self.end_utc = ensure_utc(self.end_utc)

        if self.current_price is None:
            self.current_price = self.start_price
        else:
            self.current_price = to_amount(self.current_price)

    # =========================================================================
    # Bids
    # =========================================================================

    def add_bid(self, bid: Bid) -> Bid:
        """Attach a bid, assigning its arrival sequence if it has none."""
        if self.is_closed:
            raise AuctionStateError(f"Auction {self.auction_id} is closed")
        bid.auction = self
        if bid.sequence is None:
            bid.sequence = len(self.bids)
        self.bids.append(bid)
        return bid

    def pending_bids(self) -> List[Bid]:
        """Pending bids, oldest first; arrival sequence breaks timestamp ties."""
        pending = []
        for bid in self.bids:
            if bid.state == BidState.PENDING:
                pending.append(bid)
        pending.sort(key=lambda b: (b.received_on_utc, b.sequence))
        return pending

    def has_pending_bids(self) -> bool:
        for bid in self.bids:
            if bid.state == BidState.PENDING:
                return True
        return False

    def apply_accepted(self, bid: Bid) -> None:
        """Accept a bid and make it the active bid."""
        bid.accept()
        self.active_bid = bid
        self.current_price = bid.amount

    def apply_declined(self, bid: Bid) -> None:
        bid.decline()

    # =========================================================================
    # Closing
    # =========================================================================

    def is_due(self, now: datetime) -> bool:
        return not self.is_closed and self.end_utc <= now

    def close(self, now: datetime) -> None:
        """
        Close the auction and assign the winner.

        Raises:
            AuctionStateError: already closed, or bids are still pending
        """
        if self.is_closed:
            raise AuctionStateError(f"Auction {self.auction_id} is already closed")
        if self.has_pending_bids():
            raise AuctionStateError(f"Auction {self.auction_id} has pending bids")

        if self.bids and self.active_bid is not None:
            self.winner = self.active_bid.bidder

        self.is_closed = True
        self.close_utc = ensure_utc(now)

    @property
    def successful(self) -> bool:
        return self.winner is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "title": self.title,
            "seller": self.seller.unique_id,
            "start_price": str(self.start_price),
            "current_price": str(self.current_price),
            "start_utc": self.start_utc.isoformat(),
            "end_utc": self.end_utc.isoformat(),
            "is_closed": self.is_closed,
            "close_utc": self.close_utc.isoformat() if self.close_utc else None,
            "winner": self.winner.unique_id if self.winner else None,
            "active_bid": self.active_bid.bid_id if self.active_bid else None,
            "bids": [bid.to_dict() for bid in self.bids],
        }
