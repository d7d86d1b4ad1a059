"""
Exception hierarchy for the auction house.

All errors raised by the engine and its repositories derive from
AuctionHouseError, except failures of the underlying store (sqlite3.Error
and friends) which propagate unchanged.
"""


class AuctionHouseError(Exception):
    """Base class for auction house errors."""


class ValidationError(AuctionHouseError, ValueError):
    """An entity or input was rejected before entering a repository."""


class ConfigError(AuctionHouseError):
    """Configuration could not be loaded."""


class BidStateError(AuctionHouseError):
    """A bid was resolved twice."""


class AuctionStateError(AuctionHouseError):
    """An auction was closed twice or closed with pending bids."""


class AuctionIntegrityError(AuctionHouseError):
    """
    A higher bid arrived with a timestamp older than the active bid.

    Accepting it would rewrite an already committed outcome, so the whole
    cycle is aborted. Retrying without fixing the feed or clock repeats it.
    """

    def __init__(self, auction, bid, active_bid):
        self.auction = auction
        self.bid = bid
        self.active_bid = active_bid
        super().__init__(
            f"Auction {auction.auction_id} ({auction.title!r}): bid {bid.bid_id} "
            f"of {bid.amount} received at {bid.received_on_utc.isoformat()} "
            f"precedes active bid {active_bid.bid_id} received at "
            f"{active_bid.received_on_utc.isoformat()}"
        )
