"""
Auctioneer events and the listener port that receives them.

Listeners are injected into the Auctioneer and called synchronously, right
after the corresponding mutation is applied in memory.
"""

from dataclasses import dataclass
from typing import Iterable, List, Union

from auctionhouse.core.model import Auction, Bid
from auctionhouse.utils.logger import get_logger

logger = get_logger("events")


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class BidAccepted:
    """A bid became the auction's active bid."""
    auction: Auction
    bid: Bid


@dataclass(frozen=True)
class BidDeclined:
    """A bid did not beat the auction's current price."""
    auction: Auction
    bid: Bid


@dataclass(frozen=True)
class AuctionClosed:
    """An auction was closed; successful when it has a winner."""
    auction: Auction
    successful: bool


AuctioneerEvent = Union[BidAccepted, BidDeclined, AuctionClosed]


# =============================================================================
# Listeners
# =============================================================================


class AuctioneerListener:
    """Notification port. The base implementation ignores every event."""

    def on_bid_accepted(self, event: BidAccepted) -> None:
        pass

    def on_bid_declined(self, event: BidDeclined) -> None:
        pass

    def on_auction_closed(self, event: AuctionClosed) -> None:
        pass


class EventRecorder(AuctioneerListener):
    """Collects events in delivery order."""

    def __init__(self):
        self.events: List[AuctioneerEvent] = []

    def on_bid_accepted(self, event: BidAccepted) -> None:
        self.events.append(event)

    def on_bid_declined(self, event: BidDeclined) -> None:
        self.events.append(event)

    def on_auction_closed(self, event: AuctionClosed) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[AuctioneerEvent]:
        return [event for event in self.events if isinstance(event, event_type)]

    def clear(self) -> None:
        self.events.clear()


class LoggingListener(AuctioneerListener):
    """Writes one log line per event."""

    def on_bid_accepted(self, event: BidAccepted) -> None:
        logger.info(
            f"Bid accepted: auction={event.auction.auction_id}, bid={event.bid.bid_id}, "
            f"bidder={event.bid.bidder.name}, amount={event.bid.amount}"
        )

    def on_bid_declined(self, event: BidDeclined) -> None:
        logger.info(
            f"Bid declined: auction={event.auction.auction_id}, bid={event.bid.bid_id}, "
            f"amount={event.bid.amount}, current_price={event.auction.current_price}"
        )

    def on_auction_closed(self, event: AuctionClosed) -> None:
        winner = event.auction.winner.name if event.auction.winner else None
        logger.info(
            f"Auction closed: auction={event.auction.auction_id}, "
            f"successful={event.successful}, winner={winner}, "
            f"price={event.auction.current_price}"
        )


class ListenerGroup(AuctioneerListener):
    """Fans each event out to several listeners, in order."""

    def __init__(self, listeners: Iterable[AuctioneerListener] = ()):
        self.listeners: List[AuctioneerListener] = list(listeners)

    def add(self, listener: AuctioneerListener) -> None:
        self.listeners.append(listener)

    def on_bid_accepted(self, event: BidAccepted) -> None:
        for listener in self.listeners:
            listener.on_bid_accepted(event)

    def on_bid_declined(self, event: BidDeclined) -> None:
        for listener in self.listeners:
            listener.on_bid_declined(event)

    def on_auction_closed(self, event: AuctionClosed) -> None:
        for listener in self.listeners:
            listener.on_auction_closed(event)
