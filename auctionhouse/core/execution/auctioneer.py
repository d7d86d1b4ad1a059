"""
Auctioneer - bid resolution and auction closing.

One work cycle runs two phases, strictly in sequence:
1. Bid resolution: pending bids of every auction are processed oldest
   first; a bid above the current price becomes the active bid, any other
   bid is declined. Then the repository commits.
2. Auction closing: every open auction whose end time has passed and that
   has no pending bids is closed, its winner taken from the active bid.
   Each closed auction is committed before its event is delivered.

A higher bid that is older than the active bid would rewrite a committed
outcome. It raises AuctionIntegrityError and aborts the cycle before any
bid of that cycle is mutated.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from auctionhouse.core.errors import AuctionIntegrityError
from auctionhouse.core.execution.events import (
    AuctionClosed,
    AuctioneerListener,
    BidAccepted,
    BidDeclined,
)
from auctionhouse.core.model import Auction, Bid
from auctionhouse.core.storage import MainRepository
from auctionhouse.utils.logger import get_logger
from auctionhouse.utils.timeutil import ensure_utc, utc_now

logger = get_logger("auctioneer")


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class BidDecision:
    """Outcome for a single pending bid."""
    auction: Auction
    bid: Bid
    accepted: bool


@dataclass
class CycleReport:
    """What one work cycle did."""
    now: datetime
    decisions: List[BidDecision] = field(default_factory=list)
    closed: List[Auction] = field(default_factory=list)

    @property
    def accepted(self) -> List[Bid]:
        return [d.bid for d in self.decisions if d.accepted]

    @property
    def declined(self) -> List[Bid]:
        return [d.bid for d in self.decisions if not d.accepted]


# =============================================================================
# Auctioneer
# =============================================================================


class Auctioneer:
    """
    Resolves bids and closes due auctions against a repository.

    Not reentrant: one cycle must finish before the next starts.
    """

    def __init__(
        self,
        repository: MainRepository,
        listener: Optional[AuctioneerListener] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.listener = listener or AuctioneerListener()
        self._clock = clock or utc_now

        self.cycles_run = 0
        self.bids_accepted = 0
        self.bids_declined = 0
        self.auctions_closed = 0

    def run_cycle(self, now: Optional[datetime] = None) -> CycleReport:
        """
        Resolve pending bids, then close due auctions.

        Args:
            now: Closing time; the injected clock is read when omitted

        Returns:
            CycleReport with every bid decision and closed auction
        """
        decisions = self.resolve_pending_bids()

        if now is None:
            now = self._clock()
        closed = self.close_due_auctions(now)

        self.cycles_run += 1
        return CycleReport(now=ensure_utc(now), decisions=decisions, closed=closed)

    # =========================================================================
    # Bid Resolution
    # =========================================================================

    def resolve_pending_bids(self) -> List[BidDecision]:
        """
        Accept or decline every pending bid and commit.

        Raises:
            AuctionIntegrityError: a higher bid is older than the active bid
        """
        decisions = self._plan_resolution(self.repository.list_auctions())

        for decision in decisions:
            auction, bid = decision.auction, decision.bid
            if decision.accepted:
                auction.apply_accepted(bid)
                self.bids_accepted += 1
                logger.debug(f"Auction {auction.auction_id}: bid {bid.bid_id} accepted at {bid.amount}")
                self.listener.on_bid_accepted(BidAccepted(auction=auction, bid=bid))
            else:
                auction.apply_declined(bid)
                self.bids_declined += 1
                logger.debug(
                    f"Auction {auction.auction_id}: bid {bid.bid_id} declined "
                    f"({bid.amount} <= {auction.current_price})"
                )
                self.listener.on_bid_declined(BidDeclined(auction=auction, bid=bid))

        self.repository.commit()

        if decisions:
            logger.info(f"Resolved {len(decisions)} bids")
        return decisions

    def _plan_resolution(self, auctions: List[Auction]) -> List[BidDecision]:
        """
        Decide every pending bid without touching the model.

        Tracks a tentative price and active bid per auction so the ordering
        guard sees bids accepted earlier in the same pass.
        """
        decisions = []

        for auction in auctions:
            pending = auction.pending_bids()
            if not pending:
                continue

            price = auction.current_price
            active = auction.active_bid

            for bid in pending:
                if bid.amount > price:
                    if active is not None and bid.received_on_utc < active.received_on_utc:
                        logger.error(
                            f"Integrity violation on auction {auction.auction_id}: "
                            f"bid {bid.bid_id} predates active bid {active.bid_id}"
                        )
                        raise AuctionIntegrityError(auction, bid, active)

                    price = bid.amount
                    active = bid
                    decisions.append(BidDecision(auction=auction, bid=bid, accepted=True))
                else:
                    decisions.append(BidDecision(auction=auction, bid=bid, accepted=False))

        return decisions

    # =========================================================================
    # Auction Closing
    # =========================================================================

    def close_due_auctions(self, now: datetime) -> List[Auction]:
        """
        Close every open auction whose end time is at or before now.

        Auctions that still hold pending bids are skipped until a later cycle.

        Args:
            now: Current time (timezone-aware)

        Returns:
            Auctions closed by this call
        """
        now = ensure_utc(now)

        due = []
        for auction in self.repository.list_auctions():
            if auction.is_due(now):
                due.append(auction)

        closed = []
        for auction in due:
            if auction.has_pending_bids():
                logger.debug(f"Auction {auction.auction_id} is due but has pending bids, deferring")
                continue

            auction.close(now)
            self.repository.commit()
            self.auctions_closed += 1

            logger.info(
                f"Auction {auction.auction_id} closed: "
                f"winner={auction.winner.unique_id if auction.winner else None}, "
                f"price={auction.current_price}"
            )
            self.listener.on_auction_closed(
                AuctionClosed(auction=auction, successful=auction.successful)
            )
            closed.append(auction)

        return closed

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self) -> Dict[str, int]:
        """Get counters accumulated over this auctioneer's lifetime."""
        return {
            "cycles_run": self.cycles_run,
            "bids_accepted": self.bids_accepted,
            "bids_declined": self.bids_declined,
            "auctions_closed": self.auctions_closed,
        }
