"""
Unit tests for the auctioneer.

Tests cover:
1. Bid resolution order and price movement
2. Integrity violations on out-of-order higher bids
3. Closing of due auctions and winner assignment
4. Event delivery
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from auctionhouse.core.errors import AuctionIntegrityError
from auctionhouse.core.execution import (
    Auctioneer,
    AuctioneerListener,
    AuctionClosed,
    BidAccepted,
    BidDeclined,
    EventRecorder,
)
from auctionhouse.core.model import Auction, Bid, BidState, Member
from auctionhouse.core.storage import InMemoryRepository


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def auctioneer(repo, recorder):
    return Auctioneer(repo, listener=recorder, clock=lambda: NOW)


def create_and_store_auction(repo, start, end, start_price=50):
    seller = Member(name="Seller")
    auction = Auction(
        title="TestAuction",
        seller=seller,
        start_price=start_price,
        start_utc=start,
        end_utc=end,
    )
    repo.add(seller)
    repo.add(auction)
    return auction


def add_bid(repo, auction, amount, received, name="Bidder"):
    bidder = Member(name=name)
    repo.add(bidder)
    return repo.add(Bid(bidder=bidder, amount=amount, received_on_utc=received, auction=auction))


def add_initial_bid(repo, auction):
    return add_bid(repo, auction, auction.start_price + 10, NOW, name="Bidder1")


@pytest.fixture
def open_auction(repo):
    return create_and_store_auction(repo, NOW - timedelta(hours=1), NOW + timedelta(hours=1))


# =============================================================================
# Bid Resolution Tests
# =============================================================================


class TestBidResolution:
    """Tests for accepting and declining pending bids."""

    def test_newer_but_lower_bid_has_no_impact(self, repo, auctioneer, open_auction):
        """A later bid at or below the current price is declined."""
        add_initial_bid(repo, open_auction)
        auctioneer.run_cycle()

        late = add_bid(repo, open_auction, 51, NOW + timedelta(minutes=1), name="Bidder2")
        auctioneer.run_cycle()

        assert len(open_auction.bids) == 2
        assert open_auction.current_price == 60
        assert late.state == BidState.DECLINED

    def test_newer_and_higher_bid_raises_price(self, repo, auctioneer, open_auction):
        """A later, higher bid becomes the active bid."""
        first = add_initial_bid(repo, open_auction)
        auctioneer.run_cycle()

        second = add_bid(repo, open_auction, 70, NOW + timedelta(minutes=1), name="Bidder2")
        auctioneer.run_cycle()

        assert open_auction.current_price == 70
        assert open_auction.active_bid is second
        assert first.state == BidState.ACCEPTED
        assert second.state == BidState.ACCEPTED

    def test_older_but_lower_bid_has_no_impact(self, repo, auctioneer, open_auction):
        """An older bid below the current price is declined without error."""
        add_initial_bid(repo, open_auction)
        auctioneer.run_cycle()

        old = add_bid(repo, open_auction, 51, NOW - timedelta(minutes=10), name="Bidder2")
        auctioneer.run_cycle()

        assert open_auction.current_price == 60
        assert old.state == BidState.DECLINED

    def test_older_but_higher_bid_fails_with_integrity_error(self, repo, auctioneer, open_auction):
        """An older bid that would outbid the active bid aborts the cycle."""
        first = add_initial_bid(repo, open_auction)
        auctioneer.run_cycle()
        commits_before = repo.commit_count

        old = add_bid(repo, open_auction, 70, NOW - timedelta(minutes=10), name="Bidder2")

        with pytest.raises(AuctionIntegrityError) as exc_info:
            auctioneer.run_cycle()

        assert exc_info.value.bid is old
        assert exc_info.value.active_bid is first
        assert old.state == BidState.PENDING
        assert open_auction.current_price == 60
        assert open_auction.active_bid is first
        assert repo.commit_count == commits_before

    def test_integrity_error_leaves_other_auctions_untouched(self, repo, auctioneer, recorder):
        """No bid of the aborted cycle is resolved, in any auction."""
        healthy = create_and_store_auction(repo, NOW - timedelta(hours=1), NOW + timedelta(hours=1))
        broken = create_and_store_auction(repo, NOW - timedelta(hours=1), NOW + timedelta(hours=1))

        add_initial_bid(repo, broken)
        auctioneer.run_cycle()
        recorder.clear()

        healthy_bid = add_bid(repo, healthy, 80, NOW)
        add_bid(repo, broken, 90, NOW - timedelta(minutes=5))

        with pytest.raises(AuctionIntegrityError):
            auctioneer.run_cycle()

        assert healthy_bid.state == BidState.PENDING
        assert healthy.current_price == 50
        assert healthy.active_bid is None
        assert recorder.events == []

    def test_increasing_bids_all_accepted_in_order(self, repo, auctioneer, recorder, open_auction):
        """Strictly increasing timestamps and amounts: every bid wins in turn."""
        amounts = [55, 60, 65, 70, 75]
        bids = {}
        # Arrival order differs from timestamp order
        for i in [3, 0, 4, 1, 2]:
            bids[i] = add_bid(repo, open_auction, amounts[i], NOW + timedelta(seconds=i), name=f"B{i}")

        auctioneer.run_cycle()

        accepted = recorder.of_type(BidAccepted)
        assert [event.bid for event in accepted] == [bids[i] for i in range(5)]
        assert all(bid.state == BidState.ACCEPTED for bid in bids.values())
        assert open_auction.active_bid is bids[4]
        assert open_auction.current_price == 75

    def test_older_higher_bid_in_same_batch_is_ordered_first(self, repo, auctioneer, open_auction):
        """Within one batch bids are sorted, so an older higher bid is not a violation."""
        later_low = add_bid(repo, open_auction, 60, NOW + timedelta(seconds=1))
        earlier_high = add_bid(repo, open_auction, 70, NOW)

        auctioneer.run_cycle()

        assert earlier_high.state == BidState.ACCEPTED
        assert later_low.state == BidState.DECLINED
        assert open_auction.current_price == 70

    def test_equal_timestamps_use_arrival_order(self, repo, auctioneer, open_auction):
        """Ties on timestamp are broken by arrival."""
        high = add_bid(repo, open_auction, 70, NOW)
        low = add_bid(repo, open_auction, 60, NOW)

        auctioneer.run_cycle()

        assert high.state == BidState.ACCEPTED
        assert low.state == BidState.DECLINED
        assert open_auction.active_bid is high

    def test_bid_equal_to_current_price_is_declined(self, repo, auctioneer, open_auction):
        """Only a strictly higher amount is accepted."""
        bid = add_bid(repo, open_auction, 50, NOW)

        auctioneer.run_cycle()

        assert bid.state == BidState.DECLINED
        assert open_auction.active_bid is None
        assert open_auction.current_price == Decimal("50")

    def test_resolved_bids_are_not_revisited(self, repo, auctioneer, open_auction):
        """A second cycle without new bids decides nothing."""
        add_initial_bid(repo, open_auction)
        first = auctioneer.run_cycle()
        second = auctioneer.run_cycle()

        assert len(first.decisions) == 1
        assert second.decisions == []

    def test_current_price_tracks_max_accepted(self, repo, auctioneer, open_auction):
        """After every cycle the price equals the highest accepted amount."""
        batches = [[(55, 0), (52, 1)], [(58, 2)], [(57, 3), (90, 4)], [(89, 5)]]

        for batch in batches:
            for amount, offset in batch:
                add_bid(repo, open_auction, amount, NOW + timedelta(seconds=offset))
            auctioneer.run_cycle()

            accepted = [b.amount for b in open_auction.bids if b.state == BidState.ACCEPTED]
            assert open_auction.current_price == max(accepted)

        assert open_auction.current_price == 90

    def test_resolution_commits_once(self, repo, auctioneer, open_auction):
        """The resolver commits after processing all auctions."""
        add_initial_bid(repo, open_auction)
        auctioneer.resolve_pending_bids()

        assert repo.commit_count == 1


# =============================================================================
# Auction Closing Tests
# =============================================================================


class TestAuctionClosing:
    """Tests for closing due auctions."""

    def test_end_time_arrived_closes_auction(self, repo, auctioneer, open_auction):
        """An auction closes once its end time is reached."""
        auctioneer.run_cycle()
        assert not open_auction.is_closed

        # Turn back the time
        open_auction.end_utc = NOW

        auctioneer.run_cycle()

        assert open_auction.is_closed
        assert open_auction.close_utc == NOW

    def test_single_bidder_wins(self, repo, auctioneer, open_auction):
        """The bidder of the active bid becomes the winner."""
        auctioneer.run_cycle()

        bid = add_bid(repo, open_auction, 70, NOW, name="Bidder2")
        open_auction.end_utc = NOW

        auctioneer.run_cycle()

        assert open_auction.is_closed
        assert open_auction.winner == bid.bidder

    def test_zero_bids_closes_without_winner(self, repo, auctioneer, recorder, open_auction):
        """A bid-less auction closes unsuccessfully."""
        auctioneer.run_cycle(NOW + timedelta(hours=1))

        assert open_auction.is_closed
        assert open_auction.winner is None
        closed = recorder.of_type(AuctionClosed)
        assert len(closed) == 1
        assert closed[0].successful is False

    def test_all_bids_declined_closes_without_winner(self, repo, auctioneer, recorder, open_auction):
        """Declined-only auctions close like bid-less ones."""
        add_bid(repo, open_auction, 50, NOW)

        auctioneer.run_cycle(NOW + timedelta(hours=1))

        assert open_auction.is_closed
        assert open_auction.winner is None
        assert recorder.of_type(AuctionClosed)[0].successful is False

    def test_pending_bids_defer_closing(self, repo, auctioneer, open_auction):
        """A due auction with pending bids is skipped, then closed next cycle."""
        add_initial_bid(repo, open_auction)

        closed = auctioneer.close_due_auctions(NOW + timedelta(hours=2))

        assert closed == []
        assert not open_auction.is_closed

        auctioneer.run_cycle(NOW + timedelta(hours=2))

        assert open_auction.is_closed
        assert open_auction.winner.name == "Bidder1"

    def test_not_due_before_end_time(self, repo, auctioneer, open_auction):
        """Closing is driven by the given time only."""
        assert auctioneer.close_due_auctions(NOW + timedelta(minutes=59)) == []
        assert auctioneer.close_due_auctions(NOW + timedelta(hours=1)) == [open_auction]

    def test_closed_auction_is_not_closed_again(self, repo, auctioneer, recorder, open_auction):
        """Closing happens once per auction."""
        later = NOW + timedelta(hours=3)
        auctioneer.run_cycle(later)
        auctioneer.run_cycle(later + timedelta(hours=1))

        assert len(recorder.of_type(AuctionClosed)) == 1
        assert open_auction.close_utc == later

    def test_commit_precedes_close_event(self, repo, open_auction):
        """The closed auction is committed before the event is delivered."""
        seen = []

        class CommitProbe(AuctioneerListener):
            def on_auction_closed(self, event):
                seen.append(repo.commit_count)

        auctioneer = Auctioneer(repo, listener=CommitProbe())
        auctioneer.close_due_auctions(NOW + timedelta(hours=1))

        assert seen == [1]


# =============================================================================
# Event Tests
# =============================================================================


class TestEvents:
    """Tests for event delivery."""

    def test_bid_accepted_event_raised(self, repo, auctioneer, recorder, open_auction):
        bid = add_initial_bid(repo, open_auction)

        auctioneer.run_cycle()

        events = recorder.of_type(BidAccepted)
        assert len(events) == 1
        assert events[0].auction is open_auction
        assert events[0].bid is bid

    def test_bid_declined_event_raised(self, repo, auctioneer, recorder, open_auction):
        add_initial_bid(repo, open_auction)
        auctioneer.run_cycle()

        low = add_bid(repo, open_auction, 51, NOW + timedelta(minutes=1), name="Bidder2")
        auctioneer.run_cycle()

        events = recorder.of_type(BidDeclined)
        assert len(events) == 1
        assert events[0].auction is open_auction
        assert events[0].bid is low

    def test_auction_closed_event_raised(self, repo, auctioneer, recorder, open_auction):
        open_auction.end_utc = NOW

        auctioneer.run_cycle()

        events = recorder.of_type(AuctionClosed)
        assert len(events) == 1
        assert events[0].auction is open_auction
        assert events[0].successful is False

    def test_event_sees_applied_mutation(self, repo, open_auction):
        """Listeners observe the auction after the bid was applied."""
        prices = []

        class PriceProbe(AuctioneerListener):
            def on_bid_accepted(self, event):
                prices.append((event.auction.current_price, event.bid.state))

        add_initial_bid(repo, open_auction)
        Auctioneer(repo, listener=PriceProbe()).resolve_pending_bids()

        assert prices == [(Decimal("60"), BidState.ACCEPTED)]

    def test_bid_events_precede_close_events(self, repo, auctioneer, recorder):
        """All bid events of a cycle are delivered before any close event."""
        first = create_and_store_auction(repo, NOW - timedelta(hours=2), NOW - timedelta(hours=1))
        second = create_and_store_auction(repo, NOW - timedelta(hours=2), NOW - timedelta(hours=1))
        add_bid(repo, first, 60, NOW - timedelta(hours=1, minutes=30))
        add_bid(repo, second, 55, NOW - timedelta(hours=1, minutes=30))

        auctioneer.run_cycle()

        kinds = [type(event) for event in recorder.events]
        assert kinds == [BidAccepted, BidAccepted, AuctionClosed, AuctionClosed]


# =============================================================================
# Scenario Tests
# =============================================================================


class TestScenarios:
    """End-to-end cycles on a single auction."""

    def test_two_bids_then_close(self, repo, auctioneer, recorder):
        """Both bids accepted in order, the later one wins."""
        auction = create_and_store_auction(repo, NOW - timedelta(hours=2), NOW - timedelta(minutes=1))
        bid_a = add_bid(repo, auction, 60, NOW - timedelta(hours=1), name="A")
        bid_b = add_bid(repo, auction, 70, NOW - timedelta(hours=1) + timedelta(seconds=1), name="B")

        auctioneer.run_cycle()

        assert bid_a.state == BidState.ACCEPTED
        assert bid_b.state == BidState.ACCEPTED
        assert auction.current_price == 70
        assert auction.is_closed
        assert auction.winner == bid_b.bidder

        assert [type(e) for e in recorder.events] == [BidAccepted, BidAccepted, AuctionClosed]
        assert [e.bid for e in recorder.of_type(BidAccepted)] == [bid_a, bid_b]
        assert recorder.of_type(AuctionClosed)[0].successful is True

    def test_late_low_bid_is_declined(self, repo, auctioneer, recorder, open_auction):
        """A bid below the price set by earlier cycles is declined."""
        add_bid(repo, open_auction, 60, NOW, name="A")
        add_bid(repo, open_auction, 70, NOW + timedelta(seconds=1), name="B")
        auctioneer.run_cycle()
        recorder.clear()

        bid_c = add_bid(repo, open_auction, 51, NOW + timedelta(seconds=2), name="C")
        auctioneer.run_cycle()

        assert bid_c.state == BidState.DECLINED
        assert open_auction.current_price == 70
        assert recorder.events == [BidDeclined(auction=open_auction, bid=bid_c)]


# =============================================================================
# Cycle Tests
# =============================================================================


class TestCycle:
    """Tests for the combined work cycle."""

    def test_injected_clock_drives_closing(self, repo, recorder, open_auction):
        auctioneer = Auctioneer(repo, listener=recorder, clock=lambda: NOW + timedelta(hours=2))

        report = auctioneer.run_cycle()

        assert report.now == NOW + timedelta(hours=2)
        assert report.closed == [open_auction]

    def test_last_bid_resolved_and_closed_in_same_cycle(self, repo, auctioneer):
        auction = create_and_store_auction(repo, NOW - timedelta(hours=2), NOW - timedelta(hours=1))
        bid = add_bid(repo, auction, 65, NOW - timedelta(hours=1, minutes=5))

        report = auctioneer.run_cycle()

        assert report.accepted == [bid]
        assert report.declined == []
        assert report.closed == [auction]

    def test_naive_now_rejected(self, auctioneer):
        with pytest.raises(ValueError):
            auctioneer.close_due_auctions(datetime(2024, 5, 1, 12, 0))

    def test_stats(self, repo, auctioneer, open_auction):
        add_bid(repo, open_auction, 60, NOW)
        add_bid(repo, open_auction, 55, NOW + timedelta(seconds=1))

        auctioneer.run_cycle(NOW + timedelta(hours=1))

        assert auctioneer.stats() == {
            "cycles_run": 1,
            "bids_accepted": 1,
            "bids_declined": 1,
            "auctions_closed": 1,
        }


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
