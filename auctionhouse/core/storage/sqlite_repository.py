from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from auctionhouse.core.errors import ValidationError
from auctionhouse.core.model import Auction, Bid, BidState, Member
from auctionhouse.core.storage.repository import Entity, MainRepository
from auctionhouse.core.storage.sqlite_adapter import SQLiteAdapter
from auctionhouse.utils.logger import get_logger
from auctionhouse.utils.timeutil import parse_timestamp, to_iso

logger = get_logger("storage.repository")


class SQLiteRepository(MainRepository):
    """
    Repository backed by a SQLite file.

    list_auctions() rebuilds a fresh object graph from the database and
    tracks it; commit() writes the mutable columns of every tracked auction
    and bid in one transaction. Mutations that are never committed are lost.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.adapter = SQLiteAdapter(self.db_path)
        self._tracked: Dict[int, Auction] = {}

        logger.info(f"SQLiteRepository initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Reads
    # =========================================================================

    def list_members(self) -> List[Member]:
        return [self._member_from_row(row) for row in self.adapter.get_member_rows()]

    def list_auctions(self) -> List[Auction]:
        members = {m.unique_id: m for m in self.list_members()}

        auctions: Dict[int, Auction] = {}
        active_bid_ids: Dict[int, Optional[int]] = {}
        for row in self.adapter.get_auction_rows():
            auction = Auction(
                title=row["title"],
                seller=members[row["seller_id"]],
                start_price=Decimal(row["start_price"]),
                start_utc=parse_timestamp(row["start_utc"]),
                end_utc=parse_timestamp(row["end_utc"]),
                current_price=Decimal(row["current_price"]),
                is_closed=bool(row["is_closed"]),
                close_utc=parse_timestamp(row["close_utc"]) if row["close_utc"] else None,
                winner=members[row["winner_id"]] if row["winner_id"] else None,
                auction_id=row["auction_id"],
            )
            auctions[auction.auction_id] = auction
            active_bid_ids[auction.auction_id] = row["active_bid_id"]

        bids: Dict[int, Bid] = {}
        for row in self.adapter.get_bid_rows():
            auction = auctions[row["auction_id"]]
            bid = Bid(
                bidder=members[row["bidder_id"]],
                amount=Decimal(row["amount"]),
                received_on_utc=parse_timestamp(row["received_utc"]),
                auction=auction,
                state=BidState(row["state"]),
                bid_id=row["bid_id"],
                sequence=row["bid_id"],
            )
            # Closed auctions refuse add_bid(); loading restores history as-is
            auction.bids.append(bid)
            bids[bid.bid_id] = bid

        for auction_id, bid_id in active_bid_ids.items():
            if bid_id is not None:
                auctions[auction_id].active_bid = bids[bid_id]

        self._tracked = dict(auctions)
        return list(auctions.values())

    # =========================================================================
    # Writes
    # =========================================================================

    def add(self, entity: Entity) -> Entity:
        if isinstance(entity, Member):
            self._ensure_member(entity)
        elif isinstance(entity, Auction):
            self._add_auction(entity)
        elif isinstance(entity, Bid):
            self._add_bid(entity)
        else:
            raise ValidationError(f"cannot store {type(entity).__name__}")
        return entity

    def commit(self) -> None:
        auction_rows = []
        bid_rows = []
        for auction in self._tracked.values():
            auction_rows.append(self._auction_state_row(auction))
            for bid in auction.bids:
                if bid.bid_id is not None:
                    bid_rows.append({"bid_id": bid.bid_id, "state": int(bid.state)})

        self.adapter.save_state(auction_rows, bid_rows)

    def _ensure_member(self, member: Member) -> None:
        row = self.adapter.get_member_row(member.unique_id)
        if not row:
            self.adapter.insert_member(member.unique_id, member.name)
        elif row["name"] != member.name:
            raise ValidationError(f"member id {member.unique_id} already taken")

    def _add_auction(self, auction: Auction) -> None:
        if auction.auction_id is not None:
            raise ValidationError(f"auction {auction.auction_id} already stored")
        self._ensure_member(auction.seller)

        row = self._auction_state_row(auction)
        row.update({
            "title": auction.title,
            "seller_id": auction.seller.unique_id,
            "start_price": str(auction.start_price),
            "start_utc": to_iso(auction.start_utc),
        })
        auction.auction_id = self.adapter.insert_auction(row)
        self._tracked[auction.auction_id] = auction
        logger.debug(f"Auction {auction.auction_id} stored: {auction.title!r}")

    def _add_bid(self, bid: Bid) -> None:
        auction = bid.auction
        if auction is None:
            raise ValidationError("bid has no auction")
        if auction.auction_id is None or not self.adapter.has_auction(auction.auction_id):
            raise ValidationError(f"auction {auction.auction_id} is not stored")
        if bid.bid_id is not None:
            raise ValidationError(f"bid {bid.bid_id} already stored")
        if auction.is_closed:
            raise ValidationError(f"auction {auction.auction_id} is closed")
        self._ensure_member(bid.bidder)

        bid.bid_id = self.adapter.insert_bid({
            "auction_id": auction.auction_id,
            "bidder_id": bid.bidder.unique_id,
            "amount": str(bid.amount),
            "received_utc": to_iso(bid.received_on_utc),
            "state": int(bid.state),
        })
        bid.sequence = bid.bid_id
        auction.add_bid(bid)
        logger.debug(f"Bid {bid.bid_id} stored on auction {auction.auction_id}: amount={bid.amount}")

    # =========================================================================
    # Row Mapping
    # =========================================================================

    @staticmethod
    def _member_from_row(row: Dict[str, Any]) -> Member:
        return Member(name=row["name"], unique_id=row["member_id"])

    @staticmethod
    def _auction_state_row(auction: Auction) -> Dict[str, Any]:
        return {
            "auction_id": auction.auction_id,
            "current_price": str(auction.current_price),
            "active_bid_id": auction.active_bid.bid_id if auction.active_bid else None,
            "is_closed": int(auction.is_closed),
            "close_utc": to_iso(auction.close_utc) if auction.close_utc else None,
            "winner_id": auction.winner.unique_id if auction.winner else None,
            "end_utc": to_iso(auction.end_utc),
        }
