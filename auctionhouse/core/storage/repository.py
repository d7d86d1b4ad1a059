"""
Repository interface and the in-memory implementation.

The auctioneer only needs list_auctions() and commit(); add() and
list_members() exist for seeding and inspection.
"""

from abc import ABC, abstractmethod
from typing import List, Union

from auctionhouse.core.errors import ValidationError
from auctionhouse.core.model import Auction, Bid, Member
from auctionhouse.utils.logger import get_logger

logger = get_logger("storage.memory")

Entity = Union[Member, Auction, Bid]


class MainRepository(ABC):
    """Collaborator the auctioneer reads auctions from and commits through."""

    @abstractmethod
    def list_auctions(self) -> List[Auction]:
        """All known auctions, fresh as of call time."""

    @abstractmethod
    def list_members(self) -> List[Member]:
        """All known members."""

    @abstractmethod
    def add(self, entity: Entity) -> Entity:
        """Store a new member, auction or bid."""

    @abstractmethod
    def commit(self) -> None:
        """Persist every mutation made to returned objects since the last commit."""

    def get_auction(self, auction_id: int) -> Auction:
        for auction in self.list_auctions():
            if auction.auction_id == auction_id:
                return auction
        raise KeyError(f"auction {auction_id} not found")

    def get_member(self, unique_id: str) -> Member:
        for member in self.list_members():
            if member.unique_id == unique_id:
                return member
        raise KeyError(f"member {unique_id} not found")


class InMemoryRepository(MainRepository):
    """
    Repository whose objects are the store.

    Mutations are visible immediately; commit() only counts calls so tests
    can assert when the auctioneer committed.
    """

    def __init__(self):
        self._members: List[Member] = []
        self._auctions: List[Auction] = []
        self._next_auction_id = 1
        self._next_bid_id = 1
        self.commit_count = 0

    def list_auctions(self) -> List[Auction]:
        return list(self._auctions)

    def list_members(self) -> List[Member]:
        return list(self._members)

    def add(self, entity: Entity) -> Entity:
        if isinstance(entity, Member):
            self._add_member(entity)
        elif isinstance(entity, Auction):
            self._add_auction(entity)
        elif isinstance(entity, Bid):
            self._add_bid(entity)
        else:
            raise ValidationError(f"cannot store {type(entity).__name__}")
        return entity

    def commit(self) -> None:
        self.commit_count += 1
        logger.debug(f"Commit #{self.commit_count}")

    def _add_member(self, member: Member) -> None:
        for known in self._members:
            if known.unique_id == member.unique_id:
                if known == member:
                    return
                raise ValidationError(f"member id {member.unique_id} already taken")
        self._members.append(member)

    def _add_auction(self, auction: Auction) -> None:
        if any(known is auction for known in self._auctions):
            raise ValidationError(f"auction {auction.auction_id} already stored")
        self._add_member(auction.seller)
        if auction.auction_id is None:
            auction.auction_id = self._next_auction_id
            self._next_auction_id += 1
        self._auctions.append(auction)

    def _add_bid(self, bid: Bid) -> None:
        auction = bid.auction
        if auction is None:
            raise ValidationError("bid has no auction")
        if not any(known is auction for known in self._auctions):
            raise ValidationError(f"auction {auction.auction_id} is not stored")
        if any(known is bid for known in auction.bids):
            raise ValidationError(f"bid {bid.bid_id} already stored")
        if auction.is_closed:
            raise ValidationError(f"auction {auction.auction_id} is closed")

        self._add_member(bid.bidder)
        bid.bid_id = self._next_bid_id
        bid.sequence = self._next_bid_id
        self._next_bid_id += 1
        auction.add_bid(bid)
        logger.debug(f"Bid {bid.bid_id} stored on auction {auction.auction_id}: amount={bid.amount}")
