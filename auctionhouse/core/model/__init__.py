"""Auction data model"""
from auctionhouse.core.model.member import Member
from auctionhouse.core.model.bid import Bid, BidState
from auctionhouse.core.model.auction import Auction

__all__ = [
    "Member",
    "Bid",
    "BidState",
    "Auction",
]
