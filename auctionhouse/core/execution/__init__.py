"""Bid resolution and auction closing"""
from auctionhouse.core.execution.events import (
    AuctionClosed,
    AuctioneerEvent,
    AuctioneerListener,
    BidAccepted,
    BidDeclined,
    EventRecorder,
    ListenerGroup,
    LoggingListener,
)
from auctionhouse.core.execution.auctioneer import (
    Auctioneer,
    BidDecision,
    CycleReport,
)

__all__ = [
    "Auctioneer",
    "BidDecision",
    "CycleReport",
    "AuctioneerListener",
    "AuctioneerEvent",
    "BidAccepted",
    "BidDeclined",
    "AuctionClosed",
    "EventRecorder",
    "ListenerGroup",
    "LoggingListener",
]
