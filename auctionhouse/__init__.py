"""
Auction House

Bid resolution and auction closing for timed auctions:
- Timestamp-ordered bid acceptance with an integrity guard
- Closing of due auctions and winner assignment
- Pluggable repositories (in-memory, SQLite)
- Synchronous event notification
"""
