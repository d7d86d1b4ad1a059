"""
Persistent Storage Module.

Repositories the auctioneer reads auctions from and commits through:
- InMemoryRepository (objects are the store)
- SQLiteRepository (file-backed, atomic commits)
"""

from auctionhouse.core.storage.repository import InMemoryRepository, MainRepository
from auctionhouse.core.storage.sqlite_adapter import SQLiteAdapter
from auctionhouse.core.storage.sqlite_repository import SQLiteRepository

__all__ = ["MainRepository", "InMemoryRepository", "SQLiteAdapter", "SQLiteRepository"]
