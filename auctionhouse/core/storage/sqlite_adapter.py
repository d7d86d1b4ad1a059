import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Sequence

from auctionhouse.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for auction house persistence.

    Provides row-level access to three tables:
    1. members  - participant identities
    2. auctions - listing, price pointer and closing state
    3. bids     - offers and their resolution state

    Amounts are stored as decimal text, timestamps as ISO-8601 UTC text.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn_local = threading.local()

        # Ensure directory exists
        if not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # WAL lets readers in other processes see committed cycles
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
            self._conn_local.conn.execute("PRAGMA foreign_keys=ON;")
        return self._conn_local.conn

    def close(self):
        """Close the connection of the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS members (
                    member_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS auctions (
                    auction_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    seller_id TEXT NOT NULL REFERENCES members(member_id),
                    start_price TEXT NOT NULL,
                    current_price TEXT NOT NULL,
                    start_utc TEXT NOT NULL,
                    end_utc TEXT NOT NULL,
                    active_bid_id INTEGER,
                    is_closed INTEGER NOT NULL DEFAULT 0,
                    close_utc TEXT,
                    winner_id TEXT REFERENCES members(member_id)
                )
            """)

            # Bids are never deleted; state is 0=pending, 1=accepted, 2=declined
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bids (
                    bid_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    auction_id INTEGER NOT NULL REFERENCES auctions(auction_id),
                    bidder_id TEXT NOT NULL REFERENCES members(member_id),
                    amount TEXT NOT NULL,
                    received_utc TEXT NOT NULL,
                    state INTEGER NOT NULL DEFAULT 0
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_bids_auction ON bids(auction_id);")

    # =========================================================================
    # Members
    # =========================================================================

    def insert_member(self, member_id: str, name: str):
        conn = self._get_conn()
        with conn:
            conn.execute(
                "INSERT INTO members (member_id, name) VALUES (?, ?)",
                (member_id, name)
            )

    def get_member_row(self, member_id: str) -> Dict[str, Any]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM members WHERE member_id = ?", (member_id,))
        row = cursor.fetchone()
        return dict(row) if row else {}

    def get_member_rows(self) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM members ORDER BY rowid ASC")
        return [dict(row) for row in cursor]

    # =========================================================================
    # Auctions
    # =========================================================================

    def insert_auction(self, row: Dict[str, Any]) -> int:
        """Insert an auction row and return its id."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO auctions (
                    title, seller_id, start_price, current_price, start_utc,
                    end_utc, active_bid_id, is_closed, close_utc, winner_id
                ) VALUES (
                    :title, :seller_id, :start_price, :current_price, :start_utc,
                    :end_utc, :active_bid_id, :is_closed, :close_utc, :winner_id
                )
                """,
                row
            )
        return cursor.lastrowid

    def get_auction_rows(self) -> List[Dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM auctions ORDER BY auction_id ASC")
        return [dict(row) for row in cursor]

    def has_auction(self, auction_id: int) -> bool:
        conn = self._get_conn()
        cursor = conn.execute("SELECT 1 FROM auctions WHERE auction_id = ?", (auction_id,))
        return cursor.fetchone() is not None

    # =========================================================================
    # Bids
    # =========================================================================

    def insert_bid(self, row: Dict[str, Any]) -> int:
        """Insert a bid row and return its id."""
        conn = self._get_conn()
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO bids (auction_id, bidder_id, amount, received_utc, state)
                VALUES (:auction_id, :bidder_id, :amount, :received_utc, :state)
                """,
                row
            )
        return cursor.lastrowid

    def get_bid_rows(self) -> List[Dict[str, Any]]:
        """Get all bids in arrival (id) order."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT * FROM bids ORDER BY bid_id ASC")
        return [dict(row) for row in cursor]

    # =========================================================================
    # Batch Updates
    # =========================================================================

    def save_state(
        self,
        auction_rows: Sequence[Dict[str, Any]],
        bid_rows: Sequence[Dict[str, Any]],
    ):
        """
        Atomically write mutable auction and bid columns.

        Args:
            auction_rows: Dicts with auction_id and the mutable auction columns
            bid_rows: Dicts with bid_id and state
        """
        conn = self._get_conn()
        with conn:
            conn.executemany(
                """
                UPDATE auctions SET
                    current_price = :current_price,
                    active_bid_id = :active_bid_id,
                    is_closed = :is_closed,
                    close_utc = :close_utc,
                    winner_id = :winner_id,
                    end_utc = :end_utc
                WHERE auction_id = :auction_id
                """,
                auction_rows
            )
            conn.executemany(
                "UPDATE bids SET state = :state WHERE bid_id = :bid_id",
                bid_rows
            )
        logger.debug(f"Saved {len(auction_rows)} auctions, {len(bid_rows)} bids")
