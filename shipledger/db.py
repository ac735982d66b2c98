"""
SQLite persistence for shipledger.

Provides SQLite-backed ledger state, event log and replay-nonce storage.
Each thread gets its own connection to the database file; write
transactions start with BEGIN IMMEDIATE so conditional writes from
concurrent threads or processes serialize on the database lock.
"""

import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .events import EventLog, build_entry
from .records import Supplier, ShipmentRecord, WitnessRecord
from .security import NonceStore
from .store import LedgerStore, OnWrite

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS suppliers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        identity TEXT NOT NULL,
        metadata TEXT NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS identities (
        identity TEXT PRIMARY KEY,
        supplier_id INTEGER NOT NULL
    );""",
    """
    CREATE TABLE IF NOT EXISTS shipments (
        item_id INTEGER NOT NULL,
        supplier_id INTEGER NOT NULL,
        content_hash BLOB NOT NULL,
        hash_set INTEGER NOT NULL DEFAULT 0,
        witness_count INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (item_id, supplier_id)
    );""",
    """
    CREATE TABLE IF NOT EXISTS witnesses (
        item_id INTEGER NOT NULL,
        witness TEXT NOT NULL,
        name_hash BLOB NOT NULL,
        supplier_id INTEGER NOT NULL,
        PRIMARY KEY (item_id, witness)
    );""",
    """
    CREATE TABLE IF NOT EXISTS event_log (
        seq INTEGER PRIMARY KEY,
        event_type TEXT NOT NULL,
        payload_hash TEXT NOT NULL,
        prev_entry_hash TEXT,
        entry_hash TEXT NOT NULL,
        event_json TEXT NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_event_log_type
    ON event_log(event_type);""",
    """
    CREATE TABLE IF NOT EXISTS nonces (
        nonce TEXT PRIMARY KEY,
        expires_at INTEGER NOT NULL
    );""",
    """
    CREATE INDEX IF NOT EXISTS idx_nonces_expires
    ON nonces(expires_at);""",
]

EMPTY_BLOB = bytes(32)


class SqliteDatabase:
    """
    Thread-local connections to one SQLite file.
    Connections are reused within the same thread.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._local = threading.local()
        self._all: List[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self.init_schema()

    def connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=30, isolation_level=None, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
            with self._lock:
                self._all.append(conn)
        return conn

    @contextmanager
    def transaction(self):
        """
        Context manager for write transactions.
        Automatically commits on success, rolls back on failure.
        Nested use on the same thread joins the enclosing transaction.
        """
        conn = self.connection()
        if conn.in_transaction:
            yield conn
            return
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def init_schema(self) -> None:
        """Safe to call multiple times (uses IF NOT EXISTS)."""
        conn = self.connection()
        for statement in SCHEMA:
            conn.execute(statement)

    def close(self) -> None:
        """Close every connection opened through this database."""
        with self._lock:
            for conn in self._all:
                conn.close()
            self._all.clear()
        self._local = threading.local()


class SqliteLedgerStore(LedgerStore):
    """Ledger state persisted in SQLite."""

    def __init__(self, db: Union[SqliteDatabase, str, Path]):
        self.db = db if isinstance(db, SqliteDatabase) else SqliteDatabase(db)

    def initialize(self, owner: str, details: str, on_write: OnWrite = None) -> bool:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key='owner'").fetchone()
            if row is not None:
                return False
            conn.execute("INSERT INTO meta(key, value) VALUES('owner', ?)", (owner,))
            self._insert_supplier(conn, owner, details, on_write)
            return True

    def get_owner(self) -> Optional[str]:
        row = self.db.connection().execute("SELECT value FROM meta WHERE key='owner'").fetchone()
        return row["value"] if row else None

    def add_supplier(self, identity: str, details: str, on_write: OnWrite = None) -> Supplier:
        with self.db.transaction() as conn:
            return self._insert_supplier(conn, identity, details, on_write)

    @staticmethod
    def _insert_supplier(
        conn: sqlite3.Connection, identity: str, details: str, on_write: OnWrite
    ) -> Supplier:
        cur = conn.execute("INSERT INTO suppliers(identity, metadata) VALUES(?,?)", (identity, details))
        supplier_id = cur.lastrowid
        conn.execute(
            "INSERT OR REPLACE INTO identities(identity, supplier_id) VALUES(?,?)",
            (identity, supplier_id)
        )
        supplier = Supplier(id=supplier_id, identity=identity, metadata=details)
        if on_write is not None:
            on_write(supplier)
        return supplier

    def supplier_id_for(self, identity: str) -> int:
        row = self.db.connection().execute(
            "SELECT supplier_id FROM identities WHERE identity=?", (identity,)
        ).fetchone()
        return row["supplier_id"] if row else 0

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        row = self.db.connection().execute(
            "SELECT id, identity, metadata FROM suppliers WHERE id=?", (supplier_id,)
        ).fetchone()
        if row is None:
            return None
        return Supplier(id=row["id"], identity=row["identity"], metadata=row["metadata"])

    def get_shipment(self, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        return self._read_shipment(self.db.connection(), item_id, supplier_id)

    @staticmethod
    def _read_shipment(conn: sqlite3.Connection, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        row = conn.execute(
            "SELECT content_hash, hash_set, witness_count FROM shipments "
            "WHERE item_id=? AND supplier_id=?",
            (item_id, supplier_id)
        ).fetchone()
        if row is None:
            return None
        return ShipmentRecord(
            item_id=item_id,
            supplier_id=supplier_id,
            content_hash=bytes(row["content_hash"]),
            hash_set=bool(row["hash_set"]),
            witness_count=row["witness_count"],
        )

    def set_receipt_hash(
        self, item_id: int, supplier_id: int, content_hash: bytes, on_write: OnWrite = None
    ) -> bool:
        """Uses a conditional upsert; rowcount is 0 when a hash was already set."""
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT INTO shipments(item_id, supplier_id, content_hash, hash_set, witness_count) "
                "VALUES(?,?,?,1,0) "
                "ON CONFLICT(item_id, supplier_id) DO UPDATE "
                "SET content_hash=excluded.content_hash, hash_set=1 "
                "WHERE shipments.hash_set=0",
                (item_id, supplier_id, content_hash)
            )
            if cur.rowcount != 1:
                return False
            if on_write is not None:
                on_write(self._read_shipment(conn, item_id, supplier_id))
            return True

    def get_witness(self, item_id: int, witness: str) -> Optional[WitnessRecord]:
        row = self.db.connection().execute(
            "SELECT name_hash, supplier_id FROM witnesses WHERE item_id=? AND witness=?",
            (item_id, witness)
        ).fetchone()
        if row is None:
            return None
        return WitnessRecord(
            item_id=item_id,
            witness=witness,
            name_hash=bytes(row["name_hash"]),
            supplier_id=row["supplier_id"],
        )

    def add_witness(self, record: WitnessRecord, on_write: OnWrite = None) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO witnesses(item_id, witness, name_hash, supplier_id) VALUES(?,?,?,?)",
                (record.item_id, record.witness, record.name_hash, record.supplier_id)
            )
            if cur.rowcount != 1:
                return False
            conn.execute(
                "INSERT INTO shipments(item_id, supplier_id, content_hash, hash_set, witness_count) "
                "VALUES(?,?,?,0,1) "
                "ON CONFLICT(item_id, supplier_id) DO UPDATE "
                "SET witness_count=shipments.witness_count + 1",
                (record.item_id, record.supplier_id, EMPTY_BLOB)
            )
            if on_write is not None:
                on_write(record)
            return True

    def stats(self) -> Dict[str, int]:
        conn = self.db.connection()
        stats = {}
        for table in ['suppliers', 'shipments', 'witnesses', 'event_log', 'nonces']:
            cur = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}")
            stats[f"{table}_count"] = cur.fetchone()['cnt']
        return stats


class SqliteEventLog(EventLog):
    """
    Hash-chained event log stored in the ledger database.

    Appends made inside a SqliteLedgerStore write on the same SqliteDatabase
    join that write's transaction, so entry and state commit together.
    """

    def __init__(self, db: SqliteDatabase):
        self.db = db

    def append(self, event) -> Dict[str, Any]:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT seq, entry_hash FROM event_log ORDER BY seq DESC LIMIT 1").fetchone()
            prev = row["entry_hash"] if row else None
            seq = row["seq"] + 1 if row else 1
            entry = build_entry(seq, event, prev)
            conn.execute(
                "INSERT INTO event_log(seq, event_type, payload_hash, prev_entry_hash, entry_hash, event_json) "
                "VALUES(?,?,?,?,?,?)",
                (entry["seq"], entry["event_type"], entry["payload_hash"],
                 entry["prev_entry_hash"], entry["entry_hash"], entry["event_json"])
            )
            return entry

    def export(self) -> List[Dict[str, Any]]:
        cur = self.db.connection().execute(
            "SELECT seq, event_type, payload_hash, prev_entry_hash, entry_hash, event_json "
            "FROM event_log ORDER BY seq ASC"
        )
        return [dict(row) for row in cur.fetchall()]


class SqliteNonceStore(NonceStore):
    """Replay-protection nonces shared by every process using the database."""

    def __init__(self, db: SqliteDatabase):
        self.db = db

    def insert_nonce(self, nonce: str, expires_at: int) -> bool:
        """
        Insert a nonce for replay protection.
        Returns True if successful, False if nonce already exists.
        Also cleans up expired nonces.
        """
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM nonces WHERE expires_at < ?", (int(time.time()),))
            cur = conn.execute(
                "INSERT OR IGNORE INTO nonces(nonce, expires_at) VALUES(?,?)", (nonce, expires_at)
            )
            return cur.rowcount == 1
