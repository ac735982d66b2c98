"""
shipledger: authenticated shipment checkpoint ledger

Version: 0.1.0

Registered suppliers record, exactly once per item, the hash of the shipment
metadata they received. Anyone may witness a supplier's receipt, once per
item; witness counts accumulate per (item, supplier).

Usage:
    from shipledger import CheckpointLedger, content_hash

    ledger = CheckpointLedger(owner="owner-id")         # owner is supplier 1
    a = ledger.register_supplier("owner-id", "a-id", "Dock A")   # supplier 2
    h = ledger.record_receipt("a-id", 7, b"box1")
    ledger.witness("observer-id", 7, a, content_hash(b"w1"))
    ledger.get_witness_count(7, a)                      # 1
"""

__version__ = "0.1.0"

from .errors import LedgerError, Unauthorized, AlreadyRecorded, AlreadyWitnessed
from .hashing import EMPTY_HASH, content_hash
from .records import Supplier, ShipmentRecord, WitnessRecord
from .events import (
    EventBus,
    EventLog,
    InMemoryEventLog,
    SupplierRegistered,
    ShipmentReceived,
    ShipmentWitnessed,
    verify_chain,
)
from .store import LedgerStore, InMemoryLedgerStore
from .db import SqliteDatabase, SqliteLedgerStore, SqliteEventLog
from .registry import IdentityRegistry
from .access import AccessController
from .shipments import ShipmentLedger
from .witnesses import WitnessLedger
from .ledger import CheckpointLedger

__all__ = [
    "__version__",
    "LedgerError",
    "Unauthorized",
    "AlreadyRecorded",
    "AlreadyWitnessed",
    "EMPTY_HASH",
    "content_hash",
    "Supplier",
    "ShipmentRecord",
    "WitnessRecord",
    "EventBus",
    "EventLog",
    "InMemoryEventLog",
    "SupplierRegistered",
    "ShipmentReceived",
    "ShipmentWitnessed",
    "verify_chain",
    "LedgerStore",
    "InMemoryLedgerStore",
    "SqliteDatabase",
    "SqliteLedgerStore",
    "SqliteEventLog",
    "IdentityRegistry",
    "AccessController",
    "ShipmentLedger",
    "WitnessLedger",
    "CheckpointLedger",
]
