"""
CheckpointLedger: the assembled shipment checkpoint ledger.

Wires the identity registry, access controller, shipment ledger and witness
ledger over one store and one event bus, bootstraps the owner, and
serializes writes per item so subscribers see an item's events in the order
its writes committed. Items share a fixed pool of lock stripes, so writes on
items in different stripes proceed in parallel.

Usage:
    ledger = CheckpointLedger(owner="owner-identity")
    supplier_id = ledger.register_supplier("owner-identity", "acme", "Acme Freight")
    h = ledger.record_receipt("acme", 7, b"box1")
    ledger.witness("observer", 7, supplier_id, content_hash(b"w1"))
    assert ledger.get_witness_count(7, supplier_id) == 1
"""

import threading
from contextlib import contextmanager
from typing import List, Optional, Tuple, Union

from .access import AccessController
from .errors import LedgerError
from .events import EventBus, EventLog
from .logging_config import audit_log
from .records import Supplier, ShipmentRecord, WitnessRecord
from .registry import IdentityRegistry
from .shipments import ShipmentLedger
from .store import InMemoryLedgerStore, LedgerStore
from .witnesses import WitnessLedger


class StripedLocks:
    """A fixed pool of locks; every key maps to one stripe."""

    def __init__(self, stripes: int = 64):
        self._locks: List[threading.Lock] = [threading.Lock() for _ in range(max(1, stripes))]

    def lock_for(self, key: int) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]

    @contextmanager
    def hold(self, key: int):
        with self.lock_for(key):
            yield


class CheckpointLedger:

    def __init__(
        self,
        owner: str,
        store: Optional[LedgerStore] = None,
        event_log: Optional[EventLog] = None,
        events: Optional[EventBus] = None
    ):
        self.store = store or InMemoryLedgerStore()
        self.events = events or EventBus(event_log)
        self.registry = IdentityRegistry(self.store, self.events)
        self.access = AccessController(self.registry)
        self.shipments = ShipmentLedger(self.store, self.access, self.events)
        self.witnesses = WitnessLedger(self.store, self.events)
        self.item_locks = StripedLocks()
        self.owner_supplier_id = self.registry.bootstrap(owner)

    @property
    def owner(self) -> str:
        return self.registry.owner

    # ============================================================
    # Writes
    # ============================================================

    def register_supplier(self, caller: str, identity: str, details: str) -> int:
        try:
            supplier_id = self.registry.register_supplier(caller, identity, details)
        except LedgerError as e:
            audit_log.write_rejected("register_supplier", caller, e.kind, e.message)
            raise
        audit_log.supplier_registered(supplier_id, identity, caller)
        return supplier_id

    def record_receipt(self, caller: str, item_id: int, metadata: Union[bytes, str]) -> bytes:
        with self.item_locks.hold(item_id):
            try:
                digest = self.shipments.record_receipt(caller, item_id, metadata)
            except LedgerError as e:
                audit_log.write_rejected("record_receipt", caller, e.kind, e.message)
                raise
        audit_log.receipt_recorded(item_id, caller, digest.hex())
        return digest

    def witness(self, caller: str, item_id: int, supplier_id: int, name_hash: Union[bytes, str]) -> None:
        with self.item_locks.hold(item_id):
            try:
                self.witnesses.witness(caller, item_id, supplier_id, name_hash)
            except LedgerError as e:
                audit_log.write_rejected("witness", caller, e.kind, e.message)
                raise
        audit_log.witness_recorded(item_id, caller, supplier_id)

    # ============================================================
    # Reads
    # ============================================================

    def lookup_supplier(self, identity: str) -> int:
        return self.registry.lookup_supplier(identity)

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        return self.registry.get_supplier(supplier_id)

    def get_receipt_hash(self, item_id: int, supplier_id: int) -> bytes:
        return self.shipments.get_receipt_hash(item_id, supplier_id)

    def get_witness_count(self, item_id: int, supplier_id: int) -> int:
        return self.shipments.get_witness_count(item_id, supplier_id)

    def get_shipment(self, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        return self.shipments.get_shipment(item_id, supplier_id)

    def get_witness_info(self, item_id: int, witness: str) -> Tuple[bytes, int]:
        return self.witnesses.get_witness_info(item_id, witness)

    def get_witness(self, item_id: int, witness: str) -> Optional[WitnessRecord]:
        return self.witnesses.get_witness(item_id, witness)
