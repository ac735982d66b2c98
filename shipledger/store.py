"""
Ledger state containers.

A ``LedgerStore`` owns the three maps the ledger is built on:

    identity            -> supplier id
    (item, supplier)    -> ShipmentRecord
    (item, witness)     -> WitnessRecord

Components receive a store explicitly; nothing in the package keeps ledger
state in module globals, so independent ledgers can coexist in one process.

Implementations must make ``set_receipt_hash`` and ``add_witness``
conditional and atomic: of any number of concurrent calls for the same key,
exactly one may return True.

Every write accepts an ``on_write`` callback that runs inside the write with
the record being written. If it raises, the write is abandoned and the
exception propagates; the ledger journals its events this way so a state
change and its event log entry land together or not at all.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple

from .records import Supplier, ShipmentRecord, WitnessRecord

OnWrite = Optional[Callable[[Any], None]]


class LedgerStore(ABC):
    """Abstract interface for persisted ledger state."""

    @abstractmethod
    def initialize(self, owner: str, details: str, on_write: OnWrite = None) -> bool:
        """
        Record the owner and register it as the first supplier.

        ``on_write`` receives the owner's Supplier record.

        Returns:
            True if the store was initialized by this call
            False if it already had an owner (nothing is changed)
        """
        pass

    @abstractmethod
    def get_owner(self) -> Optional[str]:
        """Get the owner identity, or None before initialization."""
        pass

    @abstractmethod
    def add_supplier(self, identity: str, details: str, on_write: OnWrite = None) -> Supplier:
        """Assign the next sequential supplier id to ``identity``."""
        pass

    @abstractmethod
    def supplier_id_for(self, identity: str) -> int:
        """Get the supplier id currently mapped to ``identity`` (0 if none)."""
        pass

    @abstractmethod
    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        pass

    @abstractmethod
    def get_shipment(self, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        pass

    @abstractmethod
    def set_receipt_hash(
        self, item_id: int, supplier_id: int, content_hash: bytes, on_write: OnWrite = None
    ) -> bool:
        """
        Set the receipt hash for a pair unless one is already set.

        Returns:
            True if the hash was written
            False if the pair already had a hash
        """
        pass

    @abstractmethod
    def get_witness(self, item_id: int, witness: str) -> Optional[WitnessRecord]:
        pass

    @abstractmethod
    def add_witness(self, record: WitnessRecord, on_write: OnWrite = None) -> bool:
        """
        Store a witness record and bump the named pair's witness count.

        Returns:
            True if the attestation was stored
            False if ``record.witness`` already attested for the item
        """
        pass

    @abstractmethod
    def stats(self) -> Dict[str, int]:
        """Get record counts for monitoring."""
        pass


class InMemoryLedgerStore(LedgerStore):
    """
    In-memory ledger state for development and testing.

    Not persistent across restarts. Use SqliteLedgerStore when state must
    survive the process. ``on_write`` callbacks run under the store lock
    before anything is changed.
    """

    def __init__(self):
        self._owner: Optional[str] = None
        self._next_id = 1
        self._identities: Dict[str, int] = {}
        self._suppliers: Dict[int, Supplier] = {}
        self._shipments: Dict[Tuple[int, int], ShipmentRecord] = {}
        self._witnesses: Dict[Tuple[int, str], WitnessRecord] = {}
        self._lock = threading.Lock()

    def initialize(self, owner: str, details: str, on_write: OnWrite = None) -> bool:
        with self._lock:
            if self._owner is not None:
                return False
            self._add_supplier_locked(owner, details, on_write)
            self._owner = owner
            return True

    def get_owner(self) -> Optional[str]:
        with self._lock:
            return self._owner

    def add_supplier(self, identity: str, details: str, on_write: OnWrite = None) -> Supplier:
        with self._lock:
            return self._add_supplier_locked(identity, details, on_write)

    def _add_supplier_locked(self, identity: str, details: str, on_write: OnWrite) -> Supplier:
        supplier = Supplier(id=self._next_id, identity=identity, metadata=details)
        if on_write is not None:
            on_write(supplier)
        self._next_id += 1
        self._suppliers[supplier.id] = supplier
        self._identities[identity] = supplier.id
        return supplier

    def supplier_id_for(self, identity: str) -> int:
        with self._lock:
            return self._identities.get(identity, 0)

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        with self._lock:
            return self._suppliers.get(supplier_id)

    def get_shipment(self, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        with self._lock:
            return self._shipments.get((item_id, supplier_id))

    def set_receipt_hash(
        self, item_id: int, supplier_id: int, content_hash: bytes, on_write: OnWrite = None
    ) -> bool:
        key = (item_id, supplier_id)
        with self._lock:
            current = self._shipments.get(key)
            if current is not None and current.hash_set:
                return False
            record = ShipmentRecord(
                item_id=item_id,
                supplier_id=supplier_id,
                content_hash=content_hash,
                hash_set=True,
                witness_count=current.witness_count if current else 0,
            )
            if on_write is not None:
                on_write(record)
            self._shipments[key] = record
            return True

    def get_witness(self, item_id: int, witness: str) -> Optional[WitnessRecord]:
        with self._lock:
            return self._witnesses.get((item_id, witness))

    def add_witness(self, record: WitnessRecord, on_write: OnWrite = None) -> bool:
        wkey = (record.item_id, record.witness)
        skey = (record.item_id, record.supplier_id)
        with self._lock:
            if wkey in self._witnesses:
                return False
            current = self._shipments.get(skey) or ShipmentRecord(
                item_id=record.item_id, supplier_id=record.supplier_id
            )
            if on_write is not None:
                on_write(record)
            self._shipments[skey] = ShipmentRecord(
                item_id=current.item_id,
                supplier_id=current.supplier_id,
                content_hash=current.content_hash,
                hash_set=current.hash_set,
                witness_count=current.witness_count + 1,
            )
            self._witnesses[wkey] = record
            return True

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "suppliers_count": len(self._suppliers),
                "shipments_count": len(self._shipments),
                "witnesses_count": len(self._witnesses),
            }
