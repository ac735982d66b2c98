"""
Shipment ledger: write-once receipt hashes per (item, supplier).

A supplier proves receipt of an item by recording the hash of the item's
shipment metadata. The hash for a pair is set exactly once; later attempts
are rejected, never merged or overwritten. Whether a receipt exists is
tracked by an explicit flag, so a metadata string whose digest happens to be
all zeros still counts as recorded.
"""

from typing import Optional

from .access import AccessController
from .errors import AlreadyRecorded
from .events import EventBus, ShipmentReceived
from .hashing import EMPTY_HASH, content_hash
from .records import ShipmentRecord
from .store import LedgerStore


class ShipmentLedger:

    def __init__(self, store: LedgerStore, access: AccessController, events: EventBus):
        self.store = store
        self.access = access
        self.events = events

    def record_receipt(self, caller: str, item_id: int, metadata: bytes) -> bytes:
        """
        Record that ``caller`` received ``item_id``.

        Args:
            caller: Identity making the call; owner or registered supplier
            item_id: Shipment item identifier
            metadata: Shipment metadata; only its hash is stored

        Returns:
            The 32-byte content hash of ``metadata``

        Raises:
            Unauthorized: If caller may not write receipts
            AlreadyRecorded: If a hash is already set for the pair
        """
        supplier_id = self.access.authorize_supplier_write(caller)
        if isinstance(metadata, str):
            metadata = metadata.encode("utf-8")
        digest = content_hash(metadata)

        existing = self.store.get_shipment(item_id, supplier_id)
        if existing is not None and existing.hash_set:
            raise AlreadyRecorded(f"item {item_id} already recorded by supplier {supplier_id}")

        event = ShipmentReceived(item_id, caller, digest, bytes(metadata))
        # The store re-checks atomically; a concurrent writer may have won.
        if not self.store.set_receipt_hash(
            item_id, supplier_id, digest, on_write=lambda _: self.events.record(event)
        ):
            raise AlreadyRecorded(f"item {item_id} already recorded by supplier {supplier_id}")

        self.events.publish(event)
        return digest

    def get_receipt_hash(self, item_id: int, supplier_id: int) -> bytes:
        """Get the recorded hash, or the all-zero hash if none was recorded."""
        record = self.store.get_shipment(item_id, supplier_id)
        if record is None or not record.hash_set:
            return EMPTY_HASH
        return record.content_hash

    def get_witness_count(self, item_id: int, supplier_id: int) -> int:
        record = self.store.get_shipment(item_id, supplier_id)
        return record.witness_count if record else 0

    def get_shipment(self, item_id: int, supplier_id: int) -> Optional[ShipmentRecord]:
        return self.store.get_shipment(item_id, supplier_id)
