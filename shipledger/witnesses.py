"""
Witness ledger: one attestation per (item, witness identity).

Anyone may witness. The named supplier id is taken as given and is not
checked against the registry, and no prior receipt is required; the pair's
witness count is bumped either way.
"""

from typing import Optional, Tuple, Union

from .errors import AlreadyWitnessed
from .events import EventBus, ShipmentWitnessed
from .hashing import EMPTY_HASH, as_hash32
from .records import WitnessRecord
from .store import LedgerStore


class WitnessLedger:

    def __init__(self, store: LedgerStore, events: EventBus):
        self.store = store
        self.events = events

    def witness(self, caller: str, item_id: int, supplier_id: int, name_hash: Union[bytes, str]) -> None:
        """
        Attest that ``supplier_id`` received ``item_id``.

        Raises:
            AlreadyWitnessed: If caller already attested for this item
            ValueError: If name_hash is not a 32-byte hash
        """
        name_hash = as_hash32(name_hash, "name_hash")
        if self.store.get_witness(item_id, caller) is not None:
            raise AlreadyWitnessed(f"{caller} already witnessed item {item_id}")

        record = WitnessRecord(item_id=item_id, witness=caller, name_hash=name_hash, supplier_id=supplier_id)
        event = ShipmentWitnessed(item_id, supplier_id, name_hash)
        if not self.store.add_witness(record, on_write=lambda _: self.events.record(event)):
            raise AlreadyWitnessed(f"{caller} already witnessed item {item_id}")

        self.events.publish(event)

    def get_witness_info(self, item_id: int, witness: str) -> Tuple[bytes, int]:
        """Get ``(name_hash, supplier_id)``, or ``(all-zero hash, 0)`` if absent."""
        record = self.store.get_witness(item_id, witness)
        if record is None:
            return EMPTY_HASH, 0
        return record.name_hash, record.supplier_id

    def get_witness(self, item_id: int, witness: str) -> Optional[WitnessRecord]:
        return self.store.get_witness(item_id, witness)
