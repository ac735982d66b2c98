"""
Ledger record types.

Records are snapshots handed out by stores; mutating a returned record never
changes ledger state.
"""

from dataclasses import dataclass
from typing import Any, Dict

from .hashing import EMPTY_HASH


@dataclass(frozen=True)
class Supplier:
    """An identity authorized to record receipts."""
    id: int
    identity: str
    metadata: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "identity": self.identity, "metadata": self.metadata}


@dataclass(frozen=True)
class ShipmentRecord:
    """
    Receipt state for one (item, supplier) pair.

    ``hash_set`` tracks whether the receipt was recorded; a record can exist
    with only a witness count when witnesses named the pair first.
    """
    item_id: int
    supplier_id: int
    content_hash: bytes = EMPTY_HASH
    hash_set: bool = False
    witness_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "supplier_id": self.supplier_id,
            "content_hash": self.content_hash.hex(),
            "recorded": self.hash_set,
            "witness_count": self.witness_count,
        }


@dataclass(frozen=True)
class WitnessRecord:
    """One attestation by ``witness`` for ``item_id``."""
    item_id: int
    witness: str
    name_hash: bytes
    supplier_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "witness": self.witness,
            "name_hash": self.name_hash.hex(),
            "supplier_id": self.supplier_id,
        }
