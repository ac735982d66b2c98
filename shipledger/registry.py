"""
Identity registry: maps actor identities to supplier ids.

Supplier ids are sequential from 1; id 0 means "not a supplier". Only the
owner may register suppliers. Registering an identity that already has an
id maps it to a fresh id; the earlier id stays valid for records already
written under it.
"""

from typing import Optional

from .errors import LedgerError, Unauthorized
from .events import EventBus, SupplierRegistered
from .records import Supplier
from .store import LedgerStore

OWNER_DETAILS = "owner"


def _registered(supplier: Supplier) -> SupplierRegistered:
    return SupplierRegistered(supplier.id, supplier.identity, supplier.metadata)


class IdentityRegistry:

    def __init__(self, store: LedgerStore, events: EventBus):
        self.store = store
        self.events = events

    @property
    def owner(self) -> Optional[str]:
        return self.store.get_owner()

    def bootstrap(self, owner: str) -> int:
        """
        Initialize the store with ``owner`` as supplier ``"owner"``.

        Reopening a store that is already owned by ``owner`` is a no-op.

        Returns:
            The owner's current supplier id

        Raises:
            LedgerError: If the store belongs to a different owner
        """
        if not owner:
            raise ValueError("owner identity must be non-empty")
        if self.store.initialize(owner, OWNER_DETAILS, on_write=self._journal):
            supplier_id = self.store.supplier_id_for(owner)
            self.events.publish(SupplierRegistered(supplier_id, owner, OWNER_DETAILS))
            return supplier_id
        existing = self.store.get_owner()
        if existing != owner:
            raise LedgerError(f"store is already owned by {existing}")
        return self.store.supplier_id_for(owner)

    def register_supplier(self, caller: str, new_identity: str, details: str) -> int:
        """
        Register ``new_identity`` as a supplier.

        Args:
            caller: Identity making the call; must be the owner
            new_identity: Identity to register
            details: Opaque descriptive metadata

        Returns:
            The newly assigned supplier id

        Raises:
            Unauthorized: If caller is not the owner
        """
        if caller != self.owner:
            raise Unauthorized("only the owner may register suppliers")
        if not new_identity:
            raise ValueError("identity must be non-empty")
        supplier = self.store.add_supplier(new_identity, details, on_write=self._journal)
        self.events.publish(_registered(supplier))
        return supplier.id

    def _journal(self, supplier: Supplier) -> None:
        self.events.record(_registered(supplier))

    def lookup_supplier(self, identity: str) -> int:
        return self.store.supplier_id_for(identity)

    def get_supplier(self, supplier_id: int) -> Optional[Supplier]:
        return self.store.get_supplier(supplier_id)
