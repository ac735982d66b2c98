"""
Access control for privileged ledger writes.

The guard is evaluated on every call; nothing about a caller's role is
cached between calls.
"""

from .errors import Unauthorized
from .registry import IdentityRegistry


class AccessController:

    def __init__(self, registry: IdentityRegistry):
        self.registry = registry

    def is_owner(self, caller: str) -> bool:
        owner = self.registry.owner
        return owner is not None and caller == owner

    def authorize_supplier_write(self, caller: str) -> int:
        """
        Resolve the supplier id ``caller`` writes under.

        The owner and any registered supplier pass. The id always comes from
        the registry, including for the owner, whose id is whatever the
        registry maps it to at call time.

        Returns:
            The caller's supplier id

        Raises:
            Unauthorized: If caller is neither the owner nor a supplier
        """
        supplier_id = self.registry.lookup_supplier(caller)
        if supplier_id == 0 and not self.is_owner(caller):
            raise Unauthorized("caller is not a registered supplier")
        return supplier_id
