"""
Error kinds for the shipment checkpoint ledger.

Every rejected write surfaces one of these to the caller. A rejected call
never leaves partial state behind.
"""


class LedgerError(Exception):
    """Base class for ledger rejections."""

    kind = "LEDGER_ERROR"

    def __init__(self, message: str = ""):
        self.message = message or self.kind
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.kind, "detail": self.message}


class Unauthorized(LedgerError):
    """Caller lacks the role required for the operation."""

    kind = "UNAUTHORIZED"


class AlreadyRecorded(LedgerError):
    """A receipt hash is already set for this (item, supplier) pair."""

    kind = "ALREADY_RECORDED"


class AlreadyWitnessed(LedgerError):
    """This identity already attested for this item."""

    kind = "ALREADY_WITNESSED"
