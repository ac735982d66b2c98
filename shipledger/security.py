"""
Security module for shipledger.

Provides input validation, signed request verification and replay
protection for the HTTP surface.
"""

import re
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .keys import request_signing_payload, verify_actor_signature


# ============================================================
# Input Validation
# ============================================================

HEX_PATTERN = re.compile(r'^[a-fA-F0-9]+$')
IDENTITY_PATTERN = re.compile(r'^[a-f0-9]{64}$')
NONCE_PATTERN = re.compile(r'^[A-Za-z0-9_-]{8,128}$')

# Item and supplier ids are stored as SQLite INTEGER
MAX_ID = 2 ** 63 - 1


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_hex(value: str, field_name: str, expected_length: Optional[int] = None) -> str:
    """
    Validate that a string is valid hexadecimal.

    Args:
        value: The string to validate
        field_name: Name of the field (for error messages)
        expected_length: Expected length of the hex string (optional)

    Returns:
        The validated (lowercased) hex string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.lower().strip()
    if value.startswith("0x"):
        value = value[2:]

    if not value:
        raise ValidationError(field_name, "cannot be empty")

    if not HEX_PATTERN.match(value):
        raise ValidationError(field_name, "must be valid hexadecimal")

    if expected_length and len(value) != expected_length:
        raise ValidationError(field_name, f"must be {expected_length} characters")

    return value


def validate_hash32(value: str, field_name: str) -> str:
    """Validate a 32-byte hash given as 64 hex characters."""
    return validate_hex(value, field_name, expected_length=64)


def validate_identity(value: str, field_name: str = "identity") -> str:
    """Validate an actor identity (hex Ed25519 public key)."""
    value = validate_hex(value, field_name, expected_length=64)
    if not IDENTITY_PATTERN.match(value):
        raise ValidationError(field_name, "invalid format")
    return value


# ============================================================
# Replay Protection
# ============================================================

class NonceStore(ABC):

    @abstractmethod
    def insert_nonce(self, nonce: str, expires_at: int) -> bool:
        """Returns True on first use, False if the nonce was seen before."""
        pass


class InMemoryNonceStore(NonceStore):
    """Per-process nonce store; expired nonces are dropped on insert."""

    def __init__(self):
        self._nonces: Dict[str, int] = {}
        self._lock = threading.Lock()

    def insert_nonce(self, nonce: str, expires_at: int) -> bool:
        now = int(time.time())
        with self._lock:
            expired = [n for n, exp in self._nonces.items() if exp < now]
            for n in expired:
                del self._nonces[n]
            if nonce in self._nonces:
                return False
            self._nonces[nonce] = expires_at
            return True


# ============================================================
# Signed Requests
# ============================================================

class AuthenticationError(Exception):
    """Raised when a signed request cannot be attributed to its actor."""
    def __init__(self, code: str):
        self.code = code
        super().__init__(code)


class RequestVerifier:
    """
    Verifies signed write envelopes and returns the proven caller identity.

    Checks, in order: actor format, signature, freshness, nonce reuse.
    """

    def __init__(self, nonces: NonceStore, max_age_seconds: int = 300, max_skew_seconds: int = 30):
        self.nonces = nonces
        self.max_age_seconds = max_age_seconds
        self.max_skew_seconds = max_skew_seconds

    def verify(self, envelope: Dict[str, Any], operation: str, now: Optional[int] = None) -> str:
        now = int(time.time()) if now is None else now
        try:
            actor = validate_identity(envelope.get("actor", ""), "actor")
        except ValidationError:
            raise AuthenticationError("INVALID_ACTOR")

        nonce = envelope.get("nonce", "")
        if not isinstance(nonce, str) or not NONCE_PATTERN.match(nonce):
            raise AuthenticationError("INVALID_NONCE")

        issued_at = envelope.get("issued_at")
        if not isinstance(issued_at, int) or isinstance(issued_at, bool) or issued_at <= 0:
            raise AuthenticationError("MISSING_ISSUED_AT")

        message = request_signing_payload(actor, issued_at, nonce, operation, envelope.get("payload") or {})
        if not verify_actor_signature(actor, envelope.get("sig_b64") or "", message):
            raise AuthenticationError("INVALID_SIGNATURE")

        if issued_at > now + self.max_skew_seconds:
            raise AuthenticationError("STALE_REQUEST")
        if (now - issued_at) > (self.max_age_seconds + self.max_skew_seconds):
            raise AuthenticationError("STALE_REQUEST")

        # Nonces are scoped per actor.
        expires_at = issued_at + self.max_age_seconds + self.max_skew_seconds
        if not self.nonces.insert_nonce(f"{actor}:{nonce}", expires_at):
            raise AuthenticationError("REPLAYED_NONCE")

        return actor
