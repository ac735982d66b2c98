"""
Actor key management for shipledger.

An actor's identity is the lowercase hex encoding of its Ed25519 public
key. Actors sign write requests with the matching private key; the server
derives the caller identity from a verified signature and never from an
unauthenticated field.
"""

import base64
import json
import os
import secrets
import time
from typing import Any, Dict, Optional

from nacl.signing import SigningKey, VerifyKey
from nacl.exceptions import BadSignatureError

from .hashing import canonicalize


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes."""
    return base64.b64decode(s.encode('ascii'))


def request_signing_payload(
    actor: str,
    issued_at: int,
    nonce: str,
    operation: str,
    payload: Dict[str, Any]
) -> bytes:
    """Canonical bytes an actor signs for a write request."""
    return canonicalize({
        "actor": actor,
        "issued_at": issued_at,
        "nonce": nonce,
        "operation": operation,
        "payload": payload,
    })


class ActorKey:
    """An Ed25519 signing key and the identity it proves."""

    def __init__(self, signing_key: SigningKey):
        self._sk = signing_key
        self.identity = bytes(signing_key.verify_key).hex()

    @classmethod
    def generate(cls) -> "ActorKey":
        return cls(SigningKey.generate())

    @classmethod
    def load(cls, path: str) -> "ActorKey":
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        key = cls(SigningKey(b64d(raw["private_key_b64"])))
        if raw.get("identity") and raw["identity"] != key.identity:
            raise ValueError(f"{path}: identity does not match private key")
        return key

    def save(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"identity": self.identity, "private_key_b64": b64e(bytes(self._sk))}, f, indent=2)

    def sign(self, payload: bytes) -> str:
        """Sign payload and return the base64 signature."""
        return b64e(self._sk.sign(payload).signature)

    def sign_request(
        self,
        operation: str,
        payload: Dict[str, Any],
        issued_at: Optional[int] = None,
        nonce: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Build a signed request envelope.

        Args:
            operation: register_supplier, record_receipt or witness
            payload: Operation arguments as sent in the request body
            issued_at: Unix timestamp (defaults to now)
            nonce: Unique request nonce (defaults to 16 random bytes, hex)

        Returns:
            Envelope dict ready to POST
        """
        issued_at = int(time.time()) if issued_at is None else issued_at
        nonce = nonce or secrets.token_hex(16)
        message = request_signing_payload(self.identity, issued_at, nonce, operation, payload)
        return {
            "actor": self.identity,
            "issued_at": issued_at,
            "nonce": nonce,
            "payload": payload,
            "sig_b64": self.sign(message),
        }


def verify_actor_signature(identity: str, signature_b64: str, payload: bytes) -> bool:
    """
    Verify an Ed25519 signature made by ``identity``.

    Args:
        identity: Hex-encoded public key
        signature_b64: Base64-encoded signature
        payload: The signed data

    Returns:
        True if signature is valid, False otherwise
    """
    try:
        vk = VerifyKey(bytes.fromhex(identity))
        vk.verify(payload, b64d(signature_b64))
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False
