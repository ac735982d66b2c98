"""
Hashing and canonical encoding for the shipment ledger.

Content hashes are SHA-256 digests (32 raw bytes). Serialized forms use
lowercase hexadecimal without a prefix.
"""

import hashlib
import json
from typing import Any, Optional, Union

HASH_SIZE = 32

# All-zero digest returned by reads for an unset hash.
EMPTY_HASH = bytes(HASH_SIZE)


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.

    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def content_hash(data: Union[bytes, str]) -> bytes:
    """Compute the 32-byte content hash of shipment metadata."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def as_hash32(value: Union[bytes, bytearray, str], field_name: str = "hash") -> bytes:
    """
    Coerce a value to a 32-byte hash.

    Accepts raw bytes of the right size or a 64-character hex string
    (an optional ``0x`` prefix is stripped).

    Raises:
        ValueError: If the value is not a 32-byte hash
    """
    if isinstance(value, str):
        text = value[2:] if value.startswith("0x") else value
        try:
            value = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"{field_name} must be hexadecimal") from None
    if not isinstance(value, (bytes, bytearray)):
        raise ValueError(f"{field_name} must be bytes or a hex string")
    if len(value) != HASH_SIZE:
        raise ValueError(f"{field_name} must be {HASH_SIZE} bytes")
    return bytes(value)


def chain_entry_hash(prev_entry_hash: Optional[str], payload_hash: str) -> str:
    """Link a log entry to its predecessor: sha256(prev || payload_hash)."""
    data = (prev_entry_hash or "").encode('utf-8') + payload_hash.encode('utf-8')
    return sha256_hex(data)
