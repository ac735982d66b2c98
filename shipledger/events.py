"""
Ledger notifications.

Every committed write publishes one event:

    SupplierRegistered(id, identity, details)
    ShipmentReceived(itemID, caller, contentHash, metadata)
    ShipmentWitnessed(itemID, supplierID, nameHash)

Serialized payloads use exactly these field names; downstream indexers
depend on them. Bytes fields are lowercase hex.

The ``EventBus`` appends each event to a hash-chained ``EventLog`` in the
same write as the state change, then hands it to subscribers once the write
has committed. Log entries link as:

    payload_hash = sha256(canonical_json(event))
    entry_hash   = sha256(prev_entry_hash || payload_hash)
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from . import config
from .hashing import canonicalize, sha256_hex, chain_entry_hash

logger = logging.getLogger(__name__)


# ============================================================
# Event Types
# ============================================================

@dataclass(frozen=True)
class SupplierRegistered:
    id: int
    identity: str
    details: str

    event_type = "SupplierRegistered"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "id": self.id,
            "identity": self.identity,
            "details": self.details,
        }


@dataclass(frozen=True)
class ShipmentReceived:
    item_id: int
    caller: str
    content_hash: bytes
    metadata: bytes

    event_type = "ShipmentReceived"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "itemID": self.item_id,
            "caller": self.caller,
            "contentHash": self.content_hash.hex(),
            "metadata": self.metadata.hex(),
        }


@dataclass(frozen=True)
class ShipmentWitnessed:
    item_id: int
    supplier_id: int
    name_hash: bytes

    event_type = "ShipmentWitnessed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_type,
            "itemID": self.item_id,
            "supplierID": self.supplier_id,
            "nameHash": self.name_hash.hex(),
        }


# ============================================================
# Event Log
# ============================================================

class EventLog(ABC):
    """Append-only, hash-chained record of published events."""

    @abstractmethod
    def append(self, event) -> Dict[str, Any]:
        """Append an event and return its log entry."""
        pass

    @abstractmethod
    def export(self) -> List[Dict[str, Any]]:
        """Export all entries in sequence order."""
        pass

    def proof(self) -> Dict[str, Any]:
        entries = self.export()
        head = entries[-1]["entry_hash"] if entries else None
        return {"entries": len(entries), "head_entry_hash": head}


def build_entry(seq: int, event, prev_entry_hash: Optional[str]) -> Dict[str, Any]:
    """Build the log entry for ``event`` following ``prev_entry_hash``."""
    payload = canonicalize(event.to_dict())
    payload_hash = sha256_hex(payload)
    return {
        "seq": seq,
        "event_type": event.event_type,
        "payload_hash": payload_hash,
        "prev_entry_hash": prev_entry_hash,
        "entry_hash": chain_entry_hash(prev_entry_hash, payload_hash),
        "event_json": payload.decode("utf-8"),
    }


class InMemoryEventLog(EventLog):
    """In-memory event log for development and testing."""

    def __init__(self):
        self._entries: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(self, event) -> Dict[str, Any]:
        with self._lock:
            prev = self._entries[-1]["entry_hash"] if self._entries else None
            entry = build_entry(len(self._entries) + 1, event, prev)
            self._entries.append(entry)
            return dict(entry)

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._entries]


def verify_chain(entries: List[Dict[str, Any]]) -> Optional[int]:
    """
    Verify the hash chain of exported log entries.

    Returns:
        None if the chain is intact, otherwise the seq of the first bad entry
    """
    prev = None
    for entry in entries:
        payload_hash = sha256_hex(entry["event_json"].encode("utf-8"))
        if payload_hash != entry["payload_hash"]:
            return entry["seq"]
        if entry.get("prev_entry_hash") != prev:
            return entry["seq"]
        if entry["entry_hash"] != chain_entry_hash(prev, payload_hash):
            return entry["seq"]
        prev = entry["entry_hash"]
    return None


# ============================================================
# Event Bus
# ============================================================

Subscriber = Callable[[Any], None]


class EventBus:
    """
    Journals and publishes ledger events.

    ``record`` appends an event to the log and runs inside the write that
    produced it; its failures abandon that write. ``publish`` runs after the
    write committed and hands the event to subscribers in subscription
    order. Subscriber failures are logged and do not stop delivery to the
    others.
    """

    def __init__(self, log: Optional[EventLog] = None):
        self.log = log or InMemoryEventLog()
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Subscriber:
        with self._lock:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def record(self, event) -> Dict[str, Any]:
        return self.log.append(event)

    def publish(self, event) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("event subscriber failed for %s", event.event_type)


# ============================================================
# External Sinks
# ============================================================

class WebhookSink:
    """POSTs each event as JSON to an HTTP endpoint."""

    def __init__(self, url: str, timeout: float = 3.0):
        self.url = url
        self.timeout = timeout

    def __call__(self, event) -> None:
        import requests

        r = requests.post(self.url, json=event.to_dict(), timeout=self.timeout)
        r.raise_for_status()


class S3ObjectLockSink:
    """Writes each event JSON as a separate immutable object to an S3 bucket with Object Lock.
    Requires bucket with Object Lock enabled.
    Docs: https://docs.aws.amazon.com/AmazonS3/latest/userguide/object-lock.html
    """
    def __init__(self, bucket: str, prefix: str, retention_days: int, legal_hold: str = "OFF"):
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/"
        self.retention_days = retention_days
        self.legal_hold = legal_hold

    def __call__(self, event) -> None:
        try:
            import boto3
            from datetime import datetime, timedelta, timezone
        except ImportError as e:
            raise RuntimeError("boto3 required for S3 Object Lock event archiving. Install shipledger[s3]") from e

        body = canonicalize(event.to_dict())
        s3 = boto3.client("s3")
        key = f"{self.prefix}{event.event_type}-{sha256_hex(body)}.json"
        retain_until = datetime.now(timezone.utc) + timedelta(days=int(self.retention_days))
        s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType="application/json",
            ObjectLockMode="COMPLIANCE",
            ObjectLockRetainUntilDate=retain_until,
            ObjectLockLegalHoldStatus=self.legal_hold
        )


def get_event_sink() -> Optional[Subscriber]:
    """Build the sink selected by EVENT_SINK, or None."""
    if config.EVENT_SINK == "webhook":
        return WebhookSink(config.EVENT_WEBHOOK_URL)
    if config.EVENT_SINK == "s3_object_lock":
        return S3ObjectLockSink(
            bucket=config.S3_BUCKET,
            prefix=config.S3_PREFIX,
            retention_days=config.S3_RETENTION_DAYS,
            legal_hold=config.S3_LEGAL_HOLD
        )
    return None


def load_event_log_export(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
