"""
Shipment ledger tests: write-once receipts and access control.
"""

import unittest
from unittest import mock

from shipledger import (
    AlreadyRecorded,
    CheckpointLedger,
    EMPTY_HASH,
    ShipmentReceived,
    Unauthorized,
    content_hash,
)

OWNER = "owner"


class TestRecordReceipt(unittest.TestCase):

    def setUp(self):
        self.ledger = CheckpointLedger(OWNER)
        self.alice = self.ledger.register_supplier(OWNER, "alice", "Dock A")

    def test_record_returns_content_hash(self):
        h = self.ledger.record_receipt("alice", 7, b"box1")
        self.assertEqual(h, content_hash(b"box1"))
        self.assertEqual(len(h), 32)
        self.assertEqual(self.ledger.get_receipt_hash(7, self.alice), h)

    def test_text_metadata_hashed_as_utf8(self):
        h = self.ledger.record_receipt("alice", 7, "palette ü")
        self.assertEqual(h, content_hash("palette ü".encode("utf-8")))

    def test_second_record_rejected_and_hash_unchanged(self):
        h = self.ledger.record_receipt("alice", 7, b"box1")
        with self.assertRaises(AlreadyRecorded):
            self.ledger.record_receipt("alice", 7, b"box1-dup")
        with self.assertRaises(AlreadyRecorded):
            self.ledger.record_receipt("alice", 7, b"box1")
        self.assertEqual(self.ledger.get_receipt_hash(7, self.alice), h)

    def test_pairs_are_independent(self):
        bob = self.ledger.register_supplier(OWNER, "bob", "Dock B")
        h7 = self.ledger.record_receipt("alice", 7, b"a")
        h8 = self.ledger.record_receipt("alice", 8, b"b")
        hb = self.ledger.record_receipt("bob", 7, b"c")
        self.assertEqual(self.ledger.get_receipt_hash(7, self.alice), h7)
        self.assertEqual(self.ledger.get_receipt_hash(8, self.alice), h8)
        self.assertEqual(self.ledger.get_receipt_hash(7, bob), hb)

    def test_stranger_unauthorized(self):
        with self.assertRaises(Unauthorized):
            self.ledger.record_receipt("stranger", 7, b"box1")
        self.assertIsNone(self.ledger.get_shipment(7, 0))

    def test_owner_records_under_bootstrap_id(self):
        h = self.ledger.record_receipt(OWNER, 7, b"hub")
        self.assertEqual(self.ledger.get_receipt_hash(7, 1), h)

    def test_reregistered_supplier_writes_under_new_id(self):
        self.ledger.record_receipt("alice", 7, b"old")
        new_id = self.ledger.register_supplier(OWNER, "alice", "v2")
        h = self.ledger.record_receipt("alice", 7, b"new")
        self.assertEqual(self.ledger.get_receipt_hash(7, new_id), h)
        self.assertEqual(self.ledger.get_receipt_hash(7, self.alice), content_hash(b"old"))

    def test_unset_reads(self):
        self.assertEqual(self.ledger.get_receipt_hash(99, self.alice), EMPTY_HASH)
        self.assertEqual(self.ledger.get_witness_count(99, self.alice), 0)
        self.assertIsNone(self.ledger.get_shipment(99, self.alice))

    def test_record_preserves_existing_witness_count(self):
        self.ledger.witness("w1", 7, self.alice, content_hash(b"n1"))
        self.ledger.witness("w2", 7, self.alice, content_hash(b"n2"))
        self.ledger.record_receipt("alice", 7, b"box1")
        record = self.ledger.get_shipment(7, self.alice)
        self.assertTrue(record.hash_set)
        self.assertEqual(record.witness_count, 2)

    def test_event_carries_caller_and_metadata(self):
        seen = []
        self.ledger.events.subscribe(seen.append)
        h = self.ledger.record_receipt("alice", 7, b"box1")
        self.assertEqual(seen, [ShipmentReceived(7, "alice", h, b"box1")])

    def test_rejected_write_emits_nothing(self):
        self.ledger.record_receipt("alice", 7, b"box1")
        before = len(self.ledger.events.log.export())
        with self.assertRaises(AlreadyRecorded):
            self.ledger.record_receipt("alice", 7, b"again")
        with self.assertRaises(Unauthorized):
            self.ledger.record_receipt("stranger", 7, b"x")
        self.assertEqual(len(self.ledger.events.log.export()), before)


class TestZeroDigest(unittest.TestCase):
    """A metadata digest equal to the all-zero hash still counts as recorded."""

    def test_zero_digest_blocks_second_write(self):
        ledger = CheckpointLedger(OWNER)
        with mock.patch("shipledger.shipments.content_hash", return_value=EMPTY_HASH):
            h = ledger.record_receipt(OWNER, 7, b"unlucky")
            self.assertEqual(h, EMPTY_HASH)
            with self.assertRaises(AlreadyRecorded):
                ledger.record_receipt(OWNER, 7, b"unlucky")
        self.assertTrue(ledger.get_shipment(7, 1).hash_set)


if __name__ == "__main__":
    unittest.main()
