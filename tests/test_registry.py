"""
Identity registry and access controller tests.
"""

import unittest

from shipledger import CheckpointLedger, SupplierRegistered, Unauthorized
from shipledger.access import AccessController
from shipledger.events import EventBus
from shipledger.registry import IdentityRegistry
from shipledger.store import InMemoryLedgerStore

OWNER = "owner"


class TestIdentityRegistry(unittest.TestCase):

    def setUp(self):
        self.ledger = CheckpointLedger(OWNER)

    def test_owner_bootstrapped_as_supplier_one(self):
        self.assertEqual(self.ledger.owner_supplier_id, 1)
        self.assertEqual(self.ledger.lookup_supplier(OWNER), 1)
        self.assertEqual(self.ledger.get_supplier(1).metadata, "owner")

    def test_unregistered_identity_is_zero(self):
        self.assertEqual(self.ledger.lookup_supplier("nobody"), 0)

    def test_ids_are_sequential(self):
        a = self.ledger.register_supplier(OWNER, "alice", "Dock A")
        b = self.ledger.register_supplier(OWNER, "bob", "Dock B")
        self.assertEqual((a, b), (2, 3))
        self.assertEqual(self.ledger.lookup_supplier("alice"), 2)
        self.assertEqual(self.ledger.lookup_supplier("alice"), 2)

    def test_supplier_keeps_details(self):
        sid = self.ledger.register_supplier(OWNER, "alice", "Dock A, Rotterdam")
        supplier = self.ledger.get_supplier(sid)
        self.assertEqual(supplier.identity, "alice")
        self.assertEqual(supplier.metadata, "Dock A, Rotterdam")

    def test_non_owner_cannot_register(self):
        self.ledger.register_supplier(OWNER, "alice", "Dock A")
        with self.assertRaises(Unauthorized):
            self.ledger.register_supplier("alice", "mallory", "")
        with self.assertRaises(Unauthorized):
            self.ledger.register_supplier("stranger", "mallory", "")
        self.assertEqual(self.ledger.lookup_supplier("mallory"), 0)

    def test_reregistration_assigns_new_id_and_keeps_old(self):
        first = self.ledger.register_supplier(OWNER, "alice", "v1")
        second = self.ledger.register_supplier(OWNER, "alice", "v2")
        self.assertEqual(second, first + 1)
        self.assertEqual(self.ledger.lookup_supplier("alice"), second)
        self.assertEqual(self.ledger.get_supplier(first).metadata, "v1")

    def test_registration_emits_event(self):
        seen = []
        self.ledger.events.subscribe(seen.append)
        sid = self.ledger.register_supplier(OWNER, "alice", "Dock A")
        self.assertEqual(seen, [SupplierRegistered(sid, "alice", "Dock A")])

    def test_bootstrap_emits_owner_registration(self):
        entries = self.ledger.events.log.export()
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]["event_type"], "SupplierRegistered")

    def test_empty_owner_rejected(self):
        with self.assertRaises(ValueError):
            CheckpointLedger("")


class TestAccessController(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryLedgerStore()
        self.registry = IdentityRegistry(self.store, EventBus())
        self.registry.bootstrap(OWNER)
        self.access = AccessController(self.registry)

    def test_owner_authorized_with_registry_id(self):
        self.assertEqual(self.access.authorize_supplier_write(OWNER), 1)

    def test_registered_supplier_authorized(self):
        sid = self.registry.register_supplier(OWNER, "alice", "")
        self.assertEqual(self.access.authorize_supplier_write("alice"), sid)

    def test_stranger_rejected(self):
        with self.assertRaises(Unauthorized):
            self.access.authorize_supplier_write("stranger")

    def test_decision_not_cached(self):
        with self.assertRaises(Unauthorized):
            self.access.authorize_supplier_write("alice")
        self.registry.register_supplier(OWNER, "alice", "")
        self.assertEqual(self.access.authorize_supplier_write("alice"), 2)
        self.registry.register_supplier(OWNER, "alice", "again")
        self.assertEqual(self.access.authorize_supplier_write("alice"), 3)

    def test_owner_id_rederived_after_reregistration(self):
        new_id = self.registry.register_supplier(OWNER, OWNER, "owner again")
        self.assertEqual(self.access.authorize_supplier_write(OWNER), new_id)


if __name__ == "__main__":
    unittest.main()
