"""
End-to-end checkpoint scenario, run against each store implementation.
"""

import pytest

from shipledger import (
    AlreadyRecorded,
    AlreadyWitnessed,
    CheckpointLedger,
    InMemoryLedgerStore,
    SqliteEventLog,
    SqliteLedgerStore,
    Unauthorized,
    content_hash,
    verify_chain,
)


@pytest.fixture(params=["memory", "sqlite"])
def ledger(request, tmp_path):
    if request.param == "memory":
        return CheckpointLedger("owner", InMemoryLedgerStore())
    store = SqliteLedgerStore(tmp_path / "scenario.db")
    return CheckpointLedger("owner", store, event_log=SqliteEventLog(store.db))


def test_checkpoint_scenario(ledger):
    assert ledger.lookup_supplier("owner") == 1

    assert ledger.lookup_supplier("A") == 0
    a = ledger.register_supplier("owner", "A", "Dock A")
    assert a == 2

    h = ledger.record_receipt("A", 7, b"box1")
    assert h == content_hash(b"box1")
    assert ledger.get_receipt_hash(7, 2) == h

    ledger.witness("W", 7, 2, content_hash(b"w1"))
    assert ledger.get_witness_count(7, 2) == 1

    with pytest.raises(AlreadyWitnessed):
        ledger.witness("W", 7, 2, content_hash(b"w2"))
    assert ledger.get_witness_count(7, 2) == 1

    with pytest.raises(AlreadyRecorded):
        ledger.record_receipt("A", 7, b"box1-dup")
    assert ledger.get_receipt_hash(7, 2) == h

    with pytest.raises(Unauthorized):
        ledger.record_receipt("W", 7, b"forged")

    events = [e["event_type"] for e in ledger.events.log.export()]
    assert events == ["SupplierRegistered", "SupplierRegistered", "ShipmentReceived", "ShipmentWitnessed"]
    assert verify_chain(ledger.events.log.export()) is None


def test_witness_count_matches_distinct_witnesses(ledger):
    a = ledger.register_supplier("owner", "A", "")
    named = {"w1": a, "w2": a, "w3": 1, "w4": a, "w5": 77}
    for witness, supplier_id in named.items():
        ledger.witness(witness, 3, supplier_id, content_hash(witness))
    for witness in named:
        with pytest.raises(AlreadyWitnessed):
            ledger.witness(witness, 3, a, content_hash(b"again"))

    assert ledger.get_witness_count(3, a) == 3
    assert ledger.get_witness_count(3, 1) == 1
    assert ledger.get_witness_count(3, 77) == 1
    assert ledger.get_receipt_hash(3, a) == bytes(32)
