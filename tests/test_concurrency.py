"""
Concurrent writers racing for the same key: exactly one wins.
"""

import threading

import pytest

from shipledger import (
    AlreadyRecorded,
    AlreadyWitnessed,
    CheckpointLedger,
    InMemoryLedgerStore,
    SqliteEventLog,
    SqliteLedgerStore,
    content_hash,
)
from shipledger.ledger import StripedLocks

THREADS = 16


@pytest.fixture(params=["memory", "sqlite"])
def ledger(request, tmp_path):
    if request.param == "memory":
        return CheckpointLedger("owner", InMemoryLedgerStore())
    store = SqliteLedgerStore(tmp_path / "race.db")
    return CheckpointLedger("owner", store, event_log=SqliteEventLog(store.db))


def race(target, args_for):
    barrier = threading.Barrier(THREADS)
    results = [None] * THREADS

    def run(i):
        barrier.wait()
        try:
            target(*args_for(i))
            results[i] = "ok"
        except Exception as e:
            results[i] = e

    threads = [threading.Thread(target=run, args=(i,)) for i in range(THREADS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_same_pair_receipt_race(ledger):
    ledger.register_supplier("owner", "A", "")
    results = race(ledger.record_receipt, lambda i: ("A", 7, f"box-{i}".encode()))

    winners = [i for i, r in enumerate(results) if r == "ok"]
    assert len(winners) == 1
    assert all(isinstance(r, AlreadyRecorded) for r in results if r != "ok")
    assert ledger.get_receipt_hash(7, 2) == content_hash(f"box-{winners[0]}".encode())
    received = [e for e in ledger.events.log.export() if e["event_type"] == "ShipmentReceived"]
    assert len(received) == 1


def test_same_witness_race(ledger):
    results = race(ledger.witness, lambda i: ("W", 7, 2, content_hash(str(i))))

    assert results.count("ok") == 1
    assert all(isinstance(r, AlreadyWitnessed) for r in results if r != "ok")
    assert ledger.get_witness_count(7, 2) == 1


def test_distinct_witnesses_race(ledger):
    results = race(ledger.witness, lambda i: (f"W{i}", 7, 2, content_hash(str(i))))

    assert results == ["ok"] * THREADS
    assert ledger.get_witness_count(7, 2) == THREADS


def test_disjoint_items_all_succeed(ledger):
    ledger.register_supplier("owner", "A", "")
    results = race(ledger.record_receipt, lambda i: ("A", i, b"same"))

    assert results == ["ok"] * THREADS
    assert all(ledger.get_receipt_hash(i, 2) == content_hash(b"same") for i in range(THREADS))


def test_item_lock_pool_is_fixed():
    locks = StripedLocks(8)
    assert len({id(locks.lock_for(item)) for item in range(10000)}) == 8
    assert locks.lock_for(12345) is locks.lock_for(12345)


def test_many_items_share_lock_pool(ledger):
    for item in range(500):
        ledger.record_receipt("owner", item, b"m")
    pool = {id(ledger.item_locks.lock_for(item)) for item in range(500)}
    assert len(pool) <= 64
    assert ledger.get_receipt_hash(499, 1) == content_hash(b"m")
