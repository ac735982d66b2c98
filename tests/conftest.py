import pytest
from fastapi.testclient import TestClient

from shipledger import main
from shipledger.db import SqliteDatabase, SqliteEventLog, SqliteLedgerStore, SqliteNonceStore
from shipledger.keys import ActorKey
from shipledger.ledger import CheckpointLedger
from shipledger.security import RequestVerifier


@pytest.fixture
def owner_key():
    return ActorKey.generate()


@pytest.fixture
def sqlite_db(tmp_path):
    db = SqliteDatabase(tmp_path / "shipledger.db")
    yield db
    db.close()


@pytest.fixture
def api_ledger(owner_key, sqlite_db):
    return CheckpointLedger(
        owner_key.identity,
        SqliteLedgerStore(sqlite_db),
        event_log=SqliteEventLog(sqlite_db),
    )


@pytest.fixture
def client(api_ledger, sqlite_db):
    verifier = RequestVerifier(SqliteNonceStore(sqlite_db), max_age_seconds=300, max_skew_seconds=30)
    main.app.dependency_overrides[main.get_ledger] = lambda: api_ledger
    main.app.dependency_overrides[main.get_verifier] = lambda: verifier
    main.write_limiter.reset()
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    main.write_limiter.reset()
