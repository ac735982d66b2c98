import json

import pytest

from shipledger import CheckpointLedger, content_hash
from shipledger.cli import main
from shipledger.keys import ActorKey, request_signing_payload, verify_actor_signature


def test_keygen_and_identity(tmp_path, capsys):
    path = str(tmp_path / "keys" / "actor.json")
    assert main(["keygen", "--output", path]) == 0
    identity = capsys.readouterr().out.strip()
    assert len(identity) == 64
    assert ActorKey.load(path).identity == identity

    assert main(["identity", "--key", path]) == 0
    assert capsys.readouterr().out.strip() == identity


def test_sign_produces_verifiable_envelope(tmp_path, capsys):
    path = str(tmp_path / "actor.json")
    key = ActorKey.generate()
    key.save(path)
    payload = {"item_id": 7, "metadata": "box1"}

    assert main(["sign", "--key", path, "--operation", "record_receipt", "--payload", json.dumps(payload)]) == 0
    envelope = json.loads(capsys.readouterr().out)
    assert envelope["actor"] == key.identity
    assert envelope["payload"] == payload
    message = request_signing_payload(
        envelope["actor"], envelope["issued_at"], envelope["nonce"], "record_receipt", payload
    )
    assert verify_actor_signature(key.identity, envelope["sig_b64"], message)


def test_sign_rejects_bad_json(tmp_path):
    path = str(tmp_path / "actor.json")
    ActorKey.generate().save(path)
    assert main(["sign", "--key", path, "--operation", "witness", "--payload", "{nope"]) == 2


def test_hash_text_and_file(tmp_path, capsys):
    assert main(["hash", "--text", "box1"]) == 0
    assert capsys.readouterr().out.strip() == content_hash(b"box1").hex()

    f = tmp_path / "manifest.bin"
    f.write_bytes(b"\x00\x01manifest")
    assert main(["hash", "--file", str(f)]) == 0
    assert capsys.readouterr().out.strip() == content_hash(b"\x00\x01manifest").hex()


def test_verify_chain(tmp_path, capsys):
    ledger = CheckpointLedger("owner")
    ledger.record_receipt("owner", 1, b"m")
    entries = ledger.events.log.export()
    export = tmp_path / "events.json"
    export.write_text(json.dumps(entries), encoding="utf-8")
    assert main(["verify-chain", str(export)]) == 0
    assert "PASS" in capsys.readouterr().out

    entries[0]["entry_hash"] = "00" * 32
    export.write_text(json.dumps(entries), encoding="utf-8")
    assert main(["verify-chain", str(export)]) == 1
    assert "seq 1" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1


def test_key_file_identity_mismatch(tmp_path):
    path = tmp_path / "actor.json"
    ActorKey.generate().save(str(path))
    raw = json.loads(path.read_text())
    raw["identity"] = "ab" * 32
    path.write_text(json.dumps(raw))
    with pytest.raises(ValueError):
        ActorKey.load(str(path))
