#!/usr/bin/env python3
"""
shipledger Command Line Interface

Usage:
    shipledger keygen --output <file>
    shipledger identity --key <file>
    shipledger sign --key <file> --operation <op> --payload <json>
    shipledger hash (--file <file> | --text <string>)
    shipledger verify-chain <event_log_export.json>
"""

import argparse
import json
import sys


OPERATIONS = ("register_supplier", "record_receipt", "witness")


def cmd_keygen(args):
    """Generate a new actor key file."""
    from .keys import ActorKey

    key = ActorKey.generate()
    key.save(args.output)
    print(key.identity)
    print(f"Key saved to: {args.output}", file=sys.stderr)
    return 0


def cmd_identity(args):
    """Print the identity of an actor key file."""
    from .keys import ActorKey

    print(ActorKey.load(args.key).identity)
    return 0


def cmd_sign(args):
    """Print a signed request envelope for an operation."""
    from .keys import ActorKey

    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        print(f"Invalid payload JSON: {e}", file=sys.stderr)
        return 2
    envelope = ActorKey.load(args.key).sign_request(args.operation, payload)
    print(json.dumps(envelope, indent=2))
    return 0


def cmd_hash(args):
    """Print the content hash of metadata."""
    from .hashing import content_hash

    if args.file:
        with open(args.file, "rb") as f:
            data = f.read()
    else:
        data = args.text.encode("utf-8")
    print(content_hash(data).hex())
    return 0


def cmd_verify_chain(args):
    """Verify the hash chain of an exported event log."""
    from .events import load_event_log_export, verify_chain

    entries = load_event_log_export(args.export)
    bad_seq = verify_chain(entries)
    if bad_seq is not None:
        print(f"FAIL: chain mismatch at seq {bad_seq}")
        return 1
    print(f"PASS: event log chain valid ({len(entries)} entries)")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="shipledger",
        description="Shipment checkpoint ledger tools"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate an actor key")
    keygen_parser.add_argument("--output", "-o", required=True, help="Key file to write")

    identity_parser = subparsers.add_parser("identity", help="Print an actor identity")
    identity_parser.add_argument("--key", "-k", required=True, help="Actor key file")

    sign_parser = subparsers.add_parser("sign", help="Sign a write request")
    sign_parser.add_argument("--key", "-k", required=True, help="Actor key file")
    sign_parser.add_argument("--operation", required=True, choices=OPERATIONS)
    sign_parser.add_argument("--payload", required=True, help="Operation payload as JSON")

    hash_parser = subparsers.add_parser("hash", help="Compute a content hash")
    source = hash_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", "-f", help="File to hash")
    source.add_argument("--text", "-t", help="Text to hash (UTF-8)")

    verify_parser = subparsers.add_parser("verify-chain", help="Verify an exported event log")
    verify_parser.add_argument("export", help="JSON export from GET /events")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "keygen": cmd_keygen,
        "identity": cmd_identity,
        "sign": cmd_sign,
        "hash": cmd_hash,
        "verify-chain": cmd_verify_chain,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
