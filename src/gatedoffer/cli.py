"""Gated offer CLI — operator tooling for proofs, discount trees and status.

Usage:
    python -m gatedoffer.cli status
    python -m gatedoffer.cli sign-proof --user 0xA.. --activity-type HOLD_X_TOKENS
    python -m gatedoffer.cli verify-proof --user 0xA.. --activity-type HOLD_X_TOKENS \
        --proof 0x.. --signer 0xS.. --validity 3600
    python -m gatedoffer.cli discount-tree --entries discounts.json
    python -m gatedoffer.cli discount-proof --entries discounts.json --user 0xA..
    python -m gatedoffer.cli verify-discount --root 0x.. --user 0xA.. --rate 1000 --proof 0x.. 0x..

Discount entry files are JSON objects mapping address to rate in basis
points. The signing key for ``sign-proof`` comes from --key or the
GATEDOFFER_SIGNER_KEY environment variable (``.env`` is honoured).
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from gatedoffer.bootstrap import build_factory
from gatedoffer.clock import system_clock
from gatedoffer.config import PlatformSettings, load_environment
from gatedoffer.crypto.hashing import discount_leaf, to_address
from gatedoffer.crypto.merkle import DiscountTree, verify_proof
from gatedoffer.crypto.signatures import EligibilityProofChecker, sign_eligibility_proof
from gatedoffer.errors import GatedOfferError
from gatedoffer.logging_setup import setup_logging
from gatedoffer.persistence.event_log import EventLog

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _load_entries(path: Path) -> list[tuple[str, int]]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a JSON object of address -> rate")
    return [(user, int(rate)) for user, rate in data.items()]


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2))


def cmd_status(args: argparse.Namespace) -> int:
    settings = PlatformSettings.from_config_dir(args.config)
    env = load_environment(ROOT)
    event_log = None
    if env.data_dir is not None:
        env.data_dir.mkdir(parents=True, exist_ok=True)
        event_log = EventLog(storage_path=env.data_dir / "events.jsonl")
    factory = build_factory(settings, event_log=event_log)
    registry = factory.registry
    _print({
        "registry_owner": registry.owner,
        "factory_owner": factory.owner,
        "activity_types": registry.activity_types(),
        "reward_types": registry.reward_types(),
        "valid_combinations": [list(pair) for pair in registry.valid_combinations()],
        "default_fee": factory.default_fee.to_dict(),
        "authorized_origins": list(settings.authorized_origins),
        "max_batch_size": settings.max_batch_size,
        "events_recorded": event_log.count if event_log is not None else 0,
    })
    return 0


def cmd_sign_proof(args: argparse.Namespace) -> int:
    key = args.key or load_environment(ROOT).signer_key
    if not key:
        print("Failed: no signing key (use --key or GATEDOFFER_SIGNER_KEY)", file=sys.stderr)
        return 1
    timestamp = args.timestamp if args.timestamp is not None else system_clock()
    proof = sign_eligibility_proof(key, args.user, timestamp, args.activity_type)
    _print({
        "user": to_address(args.user),
        "activity_type": args.activity_type,
        "timestamp": timestamp,
        "proof": "0x" + proof.hex(),
    })
    return 0


def cmd_verify_proof(args: argparse.Namespace) -> int:
    now = args.now if args.now is not None else system_clock()
    failure = EligibilityProofChecker().check(
        user=to_address(args.user),
        proof=_hex_to_bytes(args.proof),
        activity_type=args.activity_type,
        signing_key=args.signer,
        validity_duration=args.validity,
        now=now,
    )
    _print({"valid": failure is None, "reason": failure.value if failure else None})
    return 0 if failure is None else 1


def cmd_discount_tree(args: argparse.Namespace) -> int:
    tree = DiscountTree(_load_entries(args.entries))
    _print({"root": "0x" + tree.root.hex(), "entries": len(tree)})
    return 0


def cmd_discount_proof(args: argparse.Namespace) -> int:
    tree = DiscountTree(_load_entries(args.entries))
    rate = tree.rate_for(args.user)
    if rate is None:
        print(f"Failed: {args.user} has no discount entry", file=sys.stderr)
        return 1
    proof = tree.proof_for(args.user, rate)
    _print({
        "user": to_address(args.user),
        "rate": rate,
        "root": "0x" + tree.root.hex(),
        "proof": ["0x" + p.hex() for p in proof],
    })
    return 0


def cmd_verify_discount(args: argparse.Namespace) -> int:
    leaf = discount_leaf(args.user, args.rate)
    valid = verify_proof([_hex_to_bytes(p) for p in args.proof], _hex_to_bytes(args.root), leaf)
    _print({"valid": valid})
    return 0 if valid else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatedoffer",
        description="Gated offer campaigns — operator CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command")

    # status
    sub.add_parser("status", help="Show platform configuration and registry")

    # sign-proof
    p_sign = sub.add_parser("sign-proof", help="Sign an eligibility proof")
    p_sign.add_argument("--user", required=True, help="User address")
    p_sign.add_argument("--activity-type", required=True, help="Activity type tag")
    p_sign.add_argument("--timestamp", type=int, help="Proof timestamp (default: now)")
    p_sign.add_argument("--key", help="Signer private key (default: GATEDOFFER_SIGNER_KEY)")

    # verify-proof
    p_verify = sub.add_parser("verify-proof", help="Check an eligibility proof")
    p_verify.add_argument("--user", required=True, help="User address")
    p_verify.add_argument("--activity-type", required=True, help="Activity type tag")
    p_verify.add_argument("--proof", required=True, help="Encoded proof (hex)")
    p_verify.add_argument("--signer", required=True, help="Expected signer address")
    p_verify.add_argument("--validity", type=int, required=True, help="Validity in seconds")
    p_verify.add_argument("--now", type=int, help="Evaluation time (default: now)")

    # discount-tree
    p_tree = sub.add_parser("discount-tree", help="Compute a discount Merkle root")
    p_tree.add_argument("--entries", type=Path, required=True, help="JSON address -> rate file")

    # discount-proof
    p_proof = sub.add_parser("discount-proof", help="Inclusion proof for one user")
    p_proof.add_argument("--entries", type=Path, required=True, help="JSON address -> rate file")
    p_proof.add_argument("--user", required=True, help="User address")

    # verify-discount
    p_vd = sub.add_parser("verify-discount", help="Check a discount proof against a root")
    p_vd.add_argument("--root", required=True, help="Merkle root (hex)")
    p_vd.add_argument("--user", required=True, help="User address")
    p_vd.add_argument("--rate", type=int, required=True, help="Discount rate (bps)")
    p_vd.add_argument("--proof", nargs="*", default=[], help="Sibling hashes (hex)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.log_level)

    commands = {
        "status": cmd_status,
        "sign-proof": cmd_sign_proof,
        "verify-proof": cmd_verify_proof,
        "discount-tree": cmd_discount_tree,
        "discount-proof": cmd_discount_proof,
        "verify-discount": cmd_verify_discount,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except (GatedOfferError, ValueError, FileNotFoundError) as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
