#!/usr/bin/env python3
"""
Group Diffie-Hellman demo runner.

Subcommands:
  - tree         Tree-based N-party exchange (2N-1 communications).
  - three-party  Fixed-formula 3-party exchange (4 communications).
  - threaded     Tree-based exchange with one thread per participant.
  - costs        Tree vs naive pairwise message counts, crossover marked.

Usage:
  python -m groupdh.cli tree --parties 5
  python -m groupdh.cli tree --parties 4 --group oakley768 --min-bits 768
  python -m groupdh.cli costs --max 10
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from groupdh.actors import run_threaded
from groupdh.common.errors import GroupDHError
from groupdh.common.utils import b64_decode, b64_encode, short_int
from groupdh.config import configure_logging, load_settings
from groupdh.crypto import aes
from groupdh.crypto.dh import GROUPS
from groupdh.three_party import ThreePartyExchange, three_party_communication_cost
from groupdh.tree import (
    ExchangeResult,
    TreeGroupKeyExchange,
    naive_pairwise_cost,
    tree_communication_cost,
    tree_is_cheaper,
)


def _print_tree_result(result: ExchangeResult, message: str) -> None:
    print("[KEYS] Public keys broadcast:")
    for participant, public in zip(result.participants, result.public_keys):
        print(f"  {participant.label:<10} ({participant.role.value:<11}) g^x = {short_int(public)}")

    print("[DIST] Intermediate keys per member:")
    for j, received in sorted(result.distribution.items()):
        label = result.participants[j].label
        print(f"  {label:<10} receives from {sorted(received)} (own key {j} withheld)")

    print("[FINAL] Final keys:")
    for participant, key in zip(result.participants, result.final_keys):
        print(f"  {participant.label:<10} {short_int(key)}")

    print(
        f"[COMM] {result.communication_count} communications "
        f"(expected 2x{len(result.participants)}-1 = {result.expected_communications})"
    )
    print(f"[COMM] transcript sha256 {result.transcript_hash}")
    print(f"[OK] All parties agree: {result.keys_match}")
    print(f"[KDF] Symmetric key: {result.symmetric_key.hex()}")
    _demo_cipher(result.symmetric_key, message)


def _demo_cipher(key: bytes, message: str) -> None:
    blob_b64 = b64_encode(aes.encrypt_group_message(key, message.encode("utf-8")))
    print(f"[AES] {message!r} -> {blob_b64}")
    pt = aes.decrypt_group_message(key, b64_decode(blob_b64))
    print(f"[AES] decrypted by any member: {pt.decode('utf-8')!r}")


def cmd_tree(args) -> int:
    params = GROUPS[args.group]
    engine = TreeGroupKeyExchange(params, args.parties, min_modulus_bits=args.min_bits)
    print(f"[INIT] {args.parties} parties over {params.name} ({params.bits} bits)")
    _print_tree_result(engine.run(), args.message)
    return 0


def cmd_threaded(args) -> int:
    params = GROUPS[args.group]
    print(f"[INIT] {args.parties} participant threads over {params.name}")
    result = run_threaded(params, args.parties, timeout=args.timeout, min_modulus_bits=args.min_bits)
    _print_tree_result(result, args.message)
    return 0


def cmd_three_party(args) -> int:
    params = GROUPS[args.group]
    result = ThreePartyExchange(params, min_modulus_bits=args.min_bits).run()
    for label, key in zip(("Alice", "Bob", "Charlie"), result.final_keys):
        print(f"[FINAL] {label:<8} k_ABC = {short_int(key)}")
    print(f"[COMM] {result.communication_count} communications (expected {three_party_communication_cost()})")
    print(f"[OK] All parties agree: {result.keys_match}")
    print(f"[KDF] Symmetric key: {result.symmetric_key.hex()}")
    return 0


def cmd_costs(args) -> int:
    if args.max < 3:
        print("[ERR] --max must be at least 3", file=sys.stderr)
        return 2
    print(f"{'N':>4} {'tree 2N-1':>10} {'naive N(N-1)/2':>15}  cheaper")
    for n in range(3, args.max + 1):
        marker = "tree" if tree_is_cheaper(n) else "naive/equal"
        print(f"{n:>4} {tree_communication_cost(n):>10} {naive_pairwise_cost(n):>15}  {marker}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Tree-based N-party Diffie-Hellman demo")
    parser.add_argument("--log-level", default=settings.log_level, help="logging level (default from GROUPDH_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_group_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--group", choices=sorted(GROUPS), default="modp2048", help="named MODP group")
        p.add_argument(
            "--min-bits",
            type=int,
            default=settings.min_modulus_bits,
            help="minimum modulus size in bits (default from GROUPDH_MIN_MODULUS_BITS)",
        )
        p.add_argument("--message", default="hello group", help="message to encrypt with the group key")

    p_tree = sub.add_parser("tree", help="run the tree-based exchange")
    p_tree.add_argument("--parties", type=int, default=4, help="number of parties (>= 3)")
    add_group_args(p_tree)
    p_tree.set_defaults(func=cmd_tree)

    p_threaded = sub.add_parser("threaded", help="run the exchange with one thread per party")
    p_threaded.add_argument("--parties", type=int, default=4, help="number of parties (>= 3)")
    p_threaded.add_argument("--timeout", type=float, default=settings.participant_timeout, help="per-party timeout (s)")
    add_group_args(p_threaded)
    p_threaded.set_defaults(func=cmd_threaded)

    p_three = sub.add_parser("three-party", help="run the fixed-formula 3-party exchange")
    add_group_args(p_three)
    p_three.set_defaults(func=cmd_three_party)

    p_costs = sub.add_parser("costs", help="compare communication costs")
    p_costs.add_argument("--max", type=int, default=10, help="largest N to show")
    p_costs.set_defaults(func=cmd_costs)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.func(args)
    except GroupDHError as e:
        print(f"[{type(e).__name__}] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
