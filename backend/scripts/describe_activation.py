#!/usr/bin/env python3
"""
Resolve an activation for a wallet and print what would be sent.
Reads on-chain state through the configured RPC; never signs or broadcasts.

Usage:
    python scripts/describe_activation.py <wallet> <level> [--tx]
"""
import os
import sys
import json

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config
from solders.pubkey import Pubkey
from services.matrix import MatrixError, Fallback
from services.matrix.client import MatrixClient
from services.matrix.prices import lamports_to_sol


def main():
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    with_tx = '--tx' in sys.argv
    if len(args) != 2:
        print(__doc__)
        sys.exit(2)

    try:
        wallet = Pubkey.from_string(args[0])
        level = int(args[1])
    except ValueError as e:
        print(f"Invalid argument: {e}")
        print(__doc__)
        sys.exit(2)

    client = MatrixClient.from_config(config)
    try:
        plan = client.build_activation(wallet, level)
    except MatrixError as e:
        print(f"Cannot resolve activation: {e}")
        sys.exit(1)

    print("=" * 70)
    print(f"ACTIVATE LEVEL {plan.level}: {lamports_to_sol(plan.price_lamports)} SOL")
    print("=" * 70)
    print(f"  Queue status:  {plan.queue.status.value}")
    print(f"  Owner wallet:  {plan.accounts.owner_wallet}{' (self)' if plan.queue.owner.is_self else ''}")
    for i, choice in enumerate(plan.referrals.wallets, start=1):
        note = f" (fallback: {choice.reason})" if isinstance(choice, Fallback) else ""
        print(f"  Ref{i}:          {choice.address}{note}")

    print("\nAccounts:")
    for i, meta in enumerate(plan.activate_ix.accounts):
        flags = ("s" if meta.is_signer else "-") + ("w" if meta.is_writable else "r")
        print(f"  {i:2d} [{flags}] {meta.pubkey}")

    print(f"\nData ({len(plan.activate_ix.data)} bytes): {bytes(plan.activate_ix.data).hex()}")

    if with_tx:
        blockhash = client.reader.rpc.get_latest_blockhash(url=client.reader.endpoints.get_rpc_url())
        print(f"\nUnsigned tx (base64):\n{plan.build_unsigned_transaction_b64(blockhash)}")

    print("\nReader status:")
    print(json.dumps(client.reader.get_status(), indent=2))


if __name__ == "__main__":
    main()
