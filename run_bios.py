#!/usr/bin/env python3
"""
BIOS LAUNCHER

Runs this operator's part of a network launch. Every operator runs the same
command with the same launch file, snapshot and entropy; the shuffle decides
who boots the chain (origin), who verifies it (delegates) and who joins later
(followers).

USAGE EXAMPLES:

    # Real launch: entropy is the agreed external block hash and its time
    export BIOS_PRIVATE_KEY=<operator private key hex>
    python3 run_bios.py --launch launch.json --snapshot snapshot.json \\
        --my-account alice --api-url http://127.0.0.1:8888 \\
        --chain-id <hex> --entropy <hex> --entropy-time 2018-06-01T12:00:00 \\
        --code eosio.system.wasm --abi eosio.system.abi \\
        --p2p-address alice.example.com:9876 --hook-url http://127.0.0.1:9000/hooks

    # Local rehearsal: no shuffle, in-process ledger
    python3 run_bios.py --launch launch.json --snapshot snapshot.json \\
        --my-account alice --no-shuffle --dry-run --code contract.wasm --abi contract.abi

    # Delegates/followers can receive bundles over HTTP instead of stdin
    python3 run_bios.py ... --intake-port 8910
    curl -X POST localhost:8910/kickstart -d '{"bundle": "..."}' -H 'content-type: application/json'

LAUNCH FILE:   {"producers": [{"account_name": "...", "public_key": "<hex>"}, ...]}
SNAPSHOT FILE: [{"external_address": "0x...", "public_key": "<hex>", "balance": "100.0000 EOS"}, ...]
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import datetime, timezone

from bios import config
from bios.delegate import DelegateState
from bios.errors import BiosError
from bios.intake import create_intake_app, create_intake_server
from bios.ledger import ChainAPI, parse_asset
from bios.local_ledger import LocalChainHook, MemoryLedger
from bios.models import ContractArtifacts, Holder, LocalIdentity, Operator
from bios.notifier import ChainedNotifier, ConsoleNotifier, WebhookNotifier
from bios.origin import RunState
from bios.orchestrator import BIOS
from bios.roles import RoleIndex
from bios.settings import BiosSettings
from bios.shuffle import shuffle_producers
from bios.signer import KeyBag
from bios.sources import QueueSource


def load_launch_roster(path: str) -> list:
    with open(path, "r") as f:
        data = json.load(f)
    producers = data["producers"] if isinstance(data, dict) else data
    return [Operator.from_dict(p) for p in producers]


def load_snapshot(path: str) -> list:
    if not path:
        return []
    with open(path, "r") as f:
        rows = json.load(f)
    return [
        Holder(
            external_address=row["external_address"],
            public_key=row["public_key"],
            balance=parse_asset(row["balance"]),
        )
        for row in rows
    ]


def load_contract(code_path: str, abi_path: str) -> ContractArtifacts:
    with open(code_path, "rb") as f:
        code = f.read()
    with open(abi_path, "r") as f:
        abi = json.load(f)
    return ContractArtifacts(code=code, abi=abi)


def parse_entropy_time(value: str) -> datetime:
    timestamp = datetime.fromisoformat(value)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BIOS network launch")
    parser.add_argument("--launch", required=True, help="Launch roster JSON")
    parser.add_argument("--snapshot", default="", help="Genesis snapshot JSON")
    parser.add_argument("--my-account", default=os.environ.get("BIOS_MY_ACCOUNT"), help="This operator's account")
    parser.add_argument("--code", required=True, help="System contract code file")
    parser.add_argument("--abi", required=True, help="System contract ABI JSON")
    parser.add_argument("--no-shuffle", action="store_true", help="Keep roster order (development only)")
    parser.add_argument("--entropy", help="Entropy commitment, hex (e.g. external block merkle root)")
    parser.add_argument("--entropy-time", help="Time of the entropy event, ISO-8601 (UTC if no offset)")
    parser.add_argument("--api-url", default=os.environ.get("BIOS_API_URL", "http://127.0.0.1:8888"))
    parser.add_argument("--chain-id", default=os.environ.get("BIOS_CHAIN_ID", config.DEFAULT_CHAIN_ID))
    parser.add_argument("--hook-url", default=os.environ.get("BIOS_HOOK_URL"), help="Webhook for lifecycle hooks")
    parser.add_argument("--p2p-address", help="Address other nodes connect to")
    parser.add_argument("--producer-url", help="URL registered with regproducer")
    parser.add_argument("--snapshot-cap", type=int, help="Seed at most N snapshot holders")
    parser.add_argument("--kickstart-timeout", type=float, help="Seconds a delegate waits for the kickstart")
    parser.add_argument("--relay-timeout", type=float, help="Seconds a follower waits for a relay")
    parser.add_argument("--no-register", action="store_true", help="Followers: do not call regproducer")
    parser.add_argument("--intake-port", type=int, help="Serve the kickstart intake endpoint on this port")
    parser.add_argument("--intake-host", default="127.0.0.1")
    parser.add_argument("--dry-run", action="store_true", help="Use an in-process ledger")
    return parser


def build_settings(args) -> BiosSettings:
    settings = BiosSettings.from_env()
    if args.p2p_address:
        settings.p2p_address = args.p2p_address
    if args.producer_url:
        settings.producer_url = args.producer_url
    if args.snapshot_cap is not None:
        settings.snapshot_cap = args.snapshot_cap
    if args.kickstart_timeout is not None:
        settings.kickstart_timeout = args.kickstart_timeout
    if args.relay_timeout is not None:
        settings.relay_timeout = args.relay_timeout
    if args.no_register:
        settings.register_follower = False
    return settings


def intake_app_for(source: QueueSource, shuffle, account: str):
    """Intake endpoint whose /status reports this node's role in the shuffle."""
    return create_intake_app(source, role=RoleIndex(shuffle).role_of(account).value)


async def run(args) -> int:
    roster = load_launch_roster(args.launch)
    snapshot = load_snapshot(args.snapshot)
    identity = LocalIdentity(
        account_name=args.my_account,
        no_shuffle=args.no_shuffle,
        system_contract=load_contract(args.code, args.abi),
    )
    settings = build_settings(args)

    if args.no_shuffle:
        print("⚠️  NO-SHUFFLE MODE: roster order is used as-is. Never use this for a real launch.")
        now = parse_entropy_time(args.entropy_time) if args.entropy_time else None
        shuffle = shuffle_producers(roster, no_shuffle=True, now=now)
    else:
        if not args.entropy or not args.entropy_time:
            raise BiosError("--entropy and --entropy-time are required unless --no-shuffle is set")
        shuffle = shuffle_producers(roster, bytes.fromhex(args.entropy), parse_entropy_time(args.entropy_time))

    signer = KeyBag()
    private_key = os.environ.get("BIOS_PRIVATE_KEY")
    if private_key:
        public_key = signer.import_private_key(private_key)
        print(f"🔐 Operator key loaded: {public_key[:16]}...")
    else:
        print("⚠️  BIOS_PRIVATE_KEY not set: registration and kickstart decryption will fail")

    chain_id = bytes.fromhex(args.chain_id)
    notifiers = [ConsoleNotifier()]
    if args.hook_url:
        notifiers.append(WebhookNotifier(args.hook_url))
    if args.dry_run:
        ledger = MemoryLedger(chain_id, signer)
        notifiers.append(LocalChainHook(ledger))
        print("🧪 DRY RUN: using an in-process ledger")
    else:
        ledger = ChainAPI(args.api_url, chain_id, signer)

    source = None
    server_task = None
    if args.intake_port:
        source = QueueSource()
        app = intake_app_for(source, shuffle, args.my_account)
        server = create_intake_server(app, args.intake_host, args.intake_port)
        server_task = asyncio.create_task(server.serve())
        print(f"📡 Kickstart intake listening on http://{args.intake_host}:{args.intake_port}/kickstart")

    bios = BIOS(roster, snapshot, identity, shuffle, ledger, signer,
                ChainedNotifier(notifiers), settings, source)
    try:
        result = await bios.run()
    finally:
        if server_task is not None:
            server.should_exit = True
            await server_task

    if isinstance(result, RunState):
        return 0
    if result.state is DelegateState.SABOTAGE:
        return 2
    return 0 if result.state.name == "DONE" else 1


def main():
    args = build_parser().parse_args()
    if not args.my_account:
        print("❌ --my-account (or BIOS_MY_ACCOUNT) is required")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run(args)))
    except BiosError as e:
        print(f"\n❌ BIOS FAILED: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
