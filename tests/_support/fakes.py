# tests/_support/fakes.py
from __future__ import annotations

import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bios.crypto_utils import generate_keypair
from bios.errors import AccountExists, LedgerError, NotificationError
from bios.ledger import Ledger
from bios.local_ledger import LocalChainHook, MemoryLedger
from bios.models import ContractArtifacts, Holder, LocalIdentity, Operator, ShuffleResult
from bios.notifier import ChainedNotifier, Notifier
from bios.origin import OriginSequencer
from bios.settings import BiosSettings
from bios.shuffle import shuffle_producers
from bios.signer import KeyBag

CHAIN_ID = bytes.fromhex("cf057bbfb72640471fd910bcb67639c22df9f92470936cddc1ade0e2f2e7dc4f")
ENTROPY = bytes.fromhex("0000000000000000001b5a1e6d8d6d0b6f1c58f7f4b2d0b8b6f11f3c1a2b3c4d")
ENTROPY_TIME = datetime(2018, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def producer_names(count: int) -> List[str]:
    """bpaa, bpab, ... valid ledger account names."""
    letters = string.ascii_lowercase
    return [f"bp{letters[i // 26]}{letters[i % 26]}" for i in range(count)]


def make_roster(count: int) -> Tuple[List[Operator], Dict[str, str]]:
    """Roster of `count` operators with fresh keys; returns (roster, account -> private key)."""
    roster = []
    keys = {}
    for name in producer_names(count):
        private_key, public_key = generate_keypair()
        roster.append(Operator(name, public_key))
        keys[name] = private_key
    return roster, keys


def make_contract() -> ContractArtifacts:
    return ContractArtifacts(code=b"\x00asm\x01\x00\x00\x00system", abi={"version": "eosio::abi/1.0"})


def make_snapshot() -> List[Holder]:
    _, key_a = generate_keypair()
    _, key_b = generate_keypair()
    return [
        Holder("0xABCDEF123456", key_a, 100),
        Holder("0x000000654321", key_b, 50),
    ]


def fast_settings(**overrides) -> BiosSettings:
    values = dict(
        p2p_address="node.test:9876",
        kickstart_timeout=5.0,
        relay_timeout=5.0,
        sync_timeout=5.0,
        sync_poll_interval=0.01,
    )
    values.update(overrides)
    return BiosSettings(**values)


class RecordingNotifier(Notifier):
    """Keeps every hook in order; events in `fail_on` raise NotificationError."""

    def __init__(self, fail_on=(), fatal_events=None):
        super().__init__(fatal_events)
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_on = set(fail_on)

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))
        if event in self.fail_on:
            raise NotificationError(f"{event} hook unavailable")

    def names(self) -> List[str]:
        return [event for event, _ in self.events]

    def payload(self, event: str) -> Dict[str, Any]:
        for name, payload in self.events:
            if name == event:
                return payload
        raise AssertionError(f"hook {event!r} was never fired; got {self.names()}")


class RecordingLedger(Ledger):
    """
    Ledger fake recording every capability call as (method, args).

    fail_at: the Nth call overall raises LedgerError
    fail_on: (method, n) - the nth call of `method` raises LedgerError
    existing: account names create_account reports as AccountExists
    """

    def __init__(self, chain_id: bytes = CHAIN_ID, signer=None, fail_at: Optional[int] = None,
                 fail_on: Optional[Tuple[str, int]] = None, existing=(), head_block_num: int = 1):
        super().__init__(chain_id, signer or KeyBag())
        self.calls: List[Tuple[str, tuple]] = []
        self.fail_at = fail_at
        self.fail_on = fail_on
        self.existing = set(existing)
        self.head_block_num = head_block_num

    def _record(self, method: str, *args):
        self.calls.append((method, args))
        count = sum(1 for name, _ in self.calls if name == method)
        if self.fail_at == len(self.calls) or self.fail_on == (method, count):
            raise LedgerError(f"{method} rejected by node")
        if method == "create_account" and args[1] in self.existing:
            raise AccountExists(f"account {args[1]} already exists")
        return {"transaction_id": f"tx{len(self.calls)}"}

    def methods(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_of(self, method: str) -> List[tuple]:
        return [args for name, args in self.calls if name == method]

    async def sign_and_broadcast(self, *actions):
        return self._record("sign_and_broadcast", *actions)

    async def deploy_system_contract(self, account, code, abi):
        return self._record("deploy_system_contract", account, code, abi)

    async def create_account(self, creator, new_account, owner_key):
        return self._record("create_account", creator, new_account, owner_key)

    async def issue(self, account, amount, memo=""):
        return self._record("issue", account, amount)

    async def transfer(self, from_account, to, amount, memo):
        return self._record("transfer", from_account, to, amount, memo)

    async def register_producer(self, account, public_key, url=""):
        return self._record("register_producer", account, public_key, url)

    async def net_connect(self, address):
        return self._record("net_connect", address)

    async def get_account(self, name):
        return None

    async def get_info(self):
        return {"chain_id": self.chain_id.hex(), "head_block_num": self.head_block_num}


@dataclass
class Launch:
    """One shared in-process network: a MemoryLedger every node of the test talks to."""
    roster: List[Operator]
    keys: Dict[str, str]
    shuffle: ShuffleResult
    snapshot: List[Holder]
    artifacts: ContractArtifacts
    signer: KeyBag
    ledger: MemoryLedger
    hooks: RecordingNotifier = field(default_factory=RecordingNotifier)

    @property
    def notifier(self) -> Notifier:
        return ChainedNotifier([self.hooks, LocalChainHook(self.ledger)])

    def identity(self, account: str) -> LocalIdentity:
        return LocalIdentity(account_name=account, no_shuffle=False, system_contract=self.artifacts)

    def operator(self, account: str) -> Operator:
        return next(op for op in self.roster if op.account_name == account)

    def hold_key_of(self, account: str) -> None:
        """Give the shared signer this operator's key, as that operator's node would have it."""
        self.signer.import_private_key(self.keys[account])


def make_launch(size: int = 24) -> Launch:
    roster, keys = make_roster(size)
    shuffle = shuffle_producers(roster, ENTROPY, ENTROPY_TIME)
    signer = KeyBag()
    launch = Launch(
        roster=roster,
        keys=keys,
        shuffle=shuffle,
        snapshot=make_snapshot(),
        artifacts=make_contract(),
        signer=signer,
        ledger=MemoryLedger(CHAIN_ID, signer),
    )
    launch.hold_key_of(shuffle.origin.account_name)
    return launch


async def boot_origin(launch: Launch, **settings):
    """Run the origin sequence on the launch ledger; returns its RunState."""
    origin = launch.shuffle.origin
    settings.setdefault("p2p_address", "origin.test:9876")
    return await OriginSequencer(
        launch.shuffle, launch.snapshot, launch.identity(origin.account_name), origin,
        launch.ledger, launch.signer, launch.notifier, fast_settings(**settings),
    ).run()
