"""
DELEGATE BOOT SEQUENCE

    AWAIT_KICKSTART -> CONNECT -> VERIFY -> REGISTER -> DONE
                                     \
                                      -> SABOTAGE

AWAIT_KICKSTART and CONNECT may also end in TIMED_OUT when their deadline
passes. SABOTAGE means the network failed verification: this delegate does
not register, does not relay the kickstart and reports why, so a malformed
network never looks delegate-endorsed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from bios.errors import KickstartError, LedgerError, WaitTimeout
from bios.kickstart import KickstartData, armor, open_kickstart, sign_relay
from bios.ledger import Ledger, wait_for_sync
from bios.models import LocalIdentity, Operator, ShuffleResult
from bios.notifier import Notifier
from bios.settings import BiosSettings
from bios.sources import BundleSource, wait_for_bundle
from bios.transitions import StateMachine
from bios.verify import verify_launch


class DelegateState(Enum):
    AWAIT_KICKSTART = "await_kickstart"
    CONNECT = "connect"
    VERIFY = "verify"
    REGISTER = "register"
    DONE = "done"
    SABOTAGE = "sabotage"
    TIMED_OUT = "timed_out"


DELEGATE_TRANSITIONS = {
    DelegateState.AWAIT_KICKSTART: frozenset({DelegateState.CONNECT, DelegateState.TIMED_OUT}),
    DelegateState.CONNECT: frozenset({DelegateState.VERIFY, DelegateState.TIMED_OUT}),
    DelegateState.VERIFY: frozenset({DelegateState.REGISTER, DelegateState.SABOTAGE}),
    DelegateState.REGISTER: frozenset({DelegateState.DONE}),
    DelegateState.DONE: frozenset(),
    DelegateState.SABOTAGE: frozenset(),
    DelegateState.TIMED_OUT: frozenset(),
}


@dataclass(frozen=True)
class SequencerResult:
    state: Enum
    history: Tuple[Enum, ...]
    kickstart: Optional[KickstartData] = None
    failures: Tuple[str, ...] = field(default_factory=tuple)
    relay: Optional[str] = None


class DelegateSequencer:
    def __init__(self, shuffle: ShuffleResult, identity: LocalIdentity, operator: Operator,
                 ledger: Ledger, signer, notifier: Notifier, source: BundleSource,
                 settings: Optional[BiosSettings] = None):
        self.shuffle = shuffle
        self.identity = identity
        self.operator = operator
        self.ledger = ledger
        self.signer = signer
        self.notifier = notifier
        self.source = source
        self.settings = settings or BiosSettings()
        self.machine = StateMachine(DELEGATE_TRANSITIONS, DelegateState.AWAIT_KICKSTART, "delegate")

    def _result(self, kickstart=None, failures=(), relay=None) -> SequencerResult:
        return SequencerResult(self.machine.state, tuple(self.machine.history), kickstart, tuple(failures), relay)

    async def run(self) -> SequencerResult:
        print("📡 STAGE 1: I am an appointed delegate. Waiting on the kickstart bundle from the origin node.")

        try:
            kickstart = await wait_for_bundle(
                self.source,
                lambda armored: open_kickstart(armored, self.operator.account_name,
                                               self.operator.public_key, self.signer),
                self.settings.kickstart_timeout,
                what="kickstart bundle",
            )
        except WaitTimeout as e:
            print(f"⏰ {e}")
            self.machine.advance(DelegateState.TIMED_OUT)
            return self._result()

        self.machine.advance(DelegateState.CONNECT)
        try:
            await self._connect(kickstart)
        except WaitTimeout as e:
            print(f"⏰ {e}")
            self.machine.advance(DelegateState.TIMED_OUT)
            return self._result(kickstart)

        self.machine.advance(DelegateState.VERIFY)
        try:
            failures = await verify_launch(self.ledger, self.shuffle, kickstart, self.identity.system_contract)
        except KickstartError as e:
            failures = [str(e)]
        if failures:
            for failure in failures:
                print(f"❌ VERIFY: {failure}")
            self.machine.advance(DelegateState.SABOTAGE)
            print("🛑 SABOTAGE: network does not match the launch data. Not registering, not relaying.")
            await self.notifier.sabotage(self.operator.account_name, failures)
            return self._result(kickstart, failures)

        print("✅ VERIFY: network matches the launch data")
        self.machine.advance(DelegateState.REGISTER)
        relay = await self._register(kickstart)

        self.machine.advance(DelegateState.DONE)
        return self._result(kickstart, relay=relay)

    async def _connect(self, kickstart: KickstartData) -> None:
        address = kickstart.bios_p2p_address
        print(f"🔗 Connecting to origin node at {address}")
        try:
            await self.ledger.net_connect(address)
        except LedgerError as e:
            raise LedgerError(f"net_connect {address}: {e}", stage="net_connect") from e
        await self.notifier.connect_to_bios(address, kickstart.private_key_used, kickstart.genesis)
        await wait_for_sync(self.ledger, kickstart.genesis.initial_chain_id,
                            self.settings.sync_timeout, self.settings.sync_poll_interval)

    async def _register(self, kickstart: KickstartData) -> str:
        try:
            await self.ledger.register_producer(
                self.operator.account_name, self.operator.public_key, self.settings.producer_url)
        except LedgerError as e:
            raise LedgerError(f"regproducer: {e}", stage="regproducer") from e

        relay = sign_relay(kickstart, self.operator.account_name, self.operator.public_key,
                           self.settings.p2p_address, self.signer)
        armored = armor(relay.to_dict())
        await self.notifier.publish_kickstart_public(self.operator.account_name, armored)
        return armored
