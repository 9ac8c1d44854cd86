"""
FOLLOWER BOOT SEQUENCE

    AWAIT_RELAY -> SYNC -> REGISTER -> DONE
                      \-> DONE            (registration disabled)

A follower waits for a relay signed by one of the launch's delegates, joins
the network through that delegate and optionally registers as a producer
candidate. The delegates have already verified the network; the follower runs
the same checks only as a report and never sabotages.
"""

from enum import Enum
from typing import Optional

from bios.errors import KickstartError, LedgerError, WaitTimeout
from bios.delegate import SequencerResult
from bios.kickstart import RelayBundle, unarmor, verify_relay
from bios.ledger import Ledger, wait_for_sync
from bios.models import LocalIdentity, Operator, ShuffleResult
from bios.notifier import Notifier
from bios.roles import RoleIndex
from bios.settings import BiosSettings
from bios.sources import BundleSource, wait_for_bundle
from bios.transitions import StateMachine
from bios.verify import verify_launch


class FollowerState(Enum):
    AWAIT_RELAY = "await_relay"
    SYNC = "sync"
    REGISTER = "register"
    DONE = "done"
    TIMED_OUT = "timed_out"


FOLLOWER_TRANSITIONS = {
    FollowerState.AWAIT_RELAY: frozenset({FollowerState.SYNC, FollowerState.TIMED_OUT}),
    FollowerState.SYNC: frozenset({FollowerState.REGISTER, FollowerState.DONE, FollowerState.TIMED_OUT}),
    FollowerState.REGISTER: frozenset({FollowerState.DONE}),
    FollowerState.DONE: frozenset(),
    FollowerState.TIMED_OUT: frozenset(),
}


class FollowerSequencer:
    def __init__(self, shuffle: ShuffleResult, identity: LocalIdentity, operator: Operator,
                 ledger: Ledger, notifier: Notifier, source: BundleSource,
                 settings: Optional[BiosSettings] = None, roles: Optional[RoleIndex] = None):
        self.shuffle = shuffle
        self.identity = identity
        self.operator = operator
        self.ledger = ledger
        self.notifier = notifier
        self.source = source
        self.settings = settings or BiosSettings()
        self.roles = roles or RoleIndex(shuffle)
        self.machine = StateMachine(FOLLOWER_TRANSITIONS, FollowerState.AWAIT_RELAY, "follower")

    def _accept_relay(self, armored: str) -> RelayBundle:
        relay = RelayBundle.from_dict(unarmor(armored))
        verify_relay(relay, self.roles)
        return relay

    async def run(self) -> SequencerResult:
        print("⏳ STAGE 1: Not appointed this launch. Waiting for a delegate to relay the kickstart.")

        try:
            relay = await wait_for_bundle(self.source, self._accept_relay, self.settings.relay_timeout,
                                          what="relay")
        except WaitTimeout as e:
            print(f"⏰ {e}")
            self.machine.advance(FollowerState.TIMED_OUT)
            return SequencerResult(self.machine.state, tuple(self.machine.history))

        kickstart = relay.to_kickstart()
        print(f"📨 Relay accepted from delegate {relay.account}")
        self.machine.advance(FollowerState.SYNC)
        try:
            await self._sync(relay)
        except WaitTimeout as e:
            print(f"⏰ {e}")
            self.machine.advance(FollowerState.TIMED_OUT)
            return SequencerResult(self.machine.state, tuple(self.machine.history), kickstart)

        failures = await self._report(kickstart)

        if self.settings.register_follower:
            self.machine.advance(FollowerState.REGISTER)
            try:
                await self.ledger.register_producer(
                    self.operator.account_name, self.operator.public_key, self.settings.producer_url)
            except LedgerError as e:
                raise LedgerError(f"regproducer: {e}", stage="regproducer") from e

        self.machine.advance(FollowerState.DONE)
        return SequencerResult(self.machine.state, tuple(self.machine.history), kickstart, tuple(failures))

    async def _sync(self, relay: RelayBundle) -> None:
        print(f"🔗 Connecting to delegate {relay.account} at {relay.p2p_address}")
        try:
            await self.ledger.net_connect(relay.p2p_address)
        except LedgerError as e:
            raise LedgerError(f"net_connect {relay.p2p_address}: {e}", stage="net_connect") from e
        await self.notifier.connect_to_bios(relay.p2p_address, relay.private_key_used, relay.genesis)
        await wait_for_sync(self.ledger, relay.genesis.initial_chain_id,
                            self.settings.sync_timeout, self.settings.sync_poll_interval)

    async def _report(self, kickstart) -> list:
        try:
            failures = await verify_launch(self.ledger, self.shuffle, kickstart, self.identity.system_contract)
        except KickstartError as e:
            failures = [str(e)]
        for failure in failures:
            print(f"⚠️  VERIFY (report only): {failure}")
        if not failures:
            print("✅ VERIFY: network matches the launch data")
        return failures
