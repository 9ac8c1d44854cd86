"""
ORIGIN BOOT SEQUENCE

Runs only on the node the shuffle put first. Every stage is awaited before
the next one starts and the first failure ends the run:

1. Generate an ephemeral keypair and load it into the signer for this run
2. Build the genesis document around the ephemeral public key
3. config_ready hook (the operator boots the chain from that genesis)
4. Deploy the system contract
5. Create one account per operator, in shuffled order
6. Issue the initial supply to the system account
7. Create and fund one account per snapshot holder, in snapshot order
8. Lock the system account: owner + active thresholds raised in one batch
9. Seal the kickstart for the delegates, register as producer, done

Nothing is rolled back on failure. Accounts that already exist from an
earlier attempt are accepted, so a failed launch can be restarted.
"""

from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional, Sequence, Tuple

from bios import config
from bios.crypto_utils import generate_keypair
from bios.errors import AccountExists, LedgerError
from bios.genesis import GenesisDocument, build_genesis
from bios.kickstart import KickstartData, seal_kickstart
from bios.ledger import Authority, KeyWeight, Ledger, new_update_auth
from bios.models import Holder, LocalIdentity, Operator, ShuffleResult
from bios.names import derive_holder_account
from bios.notifier import Notifier
from bios.settings import BiosSettings


@dataclass(frozen=True)
class RunState:
    """Progress of an origin run; each stage returns a new instance."""
    stage: str = "start"
    public_key: Optional[str] = None
    genesis: Optional[GenesisDocument] = None
    accounts: Tuple[str, ...] = ()
    seeded: Tuple[str, ...] = ()
    kickstart: Optional[str] = None

    def advance(self, stage: str, **changes) -> "RunState":
        return replace(self, stage=stage, **changes)


def lockdown_authority(ephemeral_public_key: str) -> Authority:
    """Authority the system account ends up with: the ephemeral key alone falls short."""
    return Authority(
        threshold=config.LOCKDOWN_THRESHOLD,
        keys=[KeyWeight(ephemeral_public_key, config.EPHEMERAL_KEY_WEIGHT)],
    )


class OriginSequencer:
    def __init__(self, shuffle: ShuffleResult, snapshot: Sequence[Holder], identity: LocalIdentity,
                 operator: Operator, ledger: Ledger, signer, notifier: Notifier,
                 settings: Optional[BiosSettings] = None,
                 key_factory: Callable[[], Tuple[str, str]] = generate_keypair):
        self.shuffle = shuffle
        self.snapshot = tuple(snapshot)
        self.identity = identity
        self.operator = operator
        self.ledger = ledger
        self.signer = signer
        self.notifier = notifier
        self.settings = settings or BiosSettings()
        self.key_factory = key_factory

    async def run(self) -> RunState:
        print("🚀 STAGE 1: I AM THE ORIGIN NODE. Booting the network.")
        private_key, public_key = self.key_factory()
        print(f"🔐 Generated ephemeral key: {public_key[:32]}...")

        with self.signer.scoped_key(private_key):
            state = RunState().advance("ephemeral_key", public_key=public_key)
            state = self._build_genesis(state)
            state = await self._config_ready(state, private_key)
            state = await self._deploy_system_contract(state)
            state = await self._create_producer_accounts(state)
            state = await self._issue_supply(state)
            state = await self._seed_snapshot(state)
            state = await self._lock_system_account(state)
            state = await self._publish_kickstart(state, private_key)

        print("✅ Origin boot sequence complete")
        return state

    async def _stage(self, label: str, call: Callable[[], Awaitable], tolerate_existing: bool = False):
        try:
            return await call()
        except AccountExists as e:
            if tolerate_existing:
                print(f"⏭️  {label}: already exists, continuing")
                return None
            raise LedgerError(f"{label}: {e}", stage=label) from e
        except LedgerError as e:
            raise LedgerError(f"{label}: {e}", stage=label) from e

    def _build_genesis(self, state: RunState) -> RunState:
        genesis = build_genesis(self.shuffle.timestamp, state.public_key, self.ledger.chain_id)
        print(f"📜 Genesis: {genesis.to_json()}")
        return state.advance("genesis", genesis=genesis)

    async def _config_ready(self, state: RunState, private_key: str) -> RunState:
        await self.notifier.config_ready(
            state.genesis, self.operator.account_name, state.public_key, private_key, sabotage_mode=True
        )
        return state.advance("config_ready")

    async def _deploy_system_contract(self, state: RunState) -> RunState:
        artifacts = self.identity.system_contract
        await self._stage("setcode", lambda: self.ledger.deploy_system_contract(
            config.SYSTEM_ACCOUNT, artifacts.code, artifacts.abi))
        print(f"✅ System contract deployed to {config.SYSTEM_ACCOUNT} ({artifacts.code_hash[:16]}...)")
        return state.advance("setcode")

    async def _create_producer_accounts(self, state: RunState) -> RunState:
        created = []
        for op in self.shuffle.shuffled_roster:
            await self._stage(
                f"newaccount {op.account_name}",
                lambda op=op: self.ledger.create_account(config.SYSTEM_ACCOUNT, op.account_name, op.public_key),
                tolerate_existing=True,
            )
            created.append(op.account_name)
        print(f"✅ Created {len(created)} producer accounts")
        return state.advance("newaccount", accounts=tuple(created))

    async def _issue_supply(self, state: RunState) -> RunState:
        await self._stage("issue", lambda: self.ledger.issue(config.SYSTEM_ACCOUNT, config.INITIAL_SUPPLY))
        return state.advance("issue")

    async def _seed_snapshot(self, state: RunState) -> RunState:
        cap = self.settings.snapshot_cap
        seeded = []
        for position, holder in enumerate(self.snapshot, start=1):
            if cap is not None and position > cap:
                print(f"⚠️  Snapshot cap reached: seeded {cap} of {len(self.snapshot)} holders")
                break

            account = derive_holder_account(position)
            await self._stage(
                f"snapshot newaccount {account}",
                lambda: self.ledger.create_account(config.SYSTEM_ACCOUNT, account, holder.public_key),
                tolerate_existing=True,
            )
            await self._stage(
                f"snapshot transfer {account}",
                lambda: self.ledger.transfer(config.SYSTEM_ACCOUNT, account, holder.balance, holder.welcome_memo()),
            )
            seeded.append(account)

        print(f"✅ Seeded {len(seeded)} snapshot accounts")
        return state.advance("snapshot", seeded=tuple(seeded))

    async def _lock_system_account(self, state: RunState) -> RunState:
        authority = lockdown_authority(state.public_key)
        await self._stage("updateauth", lambda: self.ledger.sign_and_broadcast(
            new_update_auth(config.SYSTEM_ACCOUNT, "active", "owner", authority, "active"),
            new_update_auth(config.SYSTEM_ACCOUNT, "owner", "", authority, "owner"),
        ))
        print(f"🔒 {config.SYSTEM_ACCOUNT} authority locked (threshold {authority.threshold})")
        return state.advance("updateauth")

    async def _publish_kickstart(self, state: RunState, private_key: str) -> RunState:
        kickstart = KickstartData(self.settings.p2p_address, private_key, state.genesis)
        delegates = self.shuffle.delegates
        armored = seal_kickstart(kickstart, delegates)
        await self.notifier.publish_kickstart_encrypted(armored, [op.account_name for op in delegates])

        await self._stage("regproducer", lambda: self.ledger.register_producer(
            self.operator.account_name, self.operator.public_key, self.settings.producer_url))
        await self.notifier.bios_node_done(self.operator.account_name, state.genesis)
        return state.advance("done", kickstart=armored)
