from typing import Optional, Sequence, Union

from bios.delegate import DelegateSequencer, SequencerResult
from bios.follower import FollowerSequencer
from bios.genesis import build_genesis
from bios.ledger import Ledger
from bios.models import Holder, LocalIdentity, Operator, ShuffleResult
from bios.notifier import Notifier
from bios.origin import OriginSequencer, RunState
from bios.roles import Role, RoleIndex, my_producer_def
from bios.settings import BiosSettings
from bios.sources import BundleSource, StdinSource


class BIOS:
    """
    Entry point of a boot run.

    Resolves the local operator and its role from the shuffle, fires the init
    hook, prints the launch schedule and hands over to the matching sequencer.
    """

    def __init__(self, roster: Sequence[Operator], snapshot: Sequence[Holder], identity: LocalIdentity,
                 shuffle: ShuffleResult, ledger: Ledger, signer, notifier: Notifier,
                 settings: Optional[BiosSettings] = None, source: Optional[BundleSource] = None):
        self.roster = tuple(roster)
        self.snapshot = tuple(snapshot)
        self.identity = identity
        self.shuffle = shuffle
        self.roles = RoleIndex(shuffle)
        self.ledger = ledger
        self.signer = signer
        self.notifier = notifier
        self.settings = settings or BiosSettings()
        self.source = source

    async def run(self) -> Union[RunState, SequencerResult]:
        operator = my_producer_def(self.identity, self.roster)
        role = self.roles.role_of(operator.account_name)

        # TODO: check the signer actually holds operator.public_key before any hook fires
        await self.notifier.init(build_genesis(self.shuffle.timestamp, operator.public_key, self.ledger.chain_id))
        self.print_appointed_producers(role)

        if role is Role.ORIGIN:
            result = await OriginSequencer(
                self.shuffle, self.snapshot, self.identity, operator,
                self.ledger, self.signer, self.notifier, self.settings,
            ).run()
        elif role is Role.DELEGATE:
            result = await DelegateSequencer(
                self.shuffle, self.identity, operator, self.ledger, self.signer, self.notifier,
                self.source or StdinSource("Paste the kickstart bundle from the origin node, then an empty line:"),
                self.settings,
            ).run()
        else:
            result = await FollowerSequencer(
                self.shuffle, self.identity, operator, self.ledger, self.notifier,
                self.source or StdinSource("Paste a delegate's relay bundle, then an empty line:"),
                self.settings, self.roles,
            ).run()

        print("BIOS run done")
        return result

    def print_appointed_producers(self, role: Role) -> None:
        if role is Role.ORIGIN:
            print("STAGE 0: I AM THE ORIGIN NODE! Let's get the ball rolling.")
        elif role is Role.DELEGATE:
            print("STAGE 0: I am NOT the origin node, but I AM ONE of the appointed delegates. "
                  "Stay tuned and watch the origin operator's channels.")
        else:
            print("STAGE 0: I'm not part of the appointed producers, let's wait and be ready to join.")

        print(f"ORIGIN:      {self.shuffle.origin}")
        for i, op in enumerate(self.shuffle.delegates, start=1):
            print(f"DELEGATE {i:02d}: {op}")
