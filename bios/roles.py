from enum import Enum
from typing import Dict, Sequence, Tuple

from bios.errors import NotInRoster
from bios.models import LocalIdentity, Operator, ShuffleResult


class Role(Enum):
    ORIGIN = "origin"
    DELEGATE = "delegate"
    FOLLOWER = "follower"


class RoleIndex:
    """
    Role lookups over a ShuffleResult.

    The position index is built once; role_of() is a dict lookup, so it can be
    called freely while verifying relays or printing the schedule.
    """

    def __init__(self, shuffle: ShuffleResult):
        self.shuffle = shuffle
        self._positions: Dict[str, int] = {
            op.account_name: i for i, op in enumerate(shuffle.shuffled_roster)
        }
        self._delegate_count = len(shuffle.delegates)

    def position_of(self, account: str) -> int:
        return self._positions.get(account, -1)

    def role_of(self, account: str) -> Role:
        # Accounts outside the roster are treated like any non-appointed operator
        position = self._positions.get(account)
        if position == 0:
            return Role.ORIGIN
        if position is not None and position <= self._delegate_count:
            return Role.DELEGATE
        return Role.FOLLOWER

    def operator(self, account: str) -> Operator:
        position = self._positions.get(account)
        if position is None:
            raise NotInRoster(account)
        return self.shuffle.shuffled_roster[position]

    def appointed(self) -> Tuple[Operator, ...]:
        return self.shuffle.appointed


def my_producer_def(identity: LocalIdentity, roster: Sequence[Operator]) -> Operator:
    """Find the local operator in the launch roster (launch-file order)."""
    for op in roster:
        if op.account_name == identity.account_name:
            return op
    raise NotInRoster(identity.account_name)
