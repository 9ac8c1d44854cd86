"""
Launch data model

Immutable inputs of a boot run: the launch roster, the genesis snapshot, the
local identity and the shuffle every role query is derived from.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Tuple

from bios import config
from bios.crypto_utils import hash_data


@dataclass(frozen=True)
class Operator:
    """A candidate block producer from the launch file."""
    account_name: str
    public_key: str

    def __str__(self) -> str:
        return f"{self.account_name} ({self.public_key[:16]}...)"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operator":
        return cls(account_name=data["account_name"], public_key=data["public_key"])


@dataclass(frozen=True)
class Holder:
    """A snapshot balance holder; balance is in base units (see config.PRECISION)."""
    external_address: str
    public_key: str
    balance: int

    def welcome_memo(self) -> str:
        return config.WELCOME_MEMO_PREFIX + self.external_address[-config.WELCOME_MEMO_ADDRESS_CHARS:]


@dataclass(frozen=True)
class ContractArtifacts:
    code: bytes
    abi: Dict[str, Any] = field(default_factory=dict)

    @property
    def code_hash(self) -> str:
        return hash_data(self.code)


@dataclass(frozen=True)
class LocalIdentity:
    account_name: str
    no_shuffle: bool
    system_contract: ContractArtifacts


@dataclass(frozen=True)
class ShuffleResult:
    """
    Outcome of the producer shuffle.

    shuffled_roster[0] is the origin, the next config.MAX_DELEGATES entries are
    delegates, everyone after that is a follower.
    """
    timestamp: datetime
    entropy_commitment: bytes
    shuffled_roster: Tuple[Operator, ...]

    @property
    def origin(self) -> Operator:
        return self.shuffled_roster[0]

    @property
    def delegates(self) -> Tuple[Operator, ...]:
        return self.shuffled_roster[1:config.MAX_DELEGATES + 1]

    @property
    def followers(self) -> Tuple[Operator, ...]:
        return self.shuffled_roster[config.MAX_DELEGATES + 1:]

    @property
    def appointed(self) -> Tuple[Operator, ...]:
        return self.shuffled_roster[:config.MAX_DELEGATES + 1]
