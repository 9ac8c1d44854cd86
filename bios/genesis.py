"""
Genesis document

The JSON consumed by new-network nodes:

    {"initial_timestamp": "2018-06-01T12:00:00",
     "initial_key": "<public key>",
     "initial_chain_id": "<hex>"}

The timestamp is UTC at second precision with no offset suffix.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Union

GENESIS_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(frozen=True)
class GenesisDocument:
    initial_timestamp: str
    initial_key: str
    initial_chain_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "initial_timestamp": self.initial_timestamp,
            "initial_key": self.initial_key,
            "initial_chain_id": self.initial_chain_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenesisDocument":
        return cls(
            initial_timestamp=data["initial_timestamp"],
            initial_key=data["initial_key"],
            initial_chain_id=data["initial_chain_id"],
        )

    @classmethod
    def from_json(cls, text: str) -> "GenesisDocument":
        return cls.from_dict(json.loads(text))

    def parsed_timestamp(self) -> datetime:
        """The initial timestamp as an aware UTC datetime."""
        return datetime.strptime(self.initial_timestamp, GENESIS_TIME_FORMAT).replace(tzinfo=timezone.utc)


def format_genesis_timestamp(timestamp: datetime) -> str:
    # Naive datetimes are taken to be UTC already
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime(GENESIS_TIME_FORMAT)


def build_genesis(timestamp: datetime, public_key: str, chain_id: Union[bytes, str]) -> GenesisDocument:
    """
    Build the genesis document.

    Args:
        timestamp: Shuffle block time (truncated to the second)
        public_key: Initial key controlling the system account
        chain_id: Target chain id, raw bytes or hex string
    """
    if isinstance(chain_id, (bytes, bytearray)):
        chain_id = bytes(chain_id).hex()
    return GenesisDocument(
        initial_timestamp=format_genesis_timestamp(timestamp),
        initial_key=public_key,
        initial_chain_id=chain_id.lower(),
    )
