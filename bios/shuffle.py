"""
PRODUCER SHUFFLE

Turns the launch roster into the ordered list that decides every role.

ALGORITHM:
1. Each operator gets a score: SHA256(commitment | UTC timestamp | account | public_key)
2. Operators are sorted by (score, account) ascending
3. Position 0 is the origin, the next 21 are delegates

SECURITY PROPERTIES:
- Determinism: anyone holding (roster, commitment, timestamp) re-derives the same order
- Unpredictability: the commitment must come from an event no operator controls
  (e.g. a future external block hash) fixed after the roster is final
- Auditability: order_by_commitment() reads nothing but its arguments

In no-shuffle mode the roster order is kept as-is. That mode exists for local
development only and gives no fairness guarantee.
"""

import hashlib
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from bios import config
from bios.models import Operator, ShuffleResult


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _score(operator: Operator, entropy_commitment: bytes, timestamp: datetime) -> str:
    seed_input = b"|".join([
        entropy_commitment,
        _as_utc(timestamp).isoformat().encode(),
        operator.account_name.encode(),
        operator.public_key.encode(),
    ])
    return hashlib.sha256(seed_input).hexdigest()


def order_by_commitment(roster: Sequence[Operator], entropy_commitment: bytes,
                        timestamp: datetime) -> Tuple[Operator, ...]:
    """
    Deterministic permutation of the roster.

    Args:
        roster: Operators in launch-file order
        entropy_commitment: Externally sourced entropy (e.g. block merkle root)
        timestamp: Time of the entropy event

    Returns:
        Tuple of operators, origin first
    """
    scores = {op.account_name: _score(op, entropy_commitment, timestamp) for op in roster}
    return tuple(sorted(roster, key=lambda op: (scores[op.account_name], op.account_name)))


def shuffle_producers(roster: Sequence[Operator], entropy_commitment: Optional[bytes] = None,
                      timestamp: Optional[datetime] = None, no_shuffle: bool = False,
                      now: Optional[datetime] = None) -> ShuffleResult:
    """
    Compute the ShuffleResult for a launch.

    Args:
        roster: Operators in launch-file order
        entropy_commitment: Entropy bytes (ignored when no_shuffle is set)
        timestamp: Time of the entropy event (ignored when no_shuffle is set)
        no_shuffle: Keep roster order, stamp with the current time
        now: Clock override for no_shuffle mode

    Raises:
        ValueError: Empty roster, duplicate account names, or missing entropy
    """
    if not roster:
        raise ValueError("launch roster is empty")

    names = [op.account_name for op in roster]
    if len(set(names)) != len(names):
        raise ValueError("launch roster contains duplicate account names")

    if no_shuffle:
        return ShuffleResult(
            timestamp=now or datetime.now(timezone.utc),
            entropy_commitment=config.NO_SHUFFLE_COMMITMENT,
            shuffled_roster=tuple(roster),
        )

    if entropy_commitment is None or timestamp is None:
        raise ValueError("shuffle requires an entropy commitment and its timestamp")

    return ShuffleResult(
        timestamp=timestamp,
        entropy_commitment=bytes(entropy_commitment),
        shuffled_roster=order_by_commitment(roster, entropy_commitment, timestamp),
    )
