"""
Launch verification

Checks a freshly booted network against what every operator can derive on
their own: the shuffle, the roster keys and the system contract artifacts.
Delegates sabotage on any failure; followers only report.
"""

from typing import List

from bios import config
from bios.genesis import format_genesis_timestamp
from bios.kickstart import KickstartData
from bios.ledger import Authority, Ledger
from bios.errors import KickstartError
from bios.models import ContractArtifacts, ShuffleResult


def _is_single_key(authority: Authority, public_key: str) -> bool:
    return (authority.threshold == 1
            and len(authority.keys) == 1
            and authority.keys[0].key == public_key
            and authority.keys[0].weight >= 1)


async def verify_launch(ledger: Ledger, shuffle: ShuffleResult, kickstart: KickstartData,
                        artifacts: ContractArtifacts) -> List[str]:
    """
    Returns:
        List of human-readable failures, empty when the launch checks out
    """
    failures: List[str] = []
    genesis = kickstart.genesis

    # no-shuffle runs are stamped with each node's own clock
    if shuffle.entropy_commitment != config.NO_SHUFFLE_COMMITMENT:
        expected_timestamp = format_genesis_timestamp(shuffle.timestamp)
        if genesis.initial_timestamp != expected_timestamp:
            failures.append(f"genesis timestamp {genesis.initial_timestamp} != shuffle time {expected_timestamp}")

    try:
        ephemeral_key = kickstart.public_key_used
    except (ValueError, AssertionError):
        raise KickstartError("kickstart carries an invalid private key")
    if genesis.initial_key != ephemeral_key:
        failures.append("genesis initial key does not match the relayed private key")

    info = await ledger.get_info()
    if info.get("chain_id") != genesis.initial_chain_id:
        failures.append(f"node chain id {str(info.get('chain_id'))[:16]}... != genesis chain id")

    system = await ledger.get_account(config.SYSTEM_ACCOUNT)
    if system is None:
        failures.append(f"system account {config.SYSTEM_ACCOUNT} missing")
    else:
        if system.code_hash != artifacts.code_hash:
            failures.append(f"system contract code hash {system.code_hash} != expected {artifacts.code_hash}")
        for permission in ("owner", "active"):
            authority = system.permissions.get(permission)
            if authority is None:
                failures.append(f"{config.SYSTEM_ACCOUNT}@{permission} missing")
            elif authority.satisfied_by([ephemeral_key]):
                failures.append(f"{config.SYSTEM_ACCOUNT}@{permission} still satisfiable by the ephemeral key")

    for op in shuffle.appointed:
        account = await ledger.get_account(op.account_name)
        if account is None:
            failures.append(f"producer account {op.account_name} missing")
            continue
        for permission in ("owner", "active"):
            authority = account.permissions.get(permission)
            if authority is None or not _is_single_key(authority, op.public_key):
                failures.append(f"{op.account_name}@{permission} does not match the roster key")

    return failures
