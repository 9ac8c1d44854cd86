"""
Per-run settings

Values that differ between operators of the same launch (addresses, waits,
optional caps). Defaults come from bios.config, then BIOS_* environment
variables, then command line flags in run_bios.py.
"""

import os
from dataclasses import dataclass
from typing import Optional

from bios import config


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class BiosSettings:
    p2p_address: str = ""
    producer_url: str = ""
    snapshot_cap: Optional[int] = None
    kickstart_timeout: float = config.KICKSTART_TIMEOUT_SECONDS
    relay_timeout: float = config.RELAY_TIMEOUT_SECONDS
    sync_timeout: float = config.SYNC_TIMEOUT_SECONDS
    sync_poll_interval: float = config.SYNC_POLL_INTERVAL_SECONDS
    register_follower: bool = True

    @classmethod
    def from_env(cls) -> "BiosSettings":
        cap = os.environ.get("BIOS_SNAPSHOT_CAP")
        return cls(
            p2p_address=os.environ.get("BIOS_P2P_ADDRESS", ""),
            producer_url=os.environ.get("BIOS_PRODUCER_URL", ""),
            snapshot_cap=int(cap) if cap else None,
            kickstart_timeout=_env_float("BIOS_KICKSTART_TIMEOUT", config.KICKSTART_TIMEOUT_SECONDS),
            relay_timeout=_env_float("BIOS_RELAY_TIMEOUT", config.RELAY_TIMEOUT_SECONDS),
            sync_timeout=_env_float("BIOS_SYNC_TIMEOUT", config.SYNC_TIMEOUT_SECONDS),
            sync_poll_interval=_env_float("BIOS_SYNC_POLL_INTERVAL", config.SYNC_POLL_INTERVAL_SECONDS),
            register_follower=os.environ.get("BIOS_REGISTER_FOLLOWER", "1") not in ("0", "false", "no"),
        )
