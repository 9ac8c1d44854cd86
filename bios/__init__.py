"""
BIOS - network bootstrap coordinator

Role resolution, genesis construction and the origin / delegate / follower
boot sequences for launching a new ledger network from a launch roster and a
genesis balance snapshot.
"""

__version__ = "0.1.0"
