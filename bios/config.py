"""
BIOS LAUNCH CONFIGURATION

Network-wide constants. Every node taking part in a launch MUST run with the
same values here, otherwise roles, genesis documents and derived account
names diverge between operators.
"""

SYSTEM_ACCOUNT = "eosio"
SYMBOL = "EOS"
PRECISION = 4
UNITS_PER_TOKEN = 10 ** PRECISION
INITIAL_SUPPLY = 1_000_000_000 * UNITS_PER_TOKEN  # 1,000,000,000.0000 EOS issued to SYSTEM_ACCOUNT

# ROLE ASSIGNMENT
# shuffled_roster[0] is the origin, the next MAX_DELEGATES entries are delegates
MAX_DELEGATES = 21

# Zero-filled entropy used in no-shuffle (development) mode
NO_SHUFFLE_COMMITMENT = bytes(16)

# SNAPSHOT ACCOUNTS
# Holder accounts are named GENESIS_ACCOUNT_BASE + base-32 position suffix
GENESIS_ACCOUNT_BASE = "genesis"
WELCOME_MEMO_PREFIX = "Welcome "
WELCOME_MEMO_ADDRESS_CHARS = 6

# AUTHORITY LOCKDOWN
# After seeding, SYSTEM_ACCOUNT owner/active require this threshold while the
# ephemeral key keeps weight 1, so the ephemeral key alone can no longer sign.
LOCKDOWN_THRESHOLD = 2
EPHEMERAL_KEY_WEIGHT = 1

# WAITS (seconds)
KICKSTART_TIMEOUT_SECONDS = 6 * 60 * 60  # delegates wait up to 6h for the origin
RELAY_TIMEOUT_SECONDS = 12 * 60 * 60  # followers wait up to 12h for a delegate relay
SYNC_TIMEOUT_SECONDS = 10 * 60
SYNC_POLL_INTERVAL_SECONDS = 2.0
API_TIMEOUT_SECONDS = 30

# HOOKS
# Failures of these hooks abort the run; every other hook failure is reported only
FATAL_HOOKS = ("init", "config_ready")

# KICKSTART BUNDLE
KICKSTART_VERSION = 1
ARMOR_LINE_WIDTH = 64

# Chain id used when none is configured (local dry runs)
DEFAULT_CHAIN_ID = "00" * 32
