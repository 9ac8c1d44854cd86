"""
Account names

Ledger account names are 64-bit integers rendered in a 32-symbol alphabet:
12 characters of 5 bits followed by a 13th character of 4 bits. Trailing
dots are dropped when rendering.

Snapshot holder accounts are derived from GENESIS_ACCOUNT_BASE by writing the
holder's 1-based position into the free characters after the base, lowest
base-32 digit first:

    position 1  -> genesis1
    position 31 -> genesisz
    position 32 -> genesis.1
    position 33 -> genesis11

Every position below 32 ** (12 - len(base)) maps to its own name.
"""

from bios import config

CHARMAP = ".12345abcdefghijklmnopqrstuvwxyz"
NAME_CHARS = 12
CHAR_BITS = 5


def _char_value(c: str) -> int:
    value = CHARMAP.find(c)
    if value < 0:
        raise ValueError(f"invalid character {c!r} in account name")
    return value


def string_to_name(name: str) -> int:
    """Encode an account name as its 64-bit integer value."""
    if len(name) > NAME_CHARS + 1:
        raise ValueError(f"account name too long: {name!r}")

    value = 0
    for i in range(NAME_CHARS + 1):
        c = _char_value(name[i]) if i < len(name) else 0
        if i < NAME_CHARS:
            value |= (c & 0x1f) << (64 - CHAR_BITS * (i + 1))
        else:
            if c > 0x0f:
                raise ValueError(f"invalid 13th character in account name: {name!r}")
            value |= c & 0x0f
    return value


def name_to_string(value: int) -> str:
    """Render a 64-bit name value (trailing dots trimmed)."""
    chars = ["."] * (NAME_CHARS + 1)
    tmp = value
    for i in range(NAME_CHARS + 1):
        mask = 0x0f if i == 0 else 0x1f
        chars[NAME_CHARS - i] = CHARMAP[tmp & mask]
        tmp >>= 4 if i == 0 else CHAR_BITS
    return "".join(chars).rstrip(".")


def is_valid_name(name: str) -> bool:
    if not name or len(name) > NAME_CHARS:
        return False
    return all(c in CHARMAP for c in name) and name_to_string(string_to_name(name)) == name


def holder_capacity(base: str = config.GENESIS_ACCOUNT_BASE) -> int:
    """Number of distinct holder positions available after `base`."""
    return 32 ** (NAME_CHARS - len(base)) - 1


def derive_holder_account(position: int, base: str = config.GENESIS_ACCOUNT_BASE) -> str:
    """
    Account name for the snapshot holder at a 1-based position.

    Raises:
        ValueError: position outside 1..holder_capacity(base)
    """
    if len(base) >= NAME_CHARS:
        raise ValueError(f"base account {base!r} leaves no room for a position suffix")
    if position < 1 or position > holder_capacity(base):
        raise ValueError(f"holder position {position} outside supported range 1..{holder_capacity(base)}")

    value = string_to_name(base)
    index = len(base)
    remaining = position
    while remaining:
        value |= (remaining & 0x1f) << (64 - CHAR_BITS * (index + 1))
        remaining >>= CHAR_BITS
        index += 1
    return name_to_string(value)
