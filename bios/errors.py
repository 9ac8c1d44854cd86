"""
BIOS errors

Everything a boot run can fail with derives from BiosError so the launcher
can report it and exit without a traceback.
"""

from typing import List, Optional


class BiosError(Exception):
    """Base class for boot failures."""


class NotInRoster(BiosError):
    """The local account is not part of the launch roster."""

    def __init__(self, account: str):
        self.account = account
        super().__init__(f"account {account!r} not found in launch roster")


class LedgerError(BiosError):
    """
    A ledger call failed.

    `stage` names the boot stage that issued the call (e.g. "newaccount bob")
    once the error has been wrapped by a sequencer.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        self.stage = stage
        super().__init__(message)


class AccountExists(LedgerError):
    """The ledger refused to create an account that already exists."""


class NotificationError(BiosError):
    """A hook could not be delivered."""


class VerificationFailure(BiosError):
    """The launched network does not match the expected configuration."""

    def __init__(self, failures: List[str]):
        self.failures = list(failures)
        super().__init__("launch verification failed: " + "; ".join(self.failures))


class KickstartError(BiosError):
    """A kickstart bundle or relay could not be read, opened or trusted."""


class WaitTimeout(BiosError):
    """An external input or sync did not arrive before its deadline."""
