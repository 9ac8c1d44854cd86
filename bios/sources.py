"""
Out-of-band bundle sources

Delegates wait for the origin's kickstart and followers for a delegate relay.
Both arrive out-of-band: pasted on stdin, or POSTed to the intake endpoint
(bios.intake), which feeds a QueueSource. Waits are bounded by a deadline and
can be cancelled with the task awaiting them.
"""

import asyncio
import sys
import threading
from typing import Callable, Optional, TypeVar

from bios.errors import KickstartError, WaitTimeout

T = TypeVar("T")


class BundleSource:
    async def receive(self) -> str:
        raise NotImplementedError


class QueueSource(BundleSource):
    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    def put(self, armored: str) -> None:
        self.queue.put_nowait(armored)

    async def receive(self) -> str:
        return await self.queue.get()


class StdinSource(BundleSource):
    """
    Reads armored text from stdin until a blank line.

    Lines come from a daemon reader thread, which interpreter shutdown does
    not wait on.
    """

    def __init__(self, prompt: str = "Paste the bundle, then an empty line:", stream=None):
        self.prompt = prompt
        self.stream = stream or sys.stdin
        self._lines: Optional[asyncio.Queue] = None

    def _start_reader(self, loop: asyncio.AbstractEventLoop) -> None:
        lines: asyncio.Queue = asyncio.Queue()

        def pump():
            # "" marks end of input
            for line in iter(self.stream.readline, ""):
                if not self._deliver(loop, lines, line):
                    return
            self._deliver(loop, lines, "")

        self._lines = lines
        threading.Thread(target=pump, name="bios-stdin-reader", daemon=True).start()

    @staticmethod
    def _deliver(loop, lines, line) -> bool:
        if loop.is_closed():
            return False
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        except RuntimeError:
            # loop closed between the check and the call
            return False
        return True

    async def receive(self) -> str:
        if self._lines is None:
            self._start_reader(asyncio.get_running_loop())
        print(f"⌨️  {self.prompt}")
        lines = []
        while True:
            line = await self._lines.get()
            if not line:
                # keep the end-of-input marker for later receives
                self._lines.put_nowait("")
                if lines:
                    break
                raise KickstartError("stdin closed before a bundle was received")
            if not line.strip():
                if lines:
                    break
                continue
            lines.append(line.strip())
        return "\n".join(lines)


async def wait_for_bundle(source: BundleSource, accept: Callable[[str], T], timeout: float,
                          what: str = "bundle") -> T:
    """
    Receive bundles until `accept` returns one, or the deadline passes.

    `accept` raises KickstartError for bundles that must be skipped; those are
    reported and waiting continues against the same deadline.

    Raises:
        WaitTimeout: nothing acceptable arrived within `timeout` seconds
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise WaitTimeout(f"no valid {what} received within {timeout}s")
        try:
            armored = await asyncio.wait_for(source.receive(), remaining)
        except asyncio.TimeoutError:
            raise WaitTimeout(f"no valid {what} received within {timeout}s")
        try:
            return accept(armored)
        except KickstartError as e:
            print(f"🚫 Rejected {what}: {e}")
