"""
Lifecycle hooks

A Notifier receives one call per boot event. Subclasses only implement
dispatch(event, payload); the event methods build the payloads and apply the
failure policy: a NotificationError is reported and swallowed unless the
event is listed in config.FATAL_HOOKS.

Events:
    init                         genesis built from the local operator key
    config_ready                 origin: genesis + ephemeral keys, node should boot
    publish_kickstart_encrypted  origin: sealed bundle for the delegates
    bios_node_done               origin: boot sequence finished
    connect_to_bios              delegate/follower: connecting to the new network
    publish_kickstart_public     delegate: signed relay for followers
    sabotage                     delegate: verification failed, not endorsing
"""

import asyncio
import json
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from bios import config
from bios.errors import NotificationError
from bios.genesis import GenesisDocument


class Notifier:
    def __init__(self, fatal_events: Optional[Iterable[str]] = None):
        self.fatal_events = frozenset(config.FATAL_HOOKS if fatal_events is None else fatal_events)

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self.dispatch(event, payload)
        except NotificationError as e:
            if event in self.fatal_events:
                raise
            print(f"⚠️  Hook {event} failed (continuing): {e}")

    async def init(self, genesis: GenesisDocument) -> None:
        await self.notify("init", {"genesis": genesis.to_dict()})

    async def config_ready(self, genesis: GenesisDocument, account: str, public_key: str,
                           private_key: str, sabotage_mode: bool) -> None:
        await self.notify("config_ready", {
            "genesis": genesis.to_dict(),
            "account": account,
            "public_key": public_key,
            "private_key": private_key,
            "sabotage_mode": sabotage_mode,
        })

    async def publish_kickstart_encrypted(self, armored_bundle: str, recipients: List[str]) -> None:
        await self.notify("publish_kickstart_encrypted", {
            "bundle": armored_bundle,
            "recipients": recipients,
        })

    async def bios_node_done(self, account: str, genesis: GenesisDocument) -> None:
        await self.notify("bios_node_done", {"account": account, "genesis": genesis.to_dict()})

    async def connect_to_bios(self, p2p_address: str, private_key_used: str, genesis: GenesisDocument) -> None:
        await self.notify("connect_to_bios", {
            "p2p_address": p2p_address,
            "private_key_used": private_key_used,
            "genesis": genesis.to_dict(),
        })

    async def publish_kickstart_public(self, account: str, armored_relay: str) -> None:
        await self.notify("publish_kickstart_public", {"account": account, "relay": armored_relay})

    async def sabotage(self, account: str, failures: List[str]) -> None:
        await self.notify("sabotage", {"account": account, "failures": failures})


class ConsoleNotifier(Notifier):
    """Prints every hook so the operator can act on it by hand."""

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        print(f"\n📣 HOOK {event}")
        print(json.dumps(payload, indent=2, sort_keys=True))


class WebhookNotifier(Notifier):
    """POSTs {"event", "payload"} as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float = config.API_TIMEOUT_SECONDS,
                 fatal_events: Optional[Iterable[str]] = None):
        super().__init__(fatal_events)
        self.url = url
        self.timeout = timeout

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.url, json={"event": event, "payload": payload},
                                        timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    if response.status >= 300:
                        raise NotificationError(f"webhook {event} returned HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NotificationError(f"webhook {event}: {e}") from e


class ChainedNotifier(Notifier):
    """Fans an event out to several notifiers, each with its own failure policy."""

    def __init__(self, notifiers: Iterable[Notifier]):
        super().__init__(fatal_events=())
        self.notifiers = list(notifiers)

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        for notifier in self.notifiers:
            await notifier.notify(event, payload)

    async def notify(self, event: str, payload: Dict[str, Any]) -> None:
        # children already decided what is fatal
        await self.dispatch(event, payload)
