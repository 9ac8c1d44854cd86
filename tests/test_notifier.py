import asyncio
import json
from datetime import datetime, timezone

import pytest

from bios.errors import NotificationError
from bios.genesis import build_genesis
from bios.notifier import ChainedNotifier, ConsoleNotifier, WebhookNotifier
from tests._support.fakes import CHAIN_ID, RecordingNotifier

GENESIS = build_genesis(datetime(2018, 6, 1, 12, tzinfo=timezone.utc), "ab" * 64, CHAIN_ID)


def test_init_and_config_ready_failures_are_fatal():
    notifier = RecordingNotifier(fail_on={"init", "config_ready"})

    with pytest.raises(NotificationError):
        asyncio.run(notifier.init(GENESIS))
    with pytest.raises(NotificationError):
        asyncio.run(notifier.config_ready(GENESIS, "bpaa", "pub", "priv", sabotage_mode=True))


def test_other_hook_failures_are_reported_and_swallowed(capsys):
    notifier = RecordingNotifier(fail_on={"bios_node_done", "sabotage", "publish_kickstart_public"})

    async def scenario():
        await notifier.bios_node_done("bpaa", GENESIS)
        await notifier.sabotage("bpab", ["bad code hash"])
        await notifier.publish_kickstart_public("bpab", "relay")

    asyncio.run(scenario())

    assert notifier.names() == ["bios_node_done", "sabotage", "publish_kickstart_public"]
    assert "Hook sabotage failed" in capsys.readouterr().out


def test_fatal_events_can_be_overridden():
    notifier = RecordingNotifier(fail_on={"init", "sabotage"}, fatal_events={"sabotage"})

    asyncio.run(notifier.init(GENESIS))
    with pytest.raises(NotificationError):
        asyncio.run(notifier.sabotage("bpab", []))


def test_event_payloads():
    notifier = RecordingNotifier()

    async def scenario():
        await notifier.init(GENESIS)
        await notifier.publish_kickstart_encrypted("bundle", ["bpab", "bpac"])
        await notifier.connect_to_bios("origin:9876", "priv", GENESIS)

    asyncio.run(scenario())

    assert notifier.payload("init") == {"genesis": GENESIS.to_dict()}
    assert notifier.payload("publish_kickstart_encrypted") == {"bundle": "bundle", "recipients": ["bpab", "bpac"]}
    assert notifier.payload("connect_to_bios") == {
        "p2p_address": "origin:9876",
        "private_key_used": "priv",
        "genesis": GENESIS.to_dict(),
    }


def test_chained_notifier_keeps_each_childs_policy():
    quiet = RecordingNotifier(fail_on={"bios_node_done"})
    strict = RecordingNotifier(fail_on={"config_ready"})
    chain = ChainedNotifier([quiet, strict])

    asyncio.run(chain.bios_node_done("bpaa", GENESIS))
    with pytest.raises(NotificationError):
        asyncio.run(chain.config_ready(GENESIS, "bpaa", "pub", "priv", sabotage_mode=True))

    assert quiet.names() == ["bios_node_done", "config_ready"]
    assert strict.names() == ["bios_node_done", "config_ready"]


def test_console_notifier_prints_payload(capsys):
    asyncio.run(ConsoleNotifier().init(GENESIS))

    out = capsys.readouterr().out
    assert "HOOK init" in out
    payload = json.loads(out[out.index("{"):])
    assert payload == {"genesis": GENESIS.to_dict()}


def test_unreachable_webhook_only_fails_fatal_events():
    notifier = WebhookNotifier("http://127.0.0.1:9/hooks", timeout=2)

    asyncio.run(notifier.bios_node_done("bpaa", GENESIS))
    with pytest.raises(NotificationError):
        asyncio.run(notifier.init(GENESIS))
