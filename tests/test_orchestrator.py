import asyncio

import pytest

from bios.delegate import DelegateState
from bios.errors import NotInRoster
from bios.follower import FollowerState
from bios.orchestrator import BIOS
from bios.origin import RunState
from bios.roles import Role
from bios.sources import QueueSource
from tests._support.fakes import (
    RecordingLedger,
    RecordingNotifier,
    fast_settings,
    make_launch,
)


def make_bios(launch, account, ledger=None, notifier=None, source=None, **settings):
    return BIOS(
        launch.roster,
        launch.snapshot,
        launch.identity(account),
        launch.shuffle,
        ledger or launch.ledger,
        launch.signer,
        notifier or launch.notifier,
        fast_settings(**settings),
        source or QueueSource(),
    )


def test_account_outside_roster_fails_before_any_hook_or_ledger_call():
    launch = make_launch(4)
    ledger = RecordingLedger()
    notifier = RecordingNotifier()

    with pytest.raises(NotInRoster):
        asyncio.run(make_bios(launch, "stranger", ledger=ledger, notifier=notifier).run())

    assert ledger.calls == []
    assert notifier.events == []


def test_origin_role_runs_the_origin_sequence():
    launch = make_launch(4)
    origin = launch.shuffle.origin

    result = asyncio.run(make_bios(launch, origin.account_name).run())

    assert isinstance(result, RunState)
    assert result.stage == "done"
    assert launch.hooks.names()[:2] == ["init", "config_ready"]
    assert launch.hooks.payload("init")["genesis"]["initial_key"] == origin.public_key
    assert origin.account_name in launch.ledger.state["producers"]


def test_delegate_role_waits_for_kickstart():
    launch = make_launch(4)
    delegate = launch.shuffle.delegates[0]

    result = asyncio.run(make_bios(launch, delegate.account_name, ledger=RecordingLedger(),
                                   kickstart_timeout=0.05).run())

    assert result.state is DelegateState.TIMED_OUT


def test_follower_role_waits_for_relay():
    launch = make_launch(23)
    follower = launch.shuffle.followers[0]

    result = asyncio.run(make_bios(launch, follower.account_name, ledger=RecordingLedger(),
                                   relay_timeout=0.05).run())

    assert result.state is FollowerState.TIMED_OUT


def test_whole_launch_in_one_process():
    launch = make_launch(4)
    origin = launch.shuffle.origin
    delegate = launch.shuffle.delegates[1]

    async def scenario():
        await make_bios(launch, origin.account_name).run()
        kickstart = launch.hooks.payload("publish_kickstart_encrypted")["bundle"]
        launch.hold_key_of(delegate.account_name)
        source = QueueSource()
        source.put(kickstart)
        return await make_bios(launch, delegate.account_name, source=source,
                               notifier=RecordingNotifier()).run()

    result = asyncio.run(scenario())

    assert result.state is DelegateState.DONE
    assert set(launch.ledger.state["producers"]) == {origin.account_name, delegate.account_name}


def test_schedule_is_printed(capsys):
    launch = make_launch(4)
    bios = make_bios(launch, launch.shuffle.delegates[0].account_name)

    bios.print_appointed_producers(Role.DELEGATE)

    out = capsys.readouterr().out
    assert "ONE of the appointed delegates" in out
    assert f"ORIGIN:      {launch.shuffle.origin}" in out
    assert "DELEGATE 03:" in out
    assert "DELEGATE 04:" not in out
