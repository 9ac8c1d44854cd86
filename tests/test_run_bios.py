import asyncio
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import run_bios
from bios.crypto_utils import generate_keypair
from bios.errors import BiosError
from bios.shuffle import shuffle_producers
from bios.sources import QueueSource
from tests._support.fakes import make_roster


def write_launch(tmp_path, producers, wrap=True):
    path = tmp_path / "launch.json"
    path.write_text(json.dumps({"producers": producers} if wrap else producers))
    return str(path)


def write_contract(tmp_path):
    code = tmp_path / "system.wasm"
    code.write_bytes(b"\x00asm\x01\x00\x00\x00")
    abi = tmp_path / "system.abi"
    abi.write_text(json.dumps({"version": "eosio::abi/1.0"}))
    return str(code), str(abi)


def test_launch_file_accepts_object_or_list(tmp_path):
    producers = [{"account_name": "alice", "public_key": "aa"}, {"account_name": "bob", "public_key": "bb"}]

    wrapped = run_bios.load_launch_roster(write_launch(tmp_path, producers))
    bare = run_bios.load_launch_roster(write_launch(tmp_path, producers, wrap=False))

    assert [op.account_name for op in wrapped] == ["alice", "bob"]
    assert wrapped == bare


def test_snapshot_balances_are_parsed_to_base_units(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps([
        {"external_address": "0xABCDEF123456", "public_key": "k1", "balance": "100.0000 EOS"},
        {"external_address": "0x000000654321", "public_key": "k2", "balance": "0.5 EOS"},
    ]))

    holders = run_bios.load_snapshot(str(path))

    assert [h.balance for h in holders] == [1_000_000, 5_000]
    assert holders[0].welcome_memo() == "Welcome 123456"
    assert run_bios.load_snapshot("") == []


def test_entropy_time_without_offset_is_utc():
    assert run_bios.parse_entropy_time("2018-06-01T12:00:00") == datetime(2018, 6, 1, 12, tzinfo=timezone.utc)


def test_flags_override_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("BIOS_P2P_ADDRESS", "env.test:1")
    monkeypatch.setenv("BIOS_SNAPSHOT_CAP", "7")
    code, abi = write_contract(tmp_path)
    args = run_bios.build_parser().parse_args([
        "--launch", "launch.json", "--code", code, "--abi", abi,
        "--p2p-address", "flag.test:2", "--relay-timeout", "30", "--no-register",
    ])

    settings = run_bios.build_settings(args)

    assert settings.p2p_address == "flag.test:2"
    assert settings.snapshot_cap == 7
    assert settings.relay_timeout == 30.0
    assert settings.register_follower is False


def test_real_launch_requires_entropy(tmp_path):
    code, abi = write_contract(tmp_path)
    launch = write_launch(tmp_path, [{"account_name": "alice", "public_key": "aa"}])
    args = run_bios.build_parser().parse_args([
        "--launch", launch, "--code", code, "--abi", abi, "--my-account", "alice", "--dry-run",
    ])

    with pytest.raises(BiosError, match="entropy"):
        asyncio.run(run_bios.run(args))


def test_dry_run_single_operator_boots_to_completion(monkeypatch, tmp_path, capsys):
    private_key, public_key = generate_keypair()
    monkeypatch.setenv("BIOS_PRIVATE_KEY", private_key)
    code, abi = write_contract(tmp_path)
    launch = write_launch(tmp_path, [{"account_name": "alice", "public_key": public_key}])
    snapshot = tmp_path / "snapshot.json"
    _, holder_key = generate_keypair()
    snapshot.write_text(json.dumps([
        {"external_address": "0xABCDEF123456", "public_key": holder_key, "balance": "100.0000 EOS"},
    ]))
    args = run_bios.build_parser().parse_args([
        "--launch", launch, "--snapshot", str(snapshot), "--code", code, "--abi", abi,
        "--my-account", "alice", "--no-shuffle", "--dry-run", "--p2p-address", "alice.test:9876",
    ])

    assert asyncio.run(run_bios.run(args)) == 0

    out = capsys.readouterr().out
    assert "I AM THE ORIGIN NODE" in out
    assert "HOOK config_ready" in out
    assert "Origin boot sequence complete" in out


def test_main_reports_bios_errors_with_exit_code_1(monkeypatch, tmp_path):
    code, abi = write_contract(tmp_path)
    launch = write_launch(tmp_path, [{"account_name": "alice", "public_key": "aa"}])
    monkeypatch.setattr("sys.argv", [
        "run_bios.py", "--launch", launch, "--code", code, "--abi", abi,
        "--my-account", "nobody", "--no-shuffle", "--dry-run",
    ])

    with pytest.raises(SystemExit) as excinfo:
        run_bios.main()

    assert excinfo.value.code == 1


def test_intake_status_reports_the_resolved_role():
    roster, _ = make_roster(3)
    shuffle = shuffle_producers(roster, no_shuffle=True)

    for op, role in zip(roster, ("origin", "delegate", "delegate")):
        client = TestClient(run_bios.intake_app_for(QueueSource(), shuffle, op.account_name))
        assert client.get("/status").json() == {"role": role, "pending": 0}
