import asyncio

import pytest
from aiohttp import test_utils, web

from bios.crypto_utils import generate_keypair, verify_signature
from bios.errors import AccountExists, LedgerError, WaitTimeout
from bios.ledger import (
    Action,
    Authority,
    ChainAPI,
    KeyWeight,
    format_asset,
    parse_asset,
    transaction_digest,
    wait_for_sync,
)
from bios.signer import KeyBag
from tests._support.fakes import CHAIN_ID, RecordingLedger


@pytest.mark.parametrize("units,text", [
    (0, "0.0000 EOS"),
    (1, "0.0001 EOS"),
    (1_000_000, "100.0000 EOS"),
    (10_000_000_000_000, "1000000000.0000 EOS"),
])
def test_format_asset(units, text):
    assert format_asset(units) == text
    assert parse_asset(text) == units


def test_parse_asset_accepts_short_fractions_and_bare_numbers():
    assert parse_asset("1.5 EOS") == 15_000
    assert parse_asset("42") == 420_000


@pytest.mark.parametrize("text", ["1.00001 EOS", "1.0000 BTC", "", "."])
def test_parse_asset_rejects_bad_amounts(text):
    with pytest.raises(ValueError):
        parse_asset(text)


def test_authority_weights():
    authority = Authority(threshold=2, keys=[KeyWeight("a", 1), KeyWeight("b", 1)])

    assert not authority.satisfied_by(["a"])
    assert authority.satisfied_by(["a", "b"])
    assert Authority.from_dict(authority.to_dict()) == authority


def node_app(calls):
    """Minimal stand-in for a node's HTTP API."""
    async def get_info(request):
        return web.json_response({"chain_id": CHAIN_ID.hex(), "head_block_num": 7})

    async def get_account(request):
        body = await request.json()
        if body["account_name"] != "eosio":
            return web.json_response({"error": {"name": "unknown_key", "what": "unknown key"}}, status=500)
        return web.json_response({
            "account_name": "eosio",
            "code_hash": "ab" * 32,
            "permissions": [
                {"perm_name": "owner", "required_auth": {"threshold": 2, "keys": [{"key": "k1", "weight": 1}]}},
                {"perm_name": "active", "required_auth": {"threshold": 2, "keys": [{"key": "k1", "weight": 1}]}},
            ],
        })

    async def push_transaction(request):
        body = await request.json()
        calls.append(body)
        if body["actions"][0]["data"].get("name") == "taken":
            return web.json_response(
                {"error": {"name": "account_name_exists_exception", "what": "account name already exists"}},
                status=500)
        return web.json_response({"transaction_id": "abc", "processed": {"block_num": 8}})

    async def net_connect(request):
        return web.json_response("added connection")

    app = web.Application()
    app.router.add_get("/v1/chain/get_info", get_info)
    app.router.add_post("/v1/chain/get_account", get_account)
    app.router.add_post("/v1/chain/push_transaction", push_transaction)
    app.router.add_post("/v1/net/connect", net_connect)
    return app


def with_node(check):
    calls = []

    async def scenario():
        async with test_utils.TestServer(node_app(calls)) as server:
            signer = KeyBag()
            private_key, _ = generate_keypair()
            signer.import_private_key(private_key)
            api = ChainAPI(str(server.make_url("/")), CHAIN_ID, signer)
            return await check(api)

    return asyncio.run(scenario()), calls


def test_chain_api_reads():
    async def check(api):
        return await api.get_info(), await api.get_account("eosio"), await api.get_account("nobody")

    (info, system, missing), _ = with_node(check)

    assert info["head_block_num"] == 7
    assert system.code_hash == "ab" * 32
    assert system.permissions["owner"].threshold == 2
    assert missing is None


def test_chain_api_pushes_signed_transactions():
    _, key = generate_keypair()

    async def check(api):
        return await api.create_account("eosio", "alice", key), api.signer.public_keys()[0]

    (result, signer_key), calls = with_node(check)

    assert result["transaction_id"] == "abc"
    (pushed,) = calls
    assert pushed["actions"][0]["name"] == "newaccount"
    assert pushed["actions"][0]["data"]["owner"] == {"threshold": 1, "keys": [{"key": key, "weight": 1}]}
    (signature,) = pushed["signatures"]
    assert signature["public_key"] == signer_key


def test_chain_api_signature_covers_chain_and_actions():
    async def check(api):
        return await api.issue("eosio", 10)

    _, calls = with_node(check)

    actions = [Action.from_dict(a) for a in calls[0]["actions"]]
    digest = transaction_digest(CHAIN_ID, actions)
    sig = calls[0]["signatures"][0]
    assert verify_signature(digest, sig["signature"], sig["public_key"])
    assert not verify_signature(transaction_digest(bytes(32), actions), sig["signature"], sig["public_key"])


def test_chain_api_maps_existing_account_error():
    async def check(api):
        with pytest.raises(AccountExists):
            await api.create_account("eosio", "taken", "k")
        return await api.net_connect("peer.test:9876")

    result, _ = with_node(check)

    assert result == "added connection"


def test_chain_api_unreachable_node_is_a_ledger_error():
    api = ChainAPI("http://127.0.0.1:9", CHAIN_ID, KeyBag(), timeout=2)

    with pytest.raises(LedgerError):
        asyncio.run(api.get_info())


def test_error_mapping():
    assert isinstance(ChainAPI._error_from(500, {"error": {"name": "account_name_exists_exception"}}), AccountExists)
    plain = ChainAPI._error_from(502, "bad gateway")
    assert type(plain) is LedgerError
    assert "HTTP 502" in str(plain)


def test_wait_for_sync_returns_once_chain_has_blocks():
    info = asyncio.run(wait_for_sync(RecordingLedger(), CHAIN_ID.hex(), timeout=1, interval=0.01))

    assert info["head_block_num"] == 1


def test_wait_for_sync_times_out_on_wrong_chain():
    with pytest.raises(WaitTimeout):
        asyncio.run(wait_for_sync(RecordingLedger(chain_id=bytes(32)), CHAIN_ID.hex(), timeout=0.05, interval=0.01))
