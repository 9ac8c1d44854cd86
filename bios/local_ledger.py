"""
In-process ledger

Applies the boot actions to plain dicts: accounts with owner/active
authorities, balances, deployed code and registered producers. Used for dry
runs of the whole launch on one machine and by the test suite.

A transaction is checked in full (signatures, then every authorization)
before any action touches state, and actions apply to a copy that is only
committed when all of them succeed.
"""

import copy
from typing import Any, Dict, List, Optional

from bios import config
from bios.crypto_utils import hash_data, verify_signature
from bios.errors import AccountExists, LedgerError
from bios.genesis import GenesisDocument
from bios.ledger import AccountInfo, Action, Authority, Ledger, parse_asset, transaction_digest
from bios.names import is_valid_name
from bios.notifier import Notifier


class MemoryLedger(Ledger):
    def __init__(self, chain_id: bytes, signer):
        super().__init__(chain_id, signer)
        self.state: Dict[str, Any] = self._empty_state()
        self.transactions: List[List[Dict[str, Any]]] = []
        self.peers: List[str] = []

    @staticmethod
    def _empty_state() -> Dict[str, Any]:
        return {
            "accounts": {},  # name -> {"owner": Authority, "active": Authority}
            "balances": {},
            "code": {},  # name -> code hash
            "abi": {},
            "producers": {},
            "supply": 0,
        }

    def load_genesis(self, genesis: GenesisDocument) -> None:
        """Start the chain: the system account is controlled by the genesis key."""
        if genesis.initial_chain_id != self.chain_id.hex():
            raise LedgerError(f"genesis chain id {genesis.initial_chain_id[:16]}... does not match ledger")
        self.state = self._empty_state()
        self.transactions = []
        authority = Authority.single_key(genesis.initial_key)
        self.state["accounts"][config.SYSTEM_ACCOUNT] = {"owner": authority, "active": authority}
        self.state["balances"][config.SYSTEM_ACCOUNT] = 0
        print(f"🔥 Local chain started from genesis at {genesis.initial_timestamp}")

    # ---- reads

    async def get_account(self, name: str) -> Optional[AccountInfo]:
        account = self.state["accounts"].get(name)
        if account is None:
            return None
        return AccountInfo(
            name=name,
            permissions={"owner": account["owner"], "active": account["active"]},
            code_hash=self.state["code"].get(name),
        )

    async def get_info(self) -> Dict[str, Any]:
        return {"chain_id": self.chain_id.hex(), "head_block_num": len(self.transactions)}

    async def net_connect(self, address: str) -> Dict[str, Any]:
        if address not in self.peers:
            self.peers.append(address)
        return {"status": "connected", "address": address}

    def balance_of(self, account: str) -> int:
        return self.state["balances"].get(account, 0)

    # ---- writes

    async def sign_and_broadcast(self, *actions: Action) -> Dict[str, Any]:
        if not actions:
            raise LedgerError("empty transaction")
        if config.SYSTEM_ACCOUNT not in self.state["accounts"]:
            raise LedgerError("chain not started: no genesis loaded")

        digest = transaction_digest(self.chain_id, actions)
        signing_keys = {
            sig["public_key"] for sig in self.signer.sign_all(digest)
            if verify_signature(digest, sig["signature"], sig["public_key"])
        }

        for action in actions:
            for auth in action.authorization:
                account = self.state["accounts"].get(auth.actor)
                if account is None or auth.permission not in account:
                    raise LedgerError(f"unknown authority {auth.actor}@{auth.permission}")
                if not account[auth.permission].satisfied_by(signing_keys):
                    raise LedgerError(f"missing authority of {auth.actor}@{auth.permission}")

        pending = copy.deepcopy(self.state)
        for action in actions:
            handler = getattr(self, f"_apply_{action.name}", None)
            if handler is None:
                raise LedgerError(f"unknown action {action.name}")
            handler(pending, action.data)

        self.state = pending
        self.transactions.append([a.to_dict() for a in actions])
        return {"transaction_id": hash_data(digest), "block_num": len(self.transactions)}

    def _require_account(self, state: Dict[str, Any], name: str) -> None:
        if name not in state["accounts"]:
            raise LedgerError(f"account {name} does not exist")

    def _apply_setcode(self, state, data):
        self._require_account(state, data["account"])
        state["code"][data["account"]] = hash_data(bytes.fromhex(data["code"]))

    def _apply_setabi(self, state, data):
        self._require_account(state, data["account"])
        state["abi"][data["account"]] = data["abi"]

    def _apply_newaccount(self, state, data):
        name = data["name"]
        if not is_valid_name(name):
            raise LedgerError(f"invalid account name {name!r}")
        if name in state["accounts"]:
            raise AccountExists(f"account {name} already exists")
        state["accounts"][name] = {
            "owner": Authority.from_dict(data["owner"]),
            "active": Authority.from_dict(data["active"]),
        }
        state["balances"][name] = 0

    def _apply_issue(self, state, data):
        self._require_account(state, data["to"])
        amount = parse_asset(data["quantity"])
        if amount <= 0:
            raise LedgerError("issue amount must be positive")
        state["balances"][data["to"]] += amount
        state["supply"] += amount

    def _apply_transfer(self, state, data):
        self._require_account(state, data["from"])
        self._require_account(state, data["to"])
        amount = parse_asset(data["quantity"])
        if amount <= 0:
            raise LedgerError("transfer amount must be positive")
        if state["balances"][data["from"]] < amount:
            raise LedgerError(f"overdrawn balance of {data['from']}")
        state["balances"][data["from"]] -= amount
        state["balances"][data["to"]] += amount

    def _apply_updateauth(self, state, data):
        self._require_account(state, data["account"])
        if data["permission"] not in ("owner", "active"):
            raise LedgerError(f"unsupported permission {data['permission']}")
        state["accounts"][data["account"]][data["permission"]] = Authority.from_dict(data["auth"])

    def _apply_regproducer(self, state, data):
        self._require_account(state, data["producer"])
        state["producers"][data["producer"]] = {"producer_key": data["producer_key"], "url": data["url"]}


class LocalChainHook(Notifier):
    """Boots a MemoryLedger when the origin announces its genesis (config_ready)."""

    def __init__(self, ledger: MemoryLedger):
        super().__init__()
        self.ledger = ledger

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> None:
        if event == "config_ready":
            self.ledger.load_genesis(GenesisDocument.from_dict(payload["genesis"]))
