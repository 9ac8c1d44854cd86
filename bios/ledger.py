"""
Ledger access

`Ledger` is the capability set the boot sequences consume. Every mutating
call is built as a list of actions and pushed through sign_and_broadcast(),
so one call is one signed transaction. `ChainAPI` talks to a node's JSON HTTP
API; `bios.local_ledger.MemoryLedger` applies the same actions in-process.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from bios import config
from bios.errors import AccountExists, LedgerError, WaitTimeout


@dataclass(frozen=True)
class Permission:
    actor: str
    permission: str = "active"

    def to_dict(self) -> Dict[str, str]:
        return {"actor": self.actor, "permission": self.permission}


@dataclass(frozen=True)
class Action:
    account: str
    name: str
    authorization: List[Permission]
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account": self.account,
            "name": self.name,
            "authorization": [p.to_dict() for p in self.authorization],
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        return cls(
            account=data["account"],
            name=data["name"],
            authorization=[Permission(p["actor"], p["permission"]) for p in data["authorization"]],
            data=data["data"],
        )


@dataclass(frozen=True)
class KeyWeight:
    key: str
    weight: int = 1


@dataclass(frozen=True)
class Authority:
    threshold: int
    keys: List[KeyWeight] = field(default_factory=list)

    @classmethod
    def single_key(cls, public_key: str) -> "Authority":
        return cls(threshold=1, keys=[KeyWeight(public_key, 1)])

    def satisfied_by(self, public_keys) -> bool:
        available = set(public_keys)
        weight = sum(kw.weight for kw in self.keys if kw.key in available)
        return weight >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "threshold": self.threshold,
            "keys": [{"key": kw.key, "weight": kw.weight} for kw in self.keys],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Authority":
        return cls(
            threshold=int(data["threshold"]),
            keys=[KeyWeight(k["key"], int(k.get("weight", 1))) for k in data.get("keys", [])],
        )


@dataclass(frozen=True)
class AccountInfo:
    name: str
    permissions: Dict[str, Authority]
    code_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountInfo":
        return cls(
            name=data["account_name"],
            permissions={
                p["perm_name"]: Authority.from_dict(p["required_auth"])
                for p in data.get("permissions", [])
            },
            code_hash=data.get("code_hash") or None,
        )


def format_asset(amount: int) -> str:
    """Render base units as an asset string, e.g. 1000000 -> '100.0000 EOS'."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), config.UNITS_PER_TOKEN)
    return f"{sign}{whole}.{frac:0{config.PRECISION}d} {config.SYMBOL}"


def parse_asset(text: str) -> int:
    """Parse '100.0000 EOS' (or a bare decimal) into base units."""
    parts = str(text).strip().split()
    if not parts:
        raise ValueError("empty asset amount")
    if len(parts) == 2 and parts[1] != config.SYMBOL:
        raise ValueError(f"unexpected symbol in asset {text!r}")
    number = parts[0]
    negative = number.startswith("-")
    whole, _, frac = number.lstrip("-").partition(".")
    if len(frac) > config.PRECISION or not (whole or frac):
        raise ValueError(f"invalid asset amount {text!r}")
    units = int(whole or "0") * config.UNITS_PER_TOKEN + int(frac.ljust(config.PRECISION, "0") or "0")
    return -units if negative else units


def transaction_digest(chain_id: bytes, actions: Sequence[Action]) -> bytes:
    """Digest signed for a batch of actions on a given chain."""
    body = json.dumps([a.to_dict() for a in actions], sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(chain_id + body.encode()).digest()


def new_update_auth(account: str, permission: str, parent: str, authority: Authority,
                    using_permission: str) -> Action:
    return Action(
        account=config.SYSTEM_ACCOUNT,
        name="updateauth",
        authorization=[Permission(account, using_permission)],
        data={
            "account": account,
            "permission": permission,
            "parent": parent,
            "auth": authority.to_dict(),
        },
    )


class Ledger:
    """
    Base class for ledger backends.

    Subclasses implement sign_and_broadcast, get_account, get_info and
    net_connect; the typed helpers below build the actions.
    """

    def __init__(self, chain_id: bytes, signer):
        self.chain_id = chain_id
        self.signer = signer

    async def sign_and_broadcast(self, *actions: Action) -> Dict[str, Any]:
        raise NotImplementedError

    async def get_account(self, name: str) -> Optional[AccountInfo]:
        raise NotImplementedError

    async def get_info(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def net_connect(self, address: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def deploy_system_contract(self, account: str, code: bytes, abi: Dict[str, Any]) -> Dict[str, Any]:
        auth = [Permission(account, "active")]
        return await self.sign_and_broadcast(
            Action(config.SYSTEM_ACCOUNT, "setcode", auth, {"account": account, "code": code.hex()}),
            Action(config.SYSTEM_ACCOUNT, "setabi", auth, {"account": account, "abi": abi}),
        )

    async def create_account(self, creator: str, new_account: str, owner_key: str) -> Dict[str, Any]:
        authority = Authority.single_key(owner_key).to_dict()
        return await self.sign_and_broadcast(
            Action(config.SYSTEM_ACCOUNT, "newaccount", [Permission(creator, "active")], {
                "creator": creator,
                "name": new_account,
                "owner": authority,
                "active": authority,
            })
        )

    async def issue(self, account: str, amount: int, memo: str = "") -> Dict[str, Any]:
        return await self.sign_and_broadcast(
            Action(config.SYSTEM_ACCOUNT, "issue", [Permission(config.SYSTEM_ACCOUNT, "active")], {
                "to": account,
                "quantity": format_asset(amount),
                "memo": memo,
            })
        )

    async def transfer(self, from_account: str, to: str, amount: int, memo: str) -> Dict[str, Any]:
        return await self.sign_and_broadcast(
            Action(config.SYSTEM_ACCOUNT, "transfer", [Permission(from_account, "active")], {
                "from": from_account,
                "to": to,
                "quantity": format_asset(amount),
                "memo": memo,
            })
        )

    async def register_producer(self, account: str, public_key: str, url: str = "") -> Dict[str, Any]:
        return await self.sign_and_broadcast(
            Action(config.SYSTEM_ACCOUNT, "regproducer", [Permission(account, "active")], {
                "producer": account,
                "producer_key": public_key,
                "url": url,
            })
        )


class ChainAPI(Ledger):
    """Ledger backed by a node's HTTP API."""

    def __init__(self, api_url: str, chain_id: bytes, signer, timeout: float = config.API_TIMEOUT_SECONDS):
        super().__init__(chain_id, signer)
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def _call(self, method: str, path: str, body: Any = None) -> Any:
        url = f"{self.api_url}{path}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(method, url, json=body,
                                           timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    try:
                        data = await response.json(content_type=None)
                    except ValueError:
                        data = {"error": {"name": "invalid_response", "what": await response.text()}}
                    if response.status >= 400:
                        raise self._error_from(response.status, data)
                    return data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LedgerError(f"{method} {url}: {e}") from e

    @staticmethod
    def _error_from(status: int, data: Any) -> LedgerError:
        error = data.get("error", {}) if isinstance(data, dict) else {}
        name = error.get("name", "")
        message = f"HTTP {status} {name}: {error.get('what', '')}".strip()
        if name == "account_name_exists_exception":
            return AccountExists(message)
        return LedgerError(message)

    async def sign_and_broadcast(self, *actions: Action) -> Dict[str, Any]:
        digest = transaction_digest(self.chain_id, actions)
        return await self._call("POST", "/v1/chain/push_transaction", {
            "actions": [a.to_dict() for a in actions],
            "signatures": self.signer.sign_all(digest),
        })

    async def get_account(self, name: str) -> Optional[AccountInfo]:
        try:
            data = await self._call("POST", "/v1/chain/get_account", {"account_name": name})
        except LedgerError as e:
            if "HTTP 404" in str(e) or "unknown_key" in str(e):
                return None
            raise
        return AccountInfo.from_dict(data)

    async def get_info(self) -> Dict[str, Any]:
        return await self._call("GET", "/v1/chain/get_info")

    async def net_connect(self, address: str) -> Dict[str, Any]:
        return await self._call("POST", "/v1/net/connect", address)


async def wait_for_sync(ledger: Ledger, chain_id: str, timeout: float = config.SYNC_TIMEOUT_SECONDS,
                        interval: float = config.SYNC_POLL_INTERVAL_SECONDS) -> Dict[str, Any]:
    """
    Poll the ledger until it reports the expected chain with at least one block.

    Raises:
        WaitTimeout: the node did not sync before the deadline
    """
    async def _poll():
        while True:
            try:
                info = await ledger.get_info()
                if info.get("chain_id") == chain_id and info.get("head_block_num", 0) > 0:
                    return info
                print(f"⏳ Waiting for sync: chain {str(info.get('chain_id'))[:16]}... "
                      f"head {info.get('head_block_num', 0)}")
            except LedgerError as e:
                print(f"⏳ Waiting for sync: node not ready ({e})")
            await asyncio.sleep(interval)

    try:
        return await asyncio.wait_for(_poll(), timeout)
    except asyncio.TimeoutError:
        raise WaitTimeout(f"node did not sync chain {chain_id[:16]}... within {timeout}s")
