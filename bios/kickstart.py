"""
KICKSTART BUNDLE

What the origin hands to the delegates once the chain is initialised: where
to connect, the ephemeral private key the chain was booted with, and the
genesis document.

SEALING:
- For every delegate: ECDH(ephemeral key, delegate roster key) on secp256k1
- HKDF-SHA256 over the shared secret, bound to the delegate account name
- Fernet token of the bundle JSON under that key

Only a delegate holding its roster key can open its token. The envelope is
armored as unpadded base64 wrapped at 64 columns so it can be pasted in chat
or a terminal; a blank line ends it.

RELAY:
Delegates re-publish the kickstart with their own p2p address, signed with
their roster key. Followers accept relays only from delegates of the shuffle.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Sequence

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from bios import config
from bios.crypto_utils import ecdh_shared_secret, public_key_from_private, verify_signature
from bios.errors import KickstartError
from bios.genesis import GenesisDocument
from bios.models import Operator
from bios.roles import Role, RoleIndex


@dataclass(frozen=True)
class KickstartData:
    bios_p2p_address: str
    private_key_used: str
    genesis: GenesisDocument

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bios_p2p_address": self.bios_p2p_address,
            "private_key_used": self.private_key_used,
            "genesis": self.genesis.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KickstartData":
        return cls(
            bios_p2p_address=data["bios_p2p_address"],
            private_key_used=data["private_key_used"],
            genesis=GenesisDocument.from_dict(data["genesis"]),
        )

    @property
    def public_key_used(self) -> str:
        return public_key_from_private(self.private_key_used)


def armor(payload: Dict[str, Any]) -> str:
    encoded = base64.b64encode(json.dumps(payload, sort_keys=True).encode()).decode().rstrip("=")
    width = config.ARMOR_LINE_WIDTH
    return "\n".join(encoded[i:i + width] for i in range(0, len(encoded), width))


def unarmor(text: str) -> Dict[str, Any]:
    """
    Decode armored text (whitespace and line breaks ignored, padding optional).

    Raises:
        KickstartError: text is not base64-encoded JSON
    """
    compact = "".join(text.split())
    if not compact:
        raise KickstartError("empty bundle")
    compact += "=" * (-len(compact) % 4)
    try:
        payload = json.loads(base64.b64decode(compact, validate=True))
    except (binascii.Error, ValueError) as e:
        raise KickstartError(f"unreadable bundle: {e}") from e
    if not isinstance(payload, dict):
        raise KickstartError("unreadable bundle: not a JSON object")
    return payload


def _fernet(shared_secret: bytes, account: str) -> Fernet:
    key = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=b"bios-kickstart|" + account.encode(),
    ).derive(shared_secret)
    return Fernet(base64.urlsafe_b64encode(key))


def seal_kickstart(data: KickstartData, recipients: Sequence[Operator]) -> str:
    """
    Encrypt the kickstart for each recipient; returns the armored envelope.

    The sending key is the ephemeral key carried inside the bundle itself.
    """
    plaintext = json.dumps(data.to_dict(), sort_keys=True).encode()
    tokens = {}
    for op in recipients:
        secret = ecdh_shared_secret(data.private_key_used, op.public_key)
        tokens[op.account_name] = _fernet(secret, op.account_name).encrypt(plaintext).decode()
    return armor({
        "version": config.KICKSTART_VERSION,
        "sender_key": data.public_key_used,
        "recipients": tokens,
    })


def open_kickstart(armored: str, account: str, public_key: str, signer) -> KickstartData:
    """
    Decrypt our copy of the kickstart.

    Raises:
        KickstartError: unreadable, not addressed to `account`, or tampered with
    """
    envelope = unarmor(armored)
    if envelope.get("version") != config.KICKSTART_VERSION:
        raise KickstartError(f"unsupported kickstart version {envelope.get('version')!r}")
    recipients = envelope.get("recipients")
    if not isinstance(recipients, dict):
        raise KickstartError("malformed kickstart: recipients is not an object")
    token = recipients.get(account)
    if token is None:
        raise KickstartError(f"kickstart bundle is not addressed to {account}")
    sender_key = envelope.get("sender_key")
    if not isinstance(token, str) or not isinstance(sender_key, str):
        raise KickstartError("malformed kickstart: token and sender key must be strings")

    try:
        secret = signer.shared_secret(public_key, sender_key)
        plaintext = _fernet(secret, account).decrypt(token.encode())
        data = KickstartData.from_dict(json.loads(plaintext))
        inner_key = data.public_key_used
    except (InvalidToken, KeyError, ValueError, TypeError, AttributeError, AssertionError) as e:
        raise KickstartError(f"cannot open kickstart bundle: {e!r}") from e

    if inner_key != sender_key:
        raise KickstartError("kickstart sender key does not match the key inside the bundle")
    return data


@dataclass(frozen=True)
class RelayBundle:
    account: str
    p2p_address: str
    private_key_used: str
    genesis: GenesisDocument
    signature: str = ""

    def signing_payload(self) -> bytes:
        return json.dumps({
            "account": self.account,
            "p2p_address": self.p2p_address,
            "private_key_used": self.private_key_used,
            "genesis": self.genesis.to_dict(),
        }, sort_keys=True, separators=(",", ":")).encode()

    def to_dict(self) -> Dict[str, Any]:
        data = json.loads(self.signing_payload())
        data["signature"] = self.signature
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelayBundle":
        fields = ("account", "p2p_address", "private_key_used", "signature")
        try:
            if not all(isinstance(data[name], str) for name in fields):
                raise KickstartError("malformed relay: account, address, key and signature must be strings")
            return cls(
                account=data["account"],
                p2p_address=data["p2p_address"],
                private_key_used=data["private_key_used"],
                genesis=GenesisDocument.from_dict(data["genesis"]),
                signature=data["signature"],
            )
        except (KeyError, TypeError) as e:
            raise KickstartError(f"malformed relay: {e!r}") from e

    def to_kickstart(self) -> KickstartData:
        return KickstartData(self.p2p_address, self.private_key_used, self.genesis)


def sign_relay(kickstart: KickstartData, account: str, public_key: str, p2p_address: str, signer) -> RelayBundle:
    unsigned = RelayBundle(account, p2p_address, kickstart.private_key_used, kickstart.genesis)
    return RelayBundle(
        account=account,
        p2p_address=p2p_address,
        private_key_used=kickstart.private_key_used,
        genesis=kickstart.genesis,
        signature=signer.sign(unsigned.signing_payload(), public_key),
    )


def verify_relay(relay: RelayBundle, roles: RoleIndex) -> None:
    """
    Check that a relay comes from a delegate of this launch.

    Raises:
        KickstartError: sender is not a delegate or the signature does not verify
    """
    if roles.role_of(relay.account) is not Role.DELEGATE:
        raise KickstartError(f"relay from {relay.account}, which is not a delegate of this launch")
    public_key = roles.operator(relay.account).public_key
    if not verify_signature(relay.signing_payload(), relay.signature, public_key):
        raise KickstartError(f"relay signature from {relay.account} does not verify")
