"""
Private-key signer.
"""
import re

from eth_account import Account
from eth_account.messages import encode_defunct

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def is_valid_private_key(value: str) -> bool:
    """True for 64 hex characters, with or without 0x prefix"""
    return bool(value) and bool(_PRIVATE_KEY_RE.match(value.strip()))


def format_private_key(value: str) -> str:
    """Normalize a private key to 0x-prefixed form"""
    value = value.strip()
    return value if value.startswith("0x") else "0x" + value


class LocalSigner:
    """Signs with a private key held in memory. The key is not exposed."""

    def __init__(self, private_key: str):
        if not is_valid_private_key(private_key):
            raise ValueError("Invalid private key format. Must be 64 hex characters (with or without 0x prefix)")
        self._account = Account.from_key(format_private_key(private_key))
        self.address = self._account.address

    def sign_hash(self, message_hash: bytes) -> bytes:
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return bytes(signed.signature)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
