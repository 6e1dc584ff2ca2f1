"""
Signer that delegates to a connected wallet.
"""
from typing import Any, Callable, Union

from ..utils import hex_to_bytes


class DelegatedSigner:
    """
    Signs through an external wallet's raw-message capability.

    Args:
        address: Address of the wallet's admin account
        sign_fn: Callable receiving the raw 32-byte hash and returning the
            signature as bytes or 0x-prefixed hex
    """

    def __init__(self, address: str, sign_fn: Callable[[bytes], Union[bytes, str]]):
        if not address:
            raise ValueError("Delegated signer requires an address")
        self.address = address
        self._sign_fn = sign_fn

    @classmethod
    def from_wallet(cls, wallet: Any) -> "DelegatedSigner":
        """
        Wrap a wallet object exposing ``address`` and ``sign_message(raw_hash)``.

        Raises:
            ValueError: If the wallet has no admin account or cannot sign raw messages
        """
        address = getattr(wallet, "address", None)
        sign_message = getattr(wallet, "sign_message", None)
        if not address:
            raise ValueError("No admin account available on connected wallet")
        if not callable(sign_message):
            raise ValueError("Connected wallet cannot sign raw messages")
        return cls(address, sign_message)

    def sign_hash(self, message_hash: bytes) -> bytes:
        return hex_to_bytes(self._sign_fn(message_hash))

    def __repr__(self) -> str:
        return f"DelegatedSigner(address={self.address})"
