"""
Signer capability for the smart account SDK.

A signer exposes the controlling address and signs raw 32-byte hashes. Key
material never leaves the signer implementation.
"""
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class Signer(Protocol):
    """Protocol for operation signers"""
    address: str

    def sign_hash(self, message_hash: bytes) -> bytes:
        """Sign a raw 32-byte hash (EIP-191 over the raw bytes) and return the signature"""
        ...


from .local import LocalSigner  # noqa: E402
from .delegated import DelegatedSigner  # noqa: E402


def select_signer(private_key: Optional[str] = None, wallet: Any = None) -> Signer:
    """
    Pick the signer for a pipeline run.

    A connected wallet takes precedence over a raw private key.

    Args:
        private_key: Hex private key of the account owner
        wallet: Connected wallet exposing ``address`` and ``sign_message``

    Returns:
        DelegatedSigner for a wallet, LocalSigner for a private key

    Raises:
        ValueError: If neither is provided
    """
    if wallet is not None:
        return DelegatedSigner.from_wallet(wallet)
    if private_key:
        return LocalSigner(private_key)
    raise ValueError("Either private_key or wallet must be provided")


__all__ = ["Signer", "LocalSigner", "DelegatedSigner", "select_signer"]
