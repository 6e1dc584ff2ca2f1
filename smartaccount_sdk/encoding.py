"""
Contract ABIs and call-data encoding for smart account operations.

Everything here is pure: no RPC access, deterministic output.
"""
from typing import Optional

from eth_abi import encode
from web3 import Web3

from .models import TransferIntent
from .utils import checksum, hex_to_bytes

ENTRY_POINT_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "sender", "type": "address"},
            {"internalType": "uint192", "name": "key", "type": "uint192"}
        ],
        "name": "getNonce",
        "outputs": [{"internalType": "uint256", "name": "nonce", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]

ACCOUNT_FACTORY_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "admin", "type": "address"},
            {"internalType": "bytes", "name": "data", "type": "bytes"}
        ],
        "name": "getAddress",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"internalType": "address", "name": "admin", "type": "address"},
            {"internalType": "bytes", "name": "data", "type": "bytes"}
        ],
        "name": "createAccount",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "nonpayable",
        "type": "function"
    }
]

ERC20_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "to", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 over a canonical function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


CREATE_ACCOUNT_SELECTOR = function_selector("createAccount(address,bytes)")
EXECUTE_SELECTOR = function_selector("execute(address,uint256,bytes)")
TRANSFER_SELECTOR = function_selector("transfer(address,uint256)")


def encode_create_account(owner: str, data: bytes = b"") -> bytes:
    """Encode ``createAccount(owner, data)`` call data."""
    return CREATE_ACCOUNT_SELECTOR + encode(["address", "bytes"], [checksum(owner), data])


def build_init_code(factory: str, owner: str) -> bytes:
    """
    Build the deployment payload for an undeployed smart account.

    Args:
        factory: Account factory address
        owner: Owner (admin) address of the account

    Returns:
        20-byte factory address followed by ``createAccount(owner, 0x)`` call data
    """
    return hex_to_bytes(checksum(factory)) + encode_create_account(owner)


def encode_erc20_transfer(recipient: str, amount: int) -> bytes:
    """Encode ERC-20 ``transfer(recipient, amount)`` call data."""
    return TRANSFER_SELECTOR + encode(["address", "uint256"], [checksum(recipient), amount])


def encode_execute(target: str, value: int, data: bytes = b"") -> bytes:
    """Encode smart account ``execute(target, value, data)`` call data."""
    return EXECUTE_SELECTOR + encode(["address", "uint256", "bytes"], [checksum(target), value, data])


def encode_call_data(sender: str, intent: Optional[TransferIntent] = None) -> bytes:
    """
    Encode the call payload of an operation.

    Args:
        sender: Smart account address
        intent: Transfer to perform, or None for a bare deployment

    Returns:
        ``execute`` call data. Native transfers send ``amount`` as value directly
        to the recipient with empty inner data; token transfers call the asset
        contract's ``transfer``. Without an intent the account calls itself with
        no value so the operation only deploys it.
    """
    if intent is None:
        return encode_execute(sender, 0, b"")
    if intent.is_native:
        return encode_execute(intent.recipient, intent.amount, b"")
    return encode_execute(intent.asset, 0, encode_erc20_transfer(intent.recipient, intent.amount))
