"""
Utility functions for the smart account SDK.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from web3 import Web3


def to_int(value: Any, default: int = 0) -> int:
    """
    Convert a JSON-RPC quantity into an integer.

    Args:
        value: Hex string ("0x1a"), decimal string, int or None
        default: Value returned for None or empty input

    Returns:
        Integer value

    Raises:
        ValueError: If the value cannot be interpreted as a quantity
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError(f"Not a quantity: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16) if len(text) > 2 else default
        return int(text)
    raise ValueError(f"Not a quantity: {value!r}")


def to_hex(value: int) -> str:
    """Render a non-negative integer as a JSON-RPC quantity."""
    if value < 0:
        raise ValueError(f"Quantities must be non-negative, got {value}")
    return hex(value)


def hex_to_bytes(value: Union[str, bytes, None]) -> bytes:
    """
    Convert 0x-prefixed hex (or raw bytes) to bytes.

    Raises:
        ValueError: If the string is not valid hex
    """
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    text = value[2:] if value.startswith(("0x", "0X")) else value
    if len(text) % 2:
        raise ValueError(f"Hex data has an odd number of digits: {value!r}")
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValueError(f"Invalid hex data: {value!r}") from e


def bytes_to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def is_hex_address(value: Any) -> bool:
    """True for any 0x-prefixed 20-byte hex string, regardless of checksum casing."""
    if not isinstance(value, str) or not value.startswith("0x"):
        return False
    return Web3.is_address(value.lower())


def checksum(address: str) -> str:
    """
    Normalize an address to its EIP-55 checksum form.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not is_hex_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address.lower())


def parse_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """
    Convert a human-readable token amount into smallest units.

    Args:
        amount: Amount such as "12.5"
        decimals: Token decimals

    Returns:
        Integer amount in smallest units

    Raises:
        ValueError: If the amount is malformed, negative or too precise
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def format_units(amount: int, decimals: int, precision: int = 2) -> str:
    """Format smallest units as a decimal string rounded down to ``precision`` places."""
    value = Decimal(amount).scaleb(-decimals)
    quantum = Decimal(1).scaleb(-precision)
    return str(value.quantize(quantum, rounding="ROUND_DOWN"))
