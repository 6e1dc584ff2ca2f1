"""
Data models for the smart account SDK.
"""
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, field_validator

from .utils import is_hex_address, to_int

# Sentinel asset address meaning "the chain's native currency"
NATIVE_ASSET = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"


class NetworkProfile(BaseModel):
    """Static per-chain configuration"""
    key: str
    name: str
    chain_id: int
    native_symbol: str
    native_decimals: int = 18
    rpc_url: str
    explorer_url: Optional[str] = None
    entry_point: str
    factory_address: str
    bundler_url: str
    asset_symbol: str
    asset_address: str
    asset_decimals: int

    class Config:
        frozen = True

    def tx_url(self, tx_hash: str) -> Optional[str]:
        """Block explorer link for a transaction hash, or None when no explorer is configured"""
        if not self.explorer_url or not tx_hash:
            return None
        if not tx_hash.startswith("0x"):
            tx_hash = "0x" + tx_hash
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


class FeeQuote(BaseModel):
    """Fee recommendation for a user operation"""
    max_fee_per_gas: int = Field(..., alias="maxFeePerGas")
    max_priority_fee_per_gas: int = Field(..., alias="maxPriorityFeePerGas")

    class Config:
        populate_by_name = True
        frozen = True


class GasEstimate(BaseModel):
    """Gas limits returned by the bundler simulation"""
    call_gas_limit: Optional[int] = Field(None, alias="callGasLimit")
    verification_gas_limit: Optional[int] = Field(None, alias="verificationGasLimit")
    pre_verification_gas: Optional[int] = Field(None, alias="preVerificationGas")

    class Config:
        populate_by_name = True


class TransferIntent(BaseModel):
    """A single transfer to encode into an operation's call data"""
    asset: str = NATIVE_ASSET
    recipient: str
    amount: int

    @field_validator("asset", "recipient")
    @classmethod
    def _check_address(cls, value: str) -> str:
        if not is_hex_address(value):
            raise ValueError(f"Invalid address: {value}")
        return value

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Transfer amount must be positive")
        if value >= 2 ** 256:
            raise ValueError("Transfer amount does not fit in uint256")
        return value

    @property
    def is_native(self) -> bool:
        return self.asset.lower() == NATIVE_ASSET.lower()


class UserOperationReceipt(BaseModel):
    """Receipt returned by eth_getUserOperationReceipt"""
    user_op_hash: str = Field(..., alias="userOpHash")
    success: bool
    transaction_hash: Optional[str] = Field(None, alias="transactionHash")
    actual_gas_cost: int = Field(0, alias="actualGasCost")
    actual_gas_used: int = Field(0, alias="actualGasUsed")
    reason: Optional[str] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        populate_by_name = True

    @classmethod
    def from_rpc(cls, data: Dict[str, Any], user_op_hash: Optional[str] = None) -> "UserOperationReceipt":
        """
        Build a receipt from the bundler's JSON result.

        The underlying transaction hash is kept only for successful operations.
        """
        success = bool(data.get("success"))
        tx_hash = None
        if success:
            inner = data.get("receipt") or {}
            tx_hash = inner.get("transactionHash") or data.get("transactionHash")
        return cls(
            user_op_hash=data.get("userOpHash") or user_op_hash or "",
            success=success,
            transaction_hash=tx_hash,
            actual_gas_cost=to_int(data.get("actualGasCost")),
            actual_gas_used=to_int(data.get("actualGasUsed")),
            reason=data.get("reason") or None,
            raw=data,
        )
