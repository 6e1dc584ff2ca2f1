"""
UserOperation record and its stage transitions.

An operation moves through BUILT -> FEE_PRICED -> GAS_ESTIMATED -> SPONSORED ->
SIGNED. Each transition returns a new frozen instance; nothing is mutated in
place, and a signed operation cannot be changed without going back through the
pipeline.
"""
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .models import FeeQuote, GasEstimate, UserOperationReceipt
from .utils import bytes_to_hex, hex_to_bytes, to_hex, to_int

# Fixed-length placeholder so bundler simulation can size signature verification
DUMMY_SIGNATURE = hex_to_bytes(
    "0xfffffffffffffffffffffffffffffff0000000000000000000000000000000007"
    "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa1c"
)

DEFAULT_CALL_GAS_LIMIT = 300_000
DEFAULT_VERIFICATION_GAS_LIMIT = 300_000
DEFAULT_DEPLOY_VERIFICATION_GAS_LIMIT = 1_000_000
DEFAULT_PRE_VERIFICATION_GAS = 500_000


class OperationStage(int, Enum):
    BUILT = 0
    FEE_PRICED = 1
    GAS_ESTIMATED = 2
    SPONSORED = 3
    SIGNED = 4


class OperationStatus(str, Enum):
    """Terminal outcome of a submitted operation."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class UserOperation:
    """ERC-4337 (EntryPoint v0.6) user operation."""
    sender: str
    nonce: int
    init_code: bytes
    call_data: bytes
    call_gas_limit: int
    verification_gas_limit: int
    pre_verification_gas: int
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: bytes = b""
    signature: bytes = DUMMY_SIGNATURE
    stage: OperationStage = OperationStage.BUILT

    @property
    def deploys_account(self) -> bool:
        return len(self.init_code) > 0

    def _advance(self, expected: OperationStage, target: OperationStage, **changes: Any) -> "UserOperation":
        if self.stage != expected:
            raise ValueError(
                f"Cannot move operation to {target.name}: stage is {self.stage.name}, expected {expected.name}"
            )
        return dataclasses.replace(self, stage=target, **changes)

    def with_fees(self, fees: FeeQuote) -> "UserOperation":
        return self._advance(
            OperationStage.BUILT,
            OperationStage.FEE_PRICED,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
        )

    def with_gas(self, estimate: Optional[GasEstimate] = None) -> "UserOperation":
        """
        Apply simulated gas limits. Fields the estimate leaves as None keep
        their current value; passing no estimate keeps all three.
        """
        changes: Dict[str, int] = {}
        if estimate is not None:
            for field in ("call_gas_limit", "verification_gas_limit", "pre_verification_gas"):
                value = getattr(estimate, field)
                if value is not None:
                    changes[field] = value
        return self._advance(OperationStage.FEE_PRICED, OperationStage.GAS_ESTIMATED, **changes)

    def with_sponsorship(self, paymaster_and_data: bytes = b"", **gas_overrides: int) -> "UserOperation":
        return self._advance(
            OperationStage.GAS_ESTIMATED,
            OperationStage.SPONSORED,
            paymaster_and_data=paymaster_and_data,
            **gas_overrides,
        )

    def with_signature(self, signature: bytes) -> "UserOperation":
        if not signature:
            raise ValueError("Signature must not be empty")
        return self._advance(OperationStage.SPONSORED, OperationStage.SIGNED, signature=signature)

    def to_rpc(self) -> Dict[str, str]:
        """Render the operation in the bundler's JSON-RPC format."""
        return {
            "sender": self.sender,
            "nonce": to_hex(self.nonce),
            "initCode": bytes_to_hex(self.init_code),
            "callData": bytes_to_hex(self.call_data),
            "callGasLimit": to_hex(self.call_gas_limit),
            "verificationGasLimit": to_hex(self.verification_gas_limit),
            "preVerificationGas": to_hex(self.pre_verification_gas),
            "maxFeePerGas": to_hex(self.max_fee_per_gas),
            "maxPriorityFeePerGas": to_hex(self.max_priority_fee_per_gas),
            "paymasterAndData": bytes_to_hex(self.paymaster_and_data),
            "signature": bytes_to_hex(self.signature),
        }

    @classmethod
    def from_rpc(cls, data: Dict[str, Any], stage: OperationStage = OperationStage.BUILT) -> "UserOperation":
        return cls(
            sender=data["sender"],
            nonce=to_int(data["nonce"]),
            init_code=hex_to_bytes(data.get("initCode")),
            call_data=hex_to_bytes(data.get("callData")),
            call_gas_limit=to_int(data.get("callGasLimit")),
            verification_gas_limit=to_int(data.get("verificationGasLimit")),
            pre_verification_gas=to_int(data.get("preVerificationGas")),
            max_fee_per_gas=to_int(data.get("maxFeePerGas")),
            max_priority_fee_per_gas=to_int(data.get("maxPriorityFeePerGas")),
            paymaster_and_data=hex_to_bytes(data.get("paymasterAndData")),
            signature=hex_to_bytes(data.get("signature")),
            stage=stage,
        )


@dataclass
class OperationResult:
    """Outcome of one pipeline run."""
    status: OperationStatus
    user_op_hash: str
    operation: UserOperation
    receipt: Optional[UserOperationReceipt] = None
    explorer_url: Optional[str] = None

    @property
    def transaction_hash(self) -> Optional[str]:
        return self.receipt.transaction_hash if self.receipt else None

    @property
    def deployed_account(self) -> bool:
        return self.status == OperationStatus.CONFIRMED and self.operation.deploys_account
