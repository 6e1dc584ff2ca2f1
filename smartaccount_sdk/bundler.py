"""
ERC-4337 bundler client.

Exposes the four bundler procedures the pipeline needs. The client keeps no
state besides its HTTP session.
"""
import logging
from typing import Any, Dict, Optional

from .exceptions import BundlerConnectionError
from .models import FeeQuote, GasEstimate, UserOperationReceipt
from .rpc import JsonRpcTransport
from .userop import UserOperation
from .utils import to_int

logger = logging.getLogger(__name__)

DEFAULT_GAS_PRICE_METHOD = "pimlico_getUserOperationGasPrice"


class BundlerClient:
    """JSON-RPC client for an ERC-4337 bundler."""

    def __init__(
        self,
        url: str,
        gas_price_method: str = DEFAULT_GAS_PRICE_METHOD,
        gas_price_tier: str = "standard",
        retry_count: int = 3,
        timeout: int = 30,
        transport: Optional[JsonRpcTransport] = None,
    ):
        self.transport = transport or JsonRpcTransport(url, retry_count=retry_count, timeout=timeout)
        self.gas_price_method = gas_price_method
        self.gas_price_tier = gas_price_tier

    def estimate_user_operation_gas(self, op: UserOperation, entry_point: str) -> GasEstimate:
        """
        Simulate an operation and return its gas limits.

        Fields missing from the bundler's answer are returned as None.
        """
        result = self.transport.call("eth_estimateUserOperationGas", [op.to_rpc(), entry_point])
        if not isinstance(result, dict):
            raise BundlerConnectionError(f"Bundler returned an invalid gas estimate: {result!r}")
        return GasEstimate(
            call_gas_limit=to_int(result.get("callGasLimit"), default=None),
            verification_gas_limit=to_int(result.get("verificationGasLimit"), default=None),
            pre_verification_gas=to_int(result.get("preVerificationGas"), default=None),
        )

    def send_user_operation(self, op: UserOperation, entry_point: str) -> str:
        """Submit a signed operation and return the operation hash reported by the bundler."""
        result = self.transport.call("eth_sendUserOperation", [op.to_rpc(), entry_point])
        if not isinstance(result, str) or not result:
            raise BundlerConnectionError(f"Bundler returned an invalid user operation hash: {result!r}")
        logger.info(f"User operation sent: {result}")
        return result

    def get_user_operation_receipt(self, user_op_hash: str) -> Optional[UserOperationReceipt]:
        """Return the receipt for an operation hash, or None while it is not yet available."""
        result = self.transport.call("eth_getUserOperationReceipt", [user_op_hash])
        if result is None:
            return None
        if not isinstance(result, dict):
            raise BundlerConnectionError(f"Bundler returned an invalid receipt: {result!r}")
        try:
            return UserOperationReceipt.from_rpc(result, user_op_hash=user_op_hash)
        except (ValueError, TypeError, AttributeError) as e:
            raise BundlerConnectionError(f"Bundler returned a malformed receipt for {user_op_hash}: {e}") from e

    def get_user_operation_gas_price(self) -> FeeQuote:
        """
        Query the bundler's fee oracle.

        Accepts both tiered answers (``{"standard": {...}}``) and flat ones.
        """
        result = self.transport.call(self.gas_price_method, [])
        if not isinstance(result, dict):
            raise BundlerConnectionError(f"Bundler returned an invalid gas price: {result!r}")
        tier: Dict[str, Any] = result.get(self.gas_price_tier, result)
        return FeeQuote(
            max_fee_per_gas=to_int(tier["maxFeePerGas"]),
            max_priority_fee_per_gas=to_int(tier["maxPriorityFeePerGas"]),
        )

    def close(self) -> None:
        self.transport.close()
