"""
Paymaster JSON-RPC client.
"""
import logging
from typing import Any, Dict, Optional

from .exceptions import SponsorshipDenied
from .rpc import JsonRpcTransport
from .userop import UserOperation
from .utils import hex_to_bytes, to_int

logger = logging.getLogger(__name__)


class PaymasterClient:
    """Requests gas sponsorship for user operations."""

    def __init__(
        self,
        url: str,
        method: str = "pm_sponsorUserOperation",
        context: Optional[Dict[str, Any]] = None,
        timeout: int = 30,
        transport: Optional[JsonRpcTransport] = None,
    ):
        # Sponsorship is a single attempt, so the transport does not retry.
        self.transport = transport or JsonRpcTransport(url, retry_count=0, timeout=timeout)
        self.method = method
        self.context = context or {}

    def sponsor_user_operation(self, op: UserOperation, entry_point: str) -> Dict[str, Any]:
        """
        Ask the paymaster to cover an operation's gas.

        Args:
            op: Gas-estimated operation
            entry_point: EntryPoint contract address

        Returns:
            Dictionary with ``paymaster_and_data`` bytes and any gas limits the
            paymaster re-estimated (as ints)

        Raises:
            SponsorshipDenied: If the paymaster answered without sponsorship data
            BundlerRPCError: If the paymaster rejected the request
            BundlerConnectionError: If the paymaster could not be reached
        """
        params = [op.to_rpc(), entry_point]
        if self.context:
            params.append(self.context)
        result = self.transport.call(self.method, params)

        if isinstance(result, str):
            result = {"paymasterAndData": result}
        if not isinstance(result, dict) or not result.get("paymasterAndData"):
            raise SponsorshipDenied(f"Paymaster returned no sponsorship data: {result!r}")

        paymaster_and_data = hex_to_bytes(result["paymasterAndData"])
        if not paymaster_and_data:
            raise SponsorshipDenied("Paymaster returned empty sponsorship data")

        sponsored: Dict[str, Any] = {"paymaster_and_data": paymaster_and_data}
        for rpc_key, field in (
            ("callGasLimit", "call_gas_limit"),
            ("verificationGasLimit", "verification_gas_limit"),
            ("preVerificationGas", "pre_verification_gas"),
        ):
            if result.get(rpc_key) is not None:
                sponsored[field] = to_int(result[rpc_key])
        return sponsored

    def close(self) -> None:
        self.transport.close()
