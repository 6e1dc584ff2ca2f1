"""
Gas estimation through bundler simulation.
"""
import logging
from typing import Optional

from ._rate_limited_log import rate_limited_log
from .bundler import BundlerClient
from .exceptions import EstimationFailure
from .models import GasEstimate
from .userop import OperationStage, UserOperation

logger = logging.getLogger(__name__)

# Per-field defaults when the simulator answers but omits a field
ESTIMATE_FIELD_DEFAULTS = {
    "call_gas_limit": 0x493E0,
    "verification_gas_limit": 0x493E0,
    "pre_verification_gas": 0x7A120,
}


class GasEstimator:
    """Refines the provisional gas limits of a fee-priced operation."""

    def __init__(self, bundler: BundlerClient, entry_point: str, logger: Optional[logging.Logger] = None):
        self.bundler = bundler
        self.entry_point = entry_point
        self.logger = logger or logging.getLogger(__name__)

    def _simulate(self, op: UserOperation) -> GasEstimate:
        try:
            estimate = self.bundler.estimate_user_operation_gas(op, self.entry_point)
        except Exception as e:
            raise EstimationFailure(f"Gas estimation failed: {e}") from e
        return GasEstimate(**{
            field: value if value else ESTIMATE_FIELD_DEFAULTS[field]
            for field, value in (
                ("call_gas_limit", estimate.call_gas_limit),
                ("verification_gas_limit", estimate.verification_gas_limit),
                ("pre_verification_gas", estimate.pre_verification_gas),
            )
        })

    def estimate(self, op: UserOperation) -> UserOperation:
        """
        Simulate the dummy-signed operation and apply the resulting limits.

        Estimation failure is not fatal: the builder's provisional limits are
        kept and the operation still advances to GAS_ESTIMATED.

        Args:
            op: Operation in the FEE_PRICED stage

        Returns:
            Operation in the GAS_ESTIMATED stage
        """
        if op.stage != OperationStage.FEE_PRICED:
            raise ValueError(f"Operation must be fee-priced before estimation (stage: {op.stage.name})")
        try:
            estimate = self._simulate(op)
        except EstimationFailure as e:
            rate_limited_log(
                f"{e}; using default gas limits",
                level="warning",
                logger_instance=self.logger,
                key="gas-estimation-failed",
            )
            return op.with_gas(None)

        self.logger.debug(
            f"Gas estimate: call={estimate.call_gas_limit} "
            f"verification={estimate.verification_gas_limit} pre={estimate.pre_verification_gas}"
        )
        return op.with_gas(estimate)
