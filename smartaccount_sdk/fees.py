"""
Fee oracle adapter.
"""
import logging
from typing import Optional

from ._rate_limited_log import rate_limited_log
from .bundler import BundlerClient
from .exceptions import FeeOracleDegraded
from .models import FeeQuote
from .userop import UserOperation

logger = logging.getLogger(__name__)

# 1.5 gwei for both fields when the oracle is unavailable
FALLBACK_FEE_PER_GAS = 1_500_000_000
FALLBACK_FEES = FeeQuote(
    max_fee_per_gas=FALLBACK_FEE_PER_GAS,
    max_priority_fee_per_gas=FALLBACK_FEE_PER_GAS,
)


class FeeOracle:
    """Prices operations from the bundler's fee recommendation, falling back to a fixed floor."""

    def __init__(self, bundler: BundlerClient, fallback: FeeQuote = FALLBACK_FEES, logger: Optional[logging.Logger] = None):
        self.bundler = bundler
        self.fallback = fallback
        self.logger = logger or logging.getLogger(__name__)

    def _fetch(self) -> FeeQuote:
        try:
            quote = self.bundler.get_user_operation_gas_price()
        except Exception as e:
            raise FeeOracleDegraded(f"Fee oracle unavailable: {e}") from e
        if quote.max_fee_per_gas <= 0 or quote.max_priority_fee_per_gas < 0:
            raise FeeOracleDegraded(f"Fee oracle returned unusable fees: {quote}")
        return quote

    def quote(self) -> FeeQuote:
        """
        Get a fee recommendation. Never raises.

        Returns:
            The oracle's quote, or the fallback floor on any failure
        """
        try:
            quote = self._fetch()
        except FeeOracleDegraded as e:
            rate_limited_log(
                f"{e}; using fallback of {self.fallback.max_fee_per_gas} wei per gas",
                level="warning",
                logger_instance=self.logger,
                key="fee-oracle-degraded",
            )
            return self.fallback
        self.logger.debug(f"Fee quote: {quote}")
        return quote

    def apply(self, op: UserOperation) -> UserOperation:
        """Return the operation priced with the current quote (FEE_PRICED stage)."""
        return op.with_fees(self.quote())
