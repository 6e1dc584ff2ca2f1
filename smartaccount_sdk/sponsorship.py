"""
Optional gas sponsorship.
"""
import logging
from typing import Optional

from ._rate_limited_log import rate_limited_log
from .exceptions import SponsorshipDenied
from .paymaster import PaymasterClient
from .userop import UserOperation

logger = logging.getLogger(__name__)


class SponsorshipAdapter:
    """
    Attaches paymaster data when a paymaster is configured and willing.

    Any failure leaves the operation self-funded. There is exactly one attempt
    per operation.
    """

    def __init__(self, paymaster: Optional[PaymasterClient], entry_point: str, logger: Optional[logging.Logger] = None):
        self.paymaster = paymaster
        self.entry_point = entry_point
        self.logger = logger or logging.getLogger(__name__)

    def _request(self, op: UserOperation) -> dict:
        if self.paymaster is None:
            raise SponsorshipDenied("No paymaster configured")
        try:
            return self.paymaster.sponsor_user_operation(op, self.entry_point)
        except SponsorshipDenied:
            raise
        except Exception as e:
            raise SponsorshipDenied(f"Paymaster request failed: {e}") from e

    def sponsor(self, op: UserOperation) -> UserOperation:
        """
        Request sponsorship for a gas-estimated operation.

        Returns:
            Operation in the SPONSORED stage, with paymaster data on success
            and empty paymaster data otherwise
        """
        try:
            sponsored = self._request(op)
        except SponsorshipDenied as e:
            if self.paymaster is None:
                self.logger.debug("No paymaster configured; operation is self-funded")
            else:
                rate_limited_log(
                    f"{e}; falling back to self-funded gas",
                    level="warning",
                    logger_instance=self.logger,
                    key="sponsorship-denied",
                )
            return op.with_sponsorship(b"")

        self.logger.info(f"Operation for {op.sender} sponsored by paymaster")
        return op.with_sponsorship(**sponsored)
