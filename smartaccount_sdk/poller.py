"""
Bounded polling for user operation receipts.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .bundler import BundlerClient
from .exceptions import SmartAccountError
from .models import UserOperationReceipt
from .userop import OperationStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_ATTEMPTS = 30
DEFAULT_POLL_INTERVAL = 2.0


@dataclass
class PollOutcome:
    status: OperationStatus
    user_op_hash: str
    receipt: Optional[UserOperationReceipt] = None
    attempts: int = 0


class ConfirmationPoller:
    """
    Waits for a submitted operation's receipt.

    Sleeps ``interval`` seconds before each of at most ``attempts`` receipt
    queries. Running out of attempts is not an error: the outcome is PENDING
    and the caller keeps the hash for a later lookup.
    """

    def __init__(
        self,
        bundler: BundlerClient,
        attempts: int = DEFAULT_POLL_ATTEMPTS,
        interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.bundler = bundler
        self.attempts = attempts
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)

    def wait(self, user_op_hash: str) -> PollOutcome:
        """
        Poll for a receipt.

        Args:
            user_op_hash: Hash returned by eth_sendUserOperation

        Returns:
            CONFIRMED or FAILED with the receipt, or PENDING after the last attempt
        """
        for attempt in range(1, self.attempts + 1):
            time.sleep(self.interval)
            try:
                receipt = self.bundler.get_user_operation_receipt(user_op_hash)
            except SmartAccountError as e:
                # Bundlers answer with an error while the operation is still unknown
                self.logger.debug(f"Receipt for {user_op_hash} not ready (attempt {attempt}): {e}")
                continue

            if receipt is None:
                continue

            status = OperationStatus.CONFIRMED if receipt.success else OperationStatus.FAILED
            self.logger.info(f"User operation {user_op_hash} {status.value} after {attempt} attempts")
            return PollOutcome(status=status, user_op_hash=user_op_hash, receipt=receipt, attempts=attempt)

        self.logger.warning(
            f"No receipt for {user_op_hash} after {self.attempts} attempts; leaving it pending"
        )
        return PollOutcome(status=OperationStatus.PENDING, user_op_hash=user_op_hash, attempts=self.attempts)
