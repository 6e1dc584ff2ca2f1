"""
Operation builder.
"""
import logging
from typing import Optional

from web3 import Web3

from .account import AccountState
from .encoding import ENTRY_POINT_ABI, build_init_code, encode_call_data
from .exceptions import ChainReadFailure
from .models import NetworkProfile, TransferIntent
from .userop import (
    DEFAULT_CALL_GAS_LIMIT,
    DEFAULT_DEPLOY_VERIFICATION_GAS_LIMIT,
    DEFAULT_PRE_VERIFICATION_GAS,
    DEFAULT_VERIFICATION_GAS_LIMIT,
    DUMMY_SIGNATURE,
    UserOperation,
)
from .utils import checksum

logger = logging.getLogger(__name__)

NONCE_KEY = 0


class OperationBuilder:
    """Assembles BUILT-stage operations for a smart account."""

    def __init__(self, w3: Web3, profile: NetworkProfile, logger: Optional[logging.Logger] = None):
        self.w3 = w3
        self.profile = profile
        self.logger = logger or logging.getLogger(__name__)
        self.entry_point = self.w3.eth.contract(
            address=checksum(profile.entry_point),
            abi=ENTRY_POINT_ABI
        )

    def get_nonce(self, sender: str) -> int:
        """
        Read the account's current nonce (key 0) from the EntryPoint.

        Raises:
            ChainReadFailure: If the read fails
        """
        try:
            return int(self.entry_point.functions.getNonce(checksum(sender), NONCE_KEY).call())
        except Exception as e:
            self.logger.error(f"Nonce fetch failed for {sender}: {e}")
            raise ChainReadFailure(f"Failed to fetch nonce for {sender}: {str(e)}") from e

    def build(self, state: AccountState, intent: Optional[TransferIntent] = None) -> UserOperation:
        """
        Build an operation with provisional gas limits and a dummy signature.

        Args:
            state: Resolved account state. Anything other than DEPLOYED
                (including UNKNOWN) is treated as not deployed.
            intent: Transfer to perform, or None for a bare deployment

        Returns:
            Operation in the BUILT stage

        Raises:
            ChainReadFailure: If the nonce cannot be read
        """
        deployed = state.is_deployed
        nonce = self.get_nonce(state.address)

        init_code = b"" if deployed else build_init_code(state.factory, state.owner)
        if not deployed:
            self.logger.info(f"Account {state.address} not deployed, including initCode for deployment")

        return UserOperation(
            sender=checksum(state.address),
            nonce=nonce,
            init_code=init_code,
            call_data=encode_call_data(state.address, intent),
            call_gas_limit=DEFAULT_CALL_GAS_LIMIT,
            verification_gas_limit=(
                DEFAULT_VERIFICATION_GAS_LIMIT if deployed else DEFAULT_DEPLOY_VERIFICATION_GAS_LIMIT
            ),
            pre_verification_gas=DEFAULT_PRE_VERIFICATION_GAS,
            signature=DUMMY_SIGNATURE,
        )
