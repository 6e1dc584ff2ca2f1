"""
Smart account address derivation and deployment detection.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput

from .encoding import ACCOUNT_FACTORY_ABI
from .exceptions import ChainReadFailure, FactoryUnavailable
from .models import NetworkProfile
from .utils import checksum

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class DeploymentStatus(str, Enum):
    DEPLOYED = "deployed"
    NOT_DEPLOYED = "not_deployed"
    UNKNOWN = "unknown"


@dataclass
class AccountState:
    """
    Smart account of one owner under one factory on one network.

    ``status`` only ever moves to DEPLOYED once; after that it is never
    downgraded by a later check.
    """
    owner: str
    factory: str
    network: str
    address: str
    status: DeploymentStatus = DeploymentStatus.UNKNOWN

    @property
    def is_deployed(self) -> bool:
        return self.status == DeploymentStatus.DEPLOYED

    def update_status(self, status: DeploymentStatus) -> None:
        if self.status == DeploymentStatus.DEPLOYED:
            return
        self.status = status

    def mark_deployed(self) -> None:
        self.status = DeploymentStatus.DEPLOYED


class AccountStateResolver:
    """
    Resolves and caches AccountState per (owner, factory, network).

    The cache is safe to read from several threads; only the resolver writes it.
    """

    def __init__(self, w3: Web3, profile: NetworkProfile, logger: Optional[logging.Logger] = None):
        self.w3 = w3
        self.profile = profile
        self.logger = logger or logging.getLogger(__name__)
        self._cache: Dict[Tuple[str, str, str], AccountState] = {}
        self._lock = threading.RLock()

    def _get_code(self, address: str) -> bytes:
        try:
            return bytes(self.w3.eth.get_code(checksum(address)))
        except Exception as e:
            raise ChainReadFailure(f"Failed to read code at {address}: {str(e)}") from e

    def derive_address(self, owner: str, factory: Optional[str] = None, data: bytes = b"") -> str:
        """
        Compute the counterfactual smart account address via ``getAddress``.

        Args:
            owner: Owner (admin) address
            factory: Factory address (defaults to the network's factory)
            data: Factory initialization data, normally empty

        Returns:
            Checksummed smart account address

        Raises:
            FactoryUnavailable: If the factory has no code, or returns an empty or zero address
            ChainReadFailure: If the RPC read fails for another reason
        """
        factory = checksum(factory or self.profile.factory_address)
        owner = checksum(owner)

        if not self._get_code(factory):
            raise FactoryUnavailable(
                f"Account factory {factory} is not deployed on {self.profile.name}",
                factory=factory,
                network=self.profile.key,
            )

        contract = self.w3.eth.contract(address=factory, abi=ACCOUNT_FACTORY_ABI)
        try:
            address = contract.functions.getAddress(owner, data).call()
        except BadFunctionCallOutput as e:
            raise FactoryUnavailable(
                f"Account factory {factory} returned no address on {self.profile.name}",
                factory=factory,
                network=self.profile.key,
            ) from e
        except Exception as e:
            self.logger.error(f"Error deriving smart account address: {e}")
            raise ChainReadFailure(f"Failed to derive smart account address: {str(e)}") from e

        if not address or int(address, 16) == 0:
            raise FactoryUnavailable(
                f"Account factory {factory} is not live on {self.profile.name} yet",
                factory=factory,
                network=self.profile.key,
            )
        return checksum(address)

    def check_deployment(self, address: str) -> DeploymentStatus:
        """
        Classify an address by the presence of bytecode.

        Read errors yield UNKNOWN, which callers treat as not deployed.
        """
        try:
            code = self._get_code(address)
        except ChainReadFailure as e:
            self.logger.warning(f"Could not check deployment of {address}: {e}")
            return DeploymentStatus.UNKNOWN
        return DeploymentStatus.DEPLOYED if code else DeploymentStatus.NOT_DEPLOYED

    def resolve(
        self,
        owner: str,
        factory: Optional[str] = None,
        data: bytes = b"",
        refresh: bool = False,
    ) -> AccountState:
        """
        Get the AccountState of an owner, deriving the address on first use.

        The deployment status is re-checked on every call until the account is
        known to be deployed.

        Args:
            owner: Owner (admin) address
            factory: Factory address (defaults to the network's factory)
            data: Factory initialization data
            refresh: Derive the address again even if cached

        Returns:
            Cached AccountState
        """
        factory = checksum(factory or self.profile.factory_address)
        key = (checksum(owner).lower(), factory.lower(), self.profile.key)

        with self._lock:
            state = self._cache.get(key)

        if state is None or refresh:
            address = self.derive_address(owner, factory, data)
            state = AccountState(
                owner=checksum(owner),
                factory=factory,
                network=self.profile.key,
                address=address,
            )
            with self._lock:
                self._cache[key] = state
            self.logger.info(f"Smart account for {state.owner} on {self.profile.key}: {address}")

        if not state.is_deployed:
            status = self.check_deployment(state.address)
            with self._lock:
                state.update_status(status)
        return state

    def mark_deployed(self, state: AccountState) -> None:
        """Record a confirmed deployment. Irreversible."""
        with self._lock:
            state.mark_deployed()
        self.logger.info(f"Smart account {state.address} is now deployed")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
