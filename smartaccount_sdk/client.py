"""
SmartAccountClient - Main client for ERC-4337 smart account operations.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from .account import AccountState, AccountStateResolver, DeploymentStatus
from .builder import OperationBuilder
from .bundler import BundlerClient, DEFAULT_GAS_PRICE_METHOD
from .config import NetworkConfig, redact_url, validate_url
from .encoding import ERC20_ABI
from .exceptions import (
    BundlerConnectionError,
    BundlerRPCError,
    ChainReadFailure,
    InsufficientBalance,
    InsufficientPrefund,
    classify_submission_error,
)
from .fees import FeeOracle
from .gas import GasEstimator
from .hashing import get_user_op_hash, sign_user_operation
from .models import NetworkProfile, TransferIntent
from .paymaster import PaymasterClient
from .poller import ConfirmationPoller, DEFAULT_POLL_ATTEMPTS, DEFAULT_POLL_INTERVAL
from .signer import Signer, select_signer
from .sponsorship import SponsorshipAdapter
from .userop import OperationResult, OperationStage, OperationStatus, UserOperation
from .utils import checksum

# Observer callback: receives the event name and its payload
Observer = Callable[[str, Dict[str, Any]], None]


class SmartAccountClient:
    """
    Client for operating an ERC-4337 smart account through a bundler.

    This client handles:
    1. Deriving the smart account address and checking whether it is deployed
    2. Building, pricing, estimating, sponsoring and signing user operations
    3. Submitting them to the bundler and polling for the receipt

    Operations for one account must be issued one at a time: the nonce is read
    fresh for every build and concurrent pipelines for the same sender collide.

    Events delivered to subscribers:
        account_resolved, stage_changed, submitted, funding_required,
        account_deployed, completed
    """

    def __init__(
        self,
        profile: NetworkProfile,
        signer: Signer,
        paymaster_url: Optional[str] = None,
        factory_address: Optional[str] = None,
        factory_data: bytes = b"",
        gas_price_method: str = DEFAULT_GAS_PRICE_METHOD,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        retry_count: int = 3,
        timeout: int = 30,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the SmartAccountClient

        Args:
            profile: Network profile (see NetworkConfig.get_profile)
            signer: Signer bound to the account owner's key
            paymaster_url: Optional paymaster JSON-RPC URL for gas sponsorship
            factory_address: Account factory (defaults to the network's factory)
            factory_data: Factory initialization data, normally empty
            gas_price_method: Bundler fee oracle RPC method
            poll_attempts: Maximum number of receipt polls
            poll_interval: Seconds to sleep before each receipt poll
            retry_count: Number of retries for HTTP requests
            timeout: Timeout for HTTP requests in seconds
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If no signer is given or a URL does not use https
        """
        if signer is None:
            raise ValueError("signer must be provided")

        validate_url("rpc_url", profile.rpc_url)
        self.profile = profile
        self.signer = signer
        self.factory_address = checksum(factory_address or profile.factory_address)
        self.factory_data = factory_data
        self.logger = logger or logging.getLogger(__name__)

        self.w3 = Web3(Web3.HTTPProvider(profile.rpc_url, request_kwargs={"timeout": timeout}))

        self.bundler = BundlerClient(
            profile.bundler_url,
            gas_price_method=gas_price_method,
            retry_count=retry_count,
            timeout=timeout,
        )
        self.paymaster = PaymasterClient(paymaster_url, timeout=timeout) if paymaster_url else None

        self.resolver = AccountStateResolver(self.w3, profile, logger=self.logger)
        self.builder = OperationBuilder(self.w3, profile, logger=self.logger)
        self.fee_oracle = FeeOracle(self.bundler, logger=self.logger)
        self.gas_estimator = GasEstimator(self.bundler, profile.entry_point, logger=self.logger)
        self.sponsorship = SponsorshipAdapter(self.paymaster, profile.entry_point, logger=self.logger)
        self.poller = ConfirmationPoller(
            self.bundler,
            attempts=poll_attempts,
            interval=poll_interval,
            logger=self.logger,
        )
        self._observers: List[Observer] = []

        self.logger.debug(
            f"SmartAccountClient on {profile.key} (chain {profile.chain_id}), "
            f"bundler {redact_url(profile.bundler_url)}"
        )

    @classmethod
    def from_network(
        cls,
        network: str,
        signer: Optional[Signer] = None,
        private_key: Optional[str] = None,
        wallet: Any = None,
        rpc_url: Optional[str] = None,
        bundler_url: Optional[str] = None,
        **kwargs: Any
    ) -> "SmartAccountClient":
        """
        Create a client from a packaged network configuration.

        The signer is selected once here: an explicit signer, else a connected
        wallet, else a private key.

        Args:
            network: Network key (e.g. "polygon")
            signer: Explicit signer
            private_key: Owner private key
            wallet: Connected wallet exposing ``address`` and ``sign_message``
            rpc_url: Optional RPC URL override
            bundler_url: Optional bundler URL override
            **kwargs: Passed to the constructor

        Returns:
            Configured SmartAccountClient
        """
        profile = NetworkConfig.get_profile(network, rpc_url=rpc_url, bundler_url=bundler_url)
        if signer is None:
            signer = select_signer(private_key=private_key, wallet=wallet)
        return cls(profile, signer, **kwargs)

    @property
    def owner_address(self) -> str:
        return self.signer.address

    # ------------------------------------------------------------------ events

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """
        Register an observer for pipeline and account events.

        Returns:
            Function that removes the observer again
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _emit(self, event: str, **payload: Any) -> None:
        for callback in list(self._observers):
            try:
                callback(event, payload)
            except Exception:
                self.logger.exception(f"Observer failed while handling '{event}'")

    def _stage(self, op: UserOperation) -> UserOperation:
        self._emit("stage_changed", stage=op.stage, operation=op)
        return op

    # ----------------------------------------------------------------- account

    def get_account(self, refresh: bool = False) -> AccountState:
        """
        Resolve the owner's smart account.

        Raises:
            FactoryUnavailable: If the factory is not live on this network
            ChainReadFailure: If the derivation read fails
        """
        state = self.resolver.resolve(
            self.owner_address,
            factory=self.factory_address,
            data=self.factory_data,
            refresh=refresh,
        )
        self._emit("account_resolved", account=state)
        return state

    def get_asset_balance(self, address: Optional[str] = None, asset: Optional[str] = None) -> int:
        """
        Read an ERC-20 balance in smallest units.

        Args:
            address: Holder (defaults to the smart account)
            asset: Token address (defaults to the network's recoverable asset)

        Raises:
            ChainReadFailure: If the read fails
        """
        holder = checksum(address or self.get_account().address)
        token = checksum(asset or self.profile.asset_address)
        contract = self.w3.eth.contract(address=token, abi=ERC20_ABI)
        try:
            return int(contract.functions.balanceOf(holder).call())
        except Exception as e:
            raise ChainReadFailure(f"Failed to read balance of {holder}: {str(e)}") from e

    def get_native_balance(self, address: Optional[str] = None) -> int:
        """
        Read the native currency balance in wei.

        Raises:
            ChainReadFailure: If the read fails
        """
        holder = checksum(address or self.get_account().address)
        try:
            return int(self.w3.eth.get_balance(holder))
        except Exception as e:
            raise ChainReadFailure(f"Failed to read native balance of {holder}: {str(e)}") from e

    # ---------------------------------------------------------------- pipeline

    def prepare(self, intent: Optional[TransferIntent] = None, state: Optional[AccountState] = None) -> UserOperation:
        """
        Build, price, estimate, sponsor and sign an operation.

        Args:
            intent: Transfer to perform, or None for a bare deployment
            state: Already-resolved account state

        Returns:
            Operation in the SIGNED stage

        Raises:
            FactoryUnavailable: If the factory is not live on this network
            ChainReadFailure: If the nonce or account reads fail
            SigningFailure: If the signer cannot sign
        """
        state = state or self.get_account()

        op = self._stage(self.builder.build(state, intent))
        op = self._stage(self.fee_oracle.apply(op))
        op = self._stage(self.gas_estimator.estimate(op))
        op = self._stage(self.sponsorship.sponsor(op))
        op = sign_user_operation(op, self.signer, self.profile.entry_point, self.profile.chain_id)
        return self._stage(op)

    def operation_hash(self, op: UserOperation) -> str:
        """Operation hash scoped to this client's EntryPoint and chain, as 0x hex."""
        return Web3.to_hex(get_user_op_hash(op, self.profile.entry_point, self.profile.chain_id))

    def submit(self, op: UserOperation) -> str:
        """
        Send a signed operation to the bundler.

        Returns:
            Operation hash reported by the bundler

        Raises:
            ValueError: If the operation is not signed
            InsufficientPrefund: If the account cannot pay for its gas (AA21)
            SubmissionFailure: For any other rejection
        """
        if op.stage != OperationStage.SIGNED:
            raise ValueError(f"Only signed operations can be submitted (stage: {op.stage.name})")

        try:
            user_op_hash = self.bundler.send_user_operation(op, self.profile.entry_point)
        except (BundlerRPCError, BundlerConnectionError) as e:
            error = classify_submission_error(
                e,
                funding_address=op.sender,
                native_symbol=self.profile.native_symbol,
                operation=op,
            )
            if isinstance(error, InsufficientPrefund):
                self.logger.warning(f"Smart account {op.sender} needs {self.profile.native_symbol} for gas")
                self._emit(
                    "funding_required",
                    address=op.sender,
                    native_symbol=self.profile.native_symbol,
                    operation=op,
                )
            else:
                self.logger.error(f"Submission failed: {error.raw_message}")
            raise error from e

        self._emit("submitted", user_op_hash=user_op_hash, operation=op)
        return user_op_hash

    def wait(self, user_op_hash: str, op: UserOperation, state: Optional[AccountState] = None) -> OperationResult:
        """
        Poll for the receipt of a submitted operation.

        A confirmed operation that carried init code marks the account deployed.
        """
        outcome = self.poller.wait(user_op_hash)
        result = OperationResult(
            status=outcome.status,
            user_op_hash=user_op_hash,
            operation=op,
            receipt=outcome.receipt,
        )
        if result.transaction_hash:
            result.explorer_url = self.profile.tx_url(result.transaction_hash)

        if result.deployed_account:
            state = state or self.get_account()
            if state.address.lower() == op.sender.lower():
                self.resolver.mark_deployed(state)
                self._emit("account_deployed", account=state)

        self._emit("completed", result=result)
        return result

    def _submit_and_wait(self, op: UserOperation, state: Optional[AccountState], wait: bool) -> OperationResult:
        user_op_hash = self.submit(op)
        if not wait:
            return OperationResult(status=OperationStatus.PENDING, user_op_hash=user_op_hash, operation=op)
        return self.wait(user_op_hash, op, state=state)

    def execute(self, intent: Optional[TransferIntent] = None, wait: bool = True) -> OperationResult:
        """
        Run the whole pipeline for one operation.

        Args:
            intent: Transfer to perform, or None for a bare deployment
            wait: Poll for the receipt; otherwise return PENDING right after submission

        Returns:
            OperationResult (CONFIRMED, FAILED or PENDING)
        """
        state = self.get_account()
        op = self.prepare(intent, state=state)
        return self._submit_and_wait(op, state, wait)

    def resubmit(self, op: UserOperation, wait: bool = True) -> OperationResult:
        """
        Submit an already signed operation again, e.g. after funding the account
        following InsufficientPrefund.
        """
        return self._submit_and_wait(op, None, wait)

    # ----------------------------------------------------------------- actions

    def deploy(self, wait: bool = True) -> OperationResult:
        """
        Deploy the smart account with an operation that only carries init code.

        Raises:
            ValueError: If the account is already deployed
        """
        state = self.get_account()
        if state.status == DeploymentStatus.DEPLOYED:
            raise ValueError(f"Smart account {state.address} is already deployed")
        return self.execute(None, wait=wait)

    def transfer(
        self,
        recipient: str,
        amount: int,
        asset: Optional[str] = None,
        wait: bool = True
    ) -> OperationResult:
        """
        Transfer tokens or native currency out of the smart account.

        Args:
            recipient: Destination address
            amount: Amount in the asset's smallest unit
            asset: Token address, NATIVE_ASSET for native currency, or None for
                the network's recoverable asset
            wait: Poll for the receipt

        Returns:
            OperationResult

        Raises:
            ValueError: If recipient or amount are invalid
            InsufficientBalance: If the account holds less than ``amount``; raised before any submission
            InsufficientPrefund: If the account cannot pay for gas
            SubmissionFailure: If the bundler rejects the operation
        """
        intent = TransferIntent(
            asset=asset or self.profile.asset_address,
            recipient=recipient,
            amount=amount,
        )
        state = self.get_account()
        if intent.is_native:
            available = self.get_native_balance(state.address)
            symbol = self.profile.native_symbol
        else:
            available = self.get_asset_balance(state.address, intent.asset)
            symbol = self.profile.asset_symbol if intent.asset.lower() == self.profile.asset_address.lower() else intent.asset

        if intent.amount > available:
            raise InsufficientBalance(
                f"Insufficient balance. You have {available} units of {symbol}, requested {intent.amount}",
                available=available,
                requested=intent.amount,
            )

        op = self.prepare(intent, state=state)
        return self._submit_and_wait(op, state, wait)

    def recover(self, recipient: str, wait: bool = True) -> OperationResult:
        """
        Move the full recoverable-asset balance of the smart account to ``recipient``.

        Raises:
            InsufficientBalance: If the balance is zero
        """
        balance = self.get_asset_balance()
        if balance <= 0:
            raise InsufficientBalance(
                f"Nothing to recover: {self.profile.asset_symbol} balance is zero",
                available=0,
                requested=0,
            )
        return self.transfer(recipient, balance, asset=self.profile.asset_address, wait=wait)

    def close(self) -> None:
        self.bundler.close()
        if self.paymaster is not None:
            self.paymaster.close()
