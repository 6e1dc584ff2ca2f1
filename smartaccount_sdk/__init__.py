"""
smartaccount-sdk - ERC-4337 smart account client.

Builds, prices, signs, submits and confirms user operations for a smart
account through an external bundler.
"""
from .version import __version__
from .client import SmartAccountClient
from .config import NetworkConfig
from .account import AccountState, AccountStateResolver, DeploymentStatus
from .builder import OperationBuilder
from .bundler import BundlerClient
from .paymaster import PaymasterClient
from .fees import FeeOracle
from .gas import GasEstimator
from .sponsorship import SponsorshipAdapter
from .poller import ConfirmationPoller
from .hashing import get_user_op_hash, pack_user_op, sign_user_operation
from .encoding import build_init_code, encode_call_data
from .models import NATIVE_ASSET, FeeQuote, GasEstimate, NetworkProfile, TransferIntent, UserOperationReceipt
from .userop import OperationResult, OperationStage, OperationStatus, UserOperation
from .signer import Signer, LocalSigner, DelegatedSigner, select_signer
from .exceptions import (
    SmartAccountError,
    FactoryUnavailable,
    ChainReadFailure,
    SigningFailure,
    InsufficientBalance,
    InsufficientPrefund,
    SubmissionFailure,
    BundlerRPCError,
    BundlerConnectionError,
)

__all__ = [
    "SmartAccountClient",
    "NetworkConfig",
    "NetworkProfile",
    "AccountState",
    "AccountStateResolver",
    "DeploymentStatus",
    "OperationBuilder",
    "BundlerClient",
    "PaymasterClient",
    "FeeOracle",
    "GasEstimator",
    "SponsorshipAdapter",
    "ConfirmationPoller",
    "get_user_op_hash",
    "pack_user_op",
    "sign_user_operation",
    "build_init_code",
    "encode_call_data",
    "NATIVE_ASSET",
    "FeeQuote",
    "GasEstimate",
    "TransferIntent",
    "UserOperationReceipt",
    "OperationResult",
    "OperationStage",
    "OperationStatus",
    "UserOperation",
    "Signer",
    "LocalSigner",
    "DelegatedSigner",
    "select_signer",
    "SmartAccountError",
    "FactoryUnavailable",
    "ChainReadFailure",
    "SigningFailure",
    "InsufficientBalance",
    "InsufficientPrefund",
    "SubmissionFailure",
    "BundlerRPCError",
    "BundlerConnectionError",
    "__version__",
]
