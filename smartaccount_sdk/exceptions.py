"""
Exceptions for the smart account SDK.
"""
from typing import Any, Optional


class SmartAccountError(Exception):
    """Base exception for all SDK errors."""
    pass


class FactoryUnavailable(SmartAccountError):
    """Raised when the account factory is not deployed or not live on a network."""

    def __init__(self, message: str, factory: Optional[str] = None, network: Optional[str] = None):
        self.factory = factory
        self.network = network
        super().__init__(message)


class ChainReadFailure(SmartAccountError):
    """Raised when a read-only chain call (nonce, code, balance) fails. Retryable."""
    pass


class FeeOracleDegraded(SmartAccountError):
    """Fee oracle unavailable. Always recovered inside FeeOracle."""
    pass


class EstimationFailure(SmartAccountError):
    """Gas simulation failed. Always recovered inside GasEstimator."""
    pass


class SponsorshipDenied(SmartAccountError):
    """Paymaster refused or could not be reached. Always recovered inside SponsorshipAdapter."""
    pass


class SigningFailure(SmartAccountError):
    """Raised when the signer cannot produce a signature over the operation hash."""
    pass


class InsufficientBalance(SmartAccountError):
    """Raised before submission when the account holds less than the requested amount."""

    def __init__(self, message: str, available: int = 0, requested: int = 0):
        self.available = available
        self.requested = requested
        super().__init__(message)


class SubmissionFailure(SmartAccountError):
    """Raised when the bundler rejects an operation for any reason other than prefund."""

    def __init__(self, message: str, raw_message: Optional[str] = None, code: Optional[int] = None):
        self.raw_message = raw_message if raw_message is not None else message
        self.code = code
        super().__init__(message)


class InsufficientPrefund(SubmissionFailure):
    """
    Raised when the bundler reports an AA21 "didn't pay prefund" rejection.

    The smart account cannot cover its own gas. Callers should ask the user to
    send native currency to ``funding_address`` and then resubmit ``operation``.
    """

    def __init__(
        self,
        message: str,
        funding_address: Optional[str] = None,
        native_symbol: Optional[str] = None,
        operation: Any = None,
        raw_message: Optional[str] = None,
        code: Optional[int] = None,
    ):
        self.funding_address = funding_address
        self.native_symbol = native_symbol
        self.operation = operation
        super().__init__(message, raw_message=raw_message, code=code)


class BundlerConnectionError(SmartAccountError):
    """Raised when an RPC endpoint cannot be reached or returns a non-JSON body."""
    pass


class BundlerRPCError(SmartAccountError):
    """Raised when a JSON-RPC response carries an error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None, method: Optional[str] = None):
        self.code = code
        self.data = data
        self.method = method
        super().__init__(message)


PREFUND_MARKERS = ("AA21", "didn't pay prefund")


def is_prefund_error(message: str) -> bool:
    """
    Check whether a bundler error message reports a prefund shortfall.

    Args:
        message: Raw error text from the bundler

    Returns:
        True if the text carries the AA21 code or the "didn't pay prefund" reason
    """
    if not message:
        return False
    return any(marker in message for marker in PREFUND_MARKERS)


def classify_submission_error(
    error: Exception,
    funding_address: Optional[str] = None,
    native_symbol: Optional[str] = None,
    operation: Any = None,
) -> SubmissionFailure:
    """
    Convert a failure from eth_sendUserOperation into the typed submission error.

    Args:
        error: Exception raised by the bundler client
        funding_address: Smart account address to fund on prefund shortfall
        native_symbol: Native currency symbol of the network
        operation: The signed operation that was rejected

    Returns:
        InsufficientPrefund for AA21-class rejections, SubmissionFailure otherwise
    """
    raw = str(error)
    code = getattr(error, "code", None)
    data = getattr(error, "data", None)
    if data is not None:
        raw = f"{raw} {data}"

    if is_prefund_error(raw):
        return InsufficientPrefund(
            f"Smart account {funding_address} cannot pay the gas prefund; "
            f"send {native_symbol or 'native currency'} to it and retry",
            funding_address=funding_address,
            native_symbol=native_symbol,
            operation=operation,
            raw_message=raw,
            code=code,
        )
    return SubmissionFailure(f"Bundler rejected user operation: {raw}", raw_message=raw, code=code)
