"""
Operation hashing and signing.

The operation hash follows EntryPoint v0.6: the ten hashed fields are
ABI-encoded and hashed with keccak256, then that digest is encoded together
with the EntryPoint address and chain id and hashed again. Bundlers reject
signatures over any other encoding.
"""
import logging

from eth_abi import encode
from web3 import Web3

from .exceptions import SigningFailure
from .signer import Signer
from .userop import OperationStage, UserOperation
from .utils import checksum

logger = logging.getLogger(__name__)

PACKED_USER_OP_TYPES = [
    "address",   # sender
    "uint256",   # nonce
    "bytes32",   # keccak(initCode)
    "bytes32",   # keccak(callData)
    "uint256",   # callGasLimit
    "uint256",   # verificationGasLimit
    "uint256",   # preVerificationGas
    "uint256",   # maxFeePerGas
    "uint256",   # maxPriorityFeePerGas
    "bytes32",   # keccak(paymasterAndData)
]


def pack_user_op(op: UserOperation) -> bytes:
    """
    ABI-encode the hashed fields of an operation. The signature is excluded.

    Args:
        op: Operation to pack

    Returns:
        ABI tuple encoding of the ten hashed fields
    """
    return encode(
        PACKED_USER_OP_TYPES,
        [
            checksum(op.sender),
            op.nonce,
            bytes(Web3.keccak(op.init_code)),
            bytes(Web3.keccak(op.call_data)),
            op.call_gas_limit,
            op.verification_gas_limit,
            op.pre_verification_gas,
            op.max_fee_per_gas,
            op.max_priority_fee_per_gas,
            bytes(Web3.keccak(op.paymaster_and_data)),
        ],
    )


def get_user_op_hash(op: UserOperation, entry_point: str, chain_id: int) -> bytes:
    """
    Compute the EntryPoint- and chain-scoped operation hash.

    Args:
        op: Operation to hash
        entry_point: EntryPoint contract address
        chain_id: Chain id of the network

    Returns:
        32-byte operation hash
    """
    inner = bytes(Web3.keccak(pack_user_op(op)))
    return bytes(Web3.keccak(encode(
        ["bytes32", "address", "uint256"],
        [inner, checksum(entry_point), chain_id],
    )))


def sign_user_operation(op: UserOperation, signer: Signer, entry_point: str, chain_id: int) -> UserOperation:
    """
    Sign a finalized operation.

    Gas, fees and sponsorship must already be applied, so the operation has to
    be in the SPONSORED stage.

    Args:
        op: Operation in the SPONSORED stage
        signer: Signer bound to the account's controlling key
        entry_point: EntryPoint contract address
        chain_id: Chain id of the network

    Returns:
        Operation in the SIGNED stage

    Raises:
        ValueError: If the operation is not ready for signing
        SigningFailure: If the signer fails or returns an empty signature
    """
    if op.stage != OperationStage.SPONSORED:
        raise ValueError(f"Operation must be sponsored before signing (stage: {op.stage.name})")

    op_hash = get_user_op_hash(op, entry_point, chain_id)
    try:
        signature = signer.sign_hash(op_hash)
    except SigningFailure:
        raise
    except Exception as e:
        logger.error(f"Operation signing failed: {e}")
        raise SigningFailure(f"Failed to sign user operation: {str(e)}") from e

    if not signature:
        raise SigningFailure("Signer returned an empty signature")

    logger.debug(f"Signed user operation {Web3.to_hex(op_hash)} for {op.sender}")
    return op.with_signature(bytes(signature))
