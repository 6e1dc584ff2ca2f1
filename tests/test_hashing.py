"""
Tests for operation hashing and signing.
"""
import dataclasses

import pytest
from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from hypothesis import given, settings, strategies as st
from web3 import Web3

from smartaccount_sdk.exceptions import SigningFailure
from smartaccount_sdk.hashing import get_user_op_hash, pack_user_op, sign_user_operation
from smartaccount_sdk.models import FeeQuote
from smartaccount_sdk.signer import DelegatedSigner, LocalSigner
from smartaccount_sdk.userop import OperationStage, UserOperation
from conftest import TEST_ACCOUNT, TEST_CHAIN_ID, TEST_ENTRY_POINT, TEST_OWNER, TEST_PRIV_KEY

OTHER_ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"


def _op(**changes) -> UserOperation:
    op = UserOperation(
        sender=TEST_ACCOUNT,
        nonce=1,
        init_code=b"\xaa" * 24,
        call_data=b"\xbb" * 36,
        call_gas_limit=100_000,
        verification_gas_limit=200_000,
        pre_verification_gas=50_000,
        max_fee_per_gas=3_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
        paymaster_and_data=b"",
    )
    return dataclasses.replace(op, **changes)


def _sponsored(**changes) -> UserOperation:
    op = _op(**changes)
    return (
        dataclasses.replace(op, stage=OperationStage.BUILT)
        .with_fees(FeeQuote(max_fee_per_gas=op.max_fee_per_gas, max_priority_fee_per_gas=op.max_priority_fee_per_gas))
        .with_gas(None)
        .with_sponsorship(op.paymaster_and_data)
    )


def test_hash_layout():
    """Inner digest over hashed dynamic fields, outer over (digest, entry point, chain id)."""
    op = _op()
    inner = Web3.keccak(encode(
        ["address", "uint256", "bytes32", "bytes32", "uint256", "uint256", "uint256", "uint256", "uint256", "bytes32"],
        [
            TEST_ACCOUNT, 1,
            Web3.keccak(op.init_code), Web3.keccak(op.call_data),
            100_000, 200_000, 50_000, 3_000_000_000, 1_000_000_000,
            Web3.keccak(b""),
        ],
    ))
    expected = Web3.keccak(encode(["bytes32", "address", "uint256"], [inner, TEST_ENTRY_POINT, TEST_CHAIN_ID]))

    assert get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID) == bytes(expected)
    assert len(pack_user_op(op)) == 10 * 32


def test_hash_ignores_signature_and_stage():
    base = get_user_op_hash(_op(), TEST_ENTRY_POINT, TEST_CHAIN_ID)
    assert get_user_op_hash(_op(signature=b"\x01" * 65), TEST_ENTRY_POINT, TEST_CHAIN_ID) == base
    assert get_user_op_hash(_op(stage=OperationStage.SIGNED), TEST_ENTRY_POINT, TEST_CHAIN_ID) == base


def test_hash_scoped_to_entry_point_and_chain():
    op = _op()
    base = get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID)
    assert get_user_op_hash(op, OTHER_ENTRY_POINT, TEST_CHAIN_ID) != base
    assert get_user_op_hash(op, TEST_ENTRY_POINT, 10) != base


@settings(max_examples=50)
@given(
    field=st.sampled_from([
        "nonce", "call_gas_limit", "verification_gas_limit", "pre_verification_gas",
        "max_fee_per_gas", "max_priority_fee_per_gas",
    ]),
    delta=st.integers(min_value=1, max_value=2 ** 64),
)
def test_hash_sensitive_to_every_numeric_field(field, delta):
    op = _op()
    changed = dataclasses.replace(op, **{field: getattr(op, field) + delta})
    assert get_user_op_hash(changed, TEST_ENTRY_POINT, TEST_CHAIN_ID) != get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID)


@settings(max_examples=50)
@given(
    field=st.sampled_from(["init_code", "call_data", "paymaster_and_data"]),
    data=st.binary(min_size=1, max_size=200),
)
def test_hash_sensitive_to_every_bytes_field(field, data):
    op = _op()
    changed = dataclasses.replace(op, **{field: getattr(op, field) + data})
    assert get_user_op_hash(changed, TEST_ENTRY_POINT, TEST_CHAIN_ID) != get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID)


@settings(max_examples=25)
@given(nonce=st.integers(min_value=0, max_value=2 ** 256 - 1))
def test_hash_is_deterministic(nonce):
    op = _op(nonce=nonce)
    assert get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID) == get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID)


class TestSignUserOperation:
    def test_signature_recovers_to_owner(self):
        op = _sponsored()
        signed = sign_user_operation(op, LocalSigner(TEST_PRIV_KEY), TEST_ENTRY_POINT, TEST_CHAIN_ID)

        assert signed.stage == OperationStage.SIGNED
        op_hash = get_user_op_hash(signed, TEST_ENTRY_POINT, TEST_CHAIN_ID)
        recovered = Account.recover_message(encode_defunct(primitive=op_hash), signature=signed.signature)
        assert recovered == TEST_OWNER

    def test_requires_sponsored_stage(self):
        op = _op(stage=OperationStage.GAS_ESTIMATED)
        with pytest.raises(ValueError, match="must be sponsored"):
            sign_user_operation(op, LocalSigner(TEST_PRIV_KEY), TEST_ENTRY_POINT, TEST_CHAIN_ID)

    def test_signer_error_becomes_signing_failure(self):
        def refuse(_hash):
            raise RuntimeError("user rejected")

        signer = DelegatedSigner(TEST_OWNER, refuse)
        with pytest.raises(SigningFailure, match="user rejected"):
            sign_user_operation(_sponsored(), signer, TEST_ENTRY_POINT, TEST_CHAIN_ID)

    def test_empty_signature_is_signing_failure(self):
        signer = DelegatedSigner(TEST_OWNER, lambda _hash: "0x")
        with pytest.raises(SigningFailure, match="empty signature"):
            sign_user_operation(_sponsored(), signer, TEST_ENTRY_POINT, TEST_CHAIN_ID)

    def test_truncated_signature_is_signing_failure(self):
        signer = DelegatedSigner(TEST_OWNER, lambda _hash: "0x" + "ab" * 64 + "c")
        with pytest.raises(SigningFailure, match="odd number of digits"):
            sign_user_operation(_sponsored(), signer, TEST_ENTRY_POINT, TEST_CHAIN_ID)

    def test_delegated_signer_receives_raw_hash(self):
        seen = []

        def sign(message_hash):
            seen.append(message_hash)
            return "0x" + "11" * 65

        op = _sponsored()
        signed = sign_user_operation(op, DelegatedSigner(TEST_OWNER, sign), TEST_ENTRY_POINT, TEST_CHAIN_ID)

        assert seen == [get_user_op_hash(op, TEST_ENTRY_POINT, TEST_CHAIN_ID)]
        assert signed.signature == b"\x11" * 65
