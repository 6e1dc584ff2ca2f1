"""
Tests for the bundler and paymaster clients.
"""
import pytest

from smartaccount_sdk.bundler import BundlerClient
from smartaccount_sdk.exceptions import BundlerConnectionError, BundlerRPCError, SponsorshipDenied
from smartaccount_sdk.models import FeeQuote
from smartaccount_sdk.paymaster import PaymasterClient
from smartaccount_sdk.userop import UserOperation
from conftest import (
    BUNDLER_URL,
    PAYMASTER_URL,
    TEST_ACCOUNT,
    TEST_ENTRY_POINT,
    TEST_TX_HASH,
    TEST_USER_OP_HASH,
    BundlerStub,
)


@pytest.fixture
def op():
    return UserOperation(
        sender=TEST_ACCOUNT,
        nonce=0,
        init_code=b"",
        call_data=b"\x01",
        call_gas_limit=1,
        verification_gas_limit=2,
        pre_verification_gas=3,
    )


@pytest.fixture
def bundler(bundler_stub):
    client = BundlerClient(BUNDLER_URL, retry_count=0)
    yield client
    client.close()


class TestBundlerClient:
    def test_estimate(self, bundler, bundler_stub, op):
        estimate = bundler.estimate_user_operation_gas(op, TEST_ENTRY_POINT)

        assert estimate.call_gas_limit == 120_000
        assert estimate.verification_gas_limit == 450_000
        assert estimate.pre_verification_gas == 60_000
        assert bundler_stub.params("eth_estimateUserOperationGas") == [op.to_rpc(), TEST_ENTRY_POINT]

    def test_estimate_missing_fields(self, bundler, bundler_stub, op):
        bundler_stub.handlers["eth_estimateUserOperationGas"] = lambda params: {"callGasLimit": "0x10"}

        estimate = bundler.estimate_user_operation_gas(op, TEST_ENTRY_POINT)

        assert estimate.call_gas_limit == 16
        assert estimate.verification_gas_limit is None
        assert estimate.pre_verification_gas is None

    def test_send(self, bundler, bundler_stub, op):
        assert bundler.send_user_operation(op, TEST_ENTRY_POINT) == TEST_USER_OP_HASH
        assert bundler_stub.params("eth_sendUserOperation")[1] == TEST_ENTRY_POINT

    def test_send_rejected(self, bundler, bundler_stub, op):
        def reject(params):
            raise BundlerStub.Error("AA21 didn't pay prefund", code=-32500)

        bundler_stub.handlers["eth_sendUserOperation"] = reject
        with pytest.raises(BundlerRPCError) as excinfo:
            bundler.send_user_operation(op, TEST_ENTRY_POINT)
        assert excinfo.value.code == -32500

    def test_send_invalid_hash(self, bundler, bundler_stub, op):
        bundler_stub.handlers["eth_sendUserOperation"] = lambda params: None
        with pytest.raises(BundlerConnectionError):
            bundler.send_user_operation(op, TEST_ENTRY_POINT)

    def test_receipt(self, bundler):
        receipt = bundler.get_user_operation_receipt(TEST_USER_OP_HASH)

        assert receipt.success
        assert receipt.user_op_hash == TEST_USER_OP_HASH
        assert receipt.transaction_hash == TEST_TX_HASH
        assert receipt.actual_gas_cost == 16
        assert receipt.actual_gas_used == 32

    def test_receipt_not_ready(self, bundler, bundler_stub):
        bundler_stub.handlers["eth_getUserOperationReceipt"] = lambda params: None
        assert bundler.get_user_operation_receipt(TEST_USER_OP_HASH) is None

    @pytest.mark.parametrize("receipt", [
        {"success": True, "actualGasCost": "lots", "receipt": {"transactionHash": TEST_TX_HASH}},
        {"success": True, "actualGasUsed": [1], "receipt": {"transactionHash": TEST_TX_HASH}},
        {"success": True, "receipt": "0xdeadbeef"},
    ])
    def test_malformed_receipt(self, bundler, bundler_stub, receipt):
        bundler_stub.handlers["eth_getUserOperationReceipt"] = lambda params: receipt
        with pytest.raises(BundlerConnectionError, match="malformed receipt"):
            bundler.get_user_operation_receipt(TEST_USER_OP_HASH)

    def test_gas_price_standard_tier(self, bundler):
        quote = bundler.get_user_operation_gas_price()
        assert quote == FeeQuote(max_fee_per_gas=30_000_000_000, max_priority_fee_per_gas=2_000_000_000)

    def test_gas_price_flat_answer(self, bundler, bundler_stub):
        bundler_stub.handlers["pimlico_getUserOperationGasPrice"] = lambda params: {
            "maxFeePerGas": "0x64", "maxPriorityFeePerGas": "0xa",
        }
        quote = bundler.get_user_operation_gas_price()
        assert quote.max_fee_per_gas == 100
        assert quote.max_priority_fee_per_gas == 10

    def test_gas_price_custom_method(self, bundler_stub, requests_mock):
        bundler_stub.handlers["custom_gasPrice"] = lambda params: {"maxFeePerGas": "0x2", "maxPriorityFeePerGas": "0x1"}
        client = BundlerClient(BUNDLER_URL, gas_price_method="custom_gasPrice")
        assert client.get_user_operation_gas_price().max_fee_per_gas == 2
        assert bundler_stub.methods() == ["custom_gasPrice"]
        client.close()


class TestPaymasterClient:
    def test_sponsor(self, paymaster_stub, op):
        paymaster = PaymasterClient(PAYMASTER_URL, context={"sponsorshipPolicyId": "sp_1"})

        sponsored = paymaster.sponsor_user_operation(op, TEST_ENTRY_POINT)

        assert sponsored["paymaster_and_data"] == bytes.fromhex("99" * 20 + "aa" * 8)
        assert sponsored["verification_gas_limit"] == 500_000
        assert "call_gas_limit" not in sponsored
        assert paymaster_stub.params("pm_sponsorUserOperation") == [
            op.to_rpc(), TEST_ENTRY_POINT, {"sponsorshipPolicyId": "sp_1"},
        ]
        paymaster.close()

    def test_sponsor_string_answer(self, paymaster_stub, op):
        paymaster_stub.handlers["pm_sponsorUserOperation"] = lambda params: "0x" + "99" * 20
        paymaster = PaymasterClient(PAYMASTER_URL)

        sponsored = paymaster.sponsor_user_operation(op, TEST_ENTRY_POINT)

        assert sponsored == {"paymaster_and_data": b"\x99" * 20}
        assert len(paymaster_stub.params("pm_sponsorUserOperation")) == 2
        paymaster.close()

    @pytest.mark.parametrize("answer", [None, {}, {"paymasterAndData": "0x"}])
    def test_sponsor_denied(self, paymaster_stub, op, answer):
        paymaster_stub.handlers["pm_sponsorUserOperation"] = lambda params: answer
        paymaster = PaymasterClient(PAYMASTER_URL)
        with pytest.raises(SponsorshipDenied):
            paymaster.sponsor_user_operation(op, TEST_ENTRY_POINT)
        paymaster.close()
