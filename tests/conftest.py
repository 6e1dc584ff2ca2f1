"""
Pytest fixtures for the smart account SDK tests.
"""
import time
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from web3 import Web3
from web3.providers.rpc import HTTPProvider

from smartaccount_sdk._rate_limited_log import reset_rate_limits
from smartaccount_sdk.account import AccountState, AccountStateResolver, DeploymentStatus
from smartaccount_sdk.builder import OperationBuilder
from smartaccount_sdk.client import SmartAccountClient
from smartaccount_sdk.config import NetworkConfig
from smartaccount_sdk.models import NetworkProfile
from smartaccount_sdk.signer import LocalSigner

# Well-known development key (hardhat account #0)
TEST_PRIV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

TEST_ENTRY_POINT = "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789"
TEST_FACTORY = Web3.to_checksum_address("0xde320c2e2b4953883f61774c006f9057a55b97d1")
TEST_ACCOUNT = "0x1111111111111111111111111111111111111111"
TEST_RECIPIENT = "0x2222222222222222222222222222222222222222"
TEST_USDC = "0x3333333333333333333333333333333333333333"
TEST_CHAIN_ID = 137

BUNDLER_URL = "https://bundler.test/rpc"
PAYMASTER_URL = "https://paymaster.test/rpc"
RPC_URL = "https://rpc.test"

TEST_USER_OP_HASH = "0x" + "ab" * 32
TEST_TX_HASH = "0x" + "cd" * 32


# Make time.sleep instantaneous so polling does not slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_state():
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    reset_rate_limits()
    NetworkConfig._networks_cache = None


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    """
    def _dummy(self, method, params=None, _=None):
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": 1, "result": hex(TEST_CHAIN_ID)}
        return {"jsonrpc": "2.0", "id": 1, "result": "0x0"}

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


@pytest.fixture
def profile():
    return NetworkProfile(
        key="polygon",
        name="Polygon",
        chain_id=TEST_CHAIN_ID,
        native_symbol="POL",
        native_decimals=18,
        rpc_url=RPC_URL,
        explorer_url="https://polygonscan.com",
        entry_point=TEST_ENTRY_POINT,
        factory_address=TEST_FACTORY,
        bundler_url=BUNDLER_URL,
        asset_symbol="USDC",
        asset_address=TEST_USDC,
        asset_decimals=6,
    )


@pytest.fixture
def signer():
    return LocalSigner(TEST_PRIV_KEY)


@pytest.fixture
def chain():
    """
    Mutable view of the fake chain behind ``mock_w3``.

    ``code`` maps lower-case addresses to bytecode, ``balances`` holds ERC-20
    balances and ``native`` native balances.
    """
    return {
        "code": {TEST_FACTORY.lower(): b"\x60\x80"},
        "derived": TEST_ACCOUNT,
        "nonce": 0,
        "balances": {},
        "native": {},
    }


@pytest.fixture
def mock_w3(chain):
    """MagicMock Web3 whose reads are served from the ``chain`` fixture."""
    w3 = MagicMock()

    def get_code(address):
        return chain["code"].get(address.lower(), b"")

    def get_balance(address):
        return chain["native"].get(address.lower(), 0)

    w3.eth.get_code.side_effect = get_code
    w3.eth.get_balance.side_effect = get_balance

    def contract(address, abi):
        c = MagicMock()
        c.address = address
        c.functions.getAddress.side_effect = lambda owner, data: MagicMock(
            call=MagicMock(side_effect=lambda: chain["derived"])
        )
        c.functions.getNonce.side_effect = lambda sender, key: MagicMock(
            call=MagicMock(side_effect=lambda: chain["nonce"])
        )
        c.functions.balanceOf.side_effect = lambda holder: MagicMock(
            call=MagicMock(side_effect=lambda: chain["balances"].get(holder.lower(), 0))
        )
        return c

    w3.eth.contract.side_effect = contract
    return w3


@pytest.fixture
def account_state():
    return AccountState(
        owner=TEST_OWNER,
        factory=TEST_FACTORY,
        network="polygon",
        address=TEST_ACCOUNT,
        status=DeploymentStatus.NOT_DEPLOYED,
    )


class BundlerStub:
    """
    Programmable JSON-RPC endpoint for requests_mock.

    Each handler receives the params list and returns a result, or raises
    ``BundlerStub.Error`` to answer with a JSON-RPC error object.
    """

    class Error(Exception):
        def __init__(self, message: str, code: int = -32500, data: Any = None):
            self.message = message
            self.code = code
            self.data = data
            super().__init__(message)

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.handlers: Dict[str, Callable[[List[Any]], Any]] = {
            "pimlico_getUserOperationGasPrice": lambda params: {
                "slow": {"maxFeePerGas": "0x1", "maxPriorityFeePerGas": "0x1"},
                "standard": {"maxFeePerGas": hex(30_000_000_000), "maxPriorityFeePerGas": hex(2_000_000_000)},
                "fast": {"maxFeePerGas": "0xffff", "maxPriorityFeePerGas": "0xffff"},
            },
            "eth_estimateUserOperationGas": lambda params: {
                "callGasLimit": hex(120_000),
                "verificationGasLimit": hex(450_000),
                "preVerificationGas": hex(60_000),
            },
            "eth_sendUserOperation": lambda params: TEST_USER_OP_HASH,
            "eth_getUserOperationReceipt": lambda params: {
                "userOpHash": params[0],
                "success": True,
                "actualGasCost": "0x10",
                "actualGasUsed": "0x20",
                "receipt": {"transactionHash": TEST_TX_HASH},
            },
        }

    def methods(self) -> List[str]:
        return [c["method"] for c in self.calls]

    def params(self, method: str) -> Optional[List[Any]]:
        for c in reversed(self.calls):
            if c["method"] == method:
                return c["params"]
        return None

    def __call__(self, request, context):
        body = request.json()
        self.calls.append(body)
        handler = self.handlers.get(body["method"])
        if handler is None:
            return {"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Method not found"}}
        try:
            result = handler(body["params"])
        except BundlerStub.Error as e:
            error = {"code": e.code, "message": e.message}
            if e.data is not None:
                error["data"] = e.data
            return {"jsonrpc": "2.0", "id": body["id"], "error": error}
        return {"jsonrpc": "2.0", "id": body["id"], "result": result}


@pytest.fixture
def bundler_stub(requests_mock):
    stub = BundlerStub()
    requests_mock.post(BUNDLER_URL, json=stub)
    return stub


@pytest.fixture
def paymaster_stub(requests_mock):
    stub = BundlerStub()
    stub.handlers = {
        "pm_sponsorUserOperation": lambda params: {
            "paymasterAndData": "0x" + "99" * 20 + "aa" * 8,
            "verificationGasLimit": hex(500_000),
        }
    }
    requests_mock.post(PAYMASTER_URL, json=stub)
    return stub


@pytest.fixture
def make_client(profile, signer, mock_w3):
    """Build a SmartAccountClient whose chain reads go to ``mock_w3``."""
    created = []

    def _make(**kwargs) -> SmartAccountClient:
        kwargs.setdefault("poll_interval", 0)
        client = SmartAccountClient(profile, kwargs.pop("signer", signer), **kwargs)
        client.w3 = mock_w3
        client.resolver = AccountStateResolver(mock_w3, profile, logger=client.logger)
        client.builder = OperationBuilder(mock_w3, profile, logger=client.logger)
        created.append(client)
        return client

    yield _make
    for client in created:
        client.close()
